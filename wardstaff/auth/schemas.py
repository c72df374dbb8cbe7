"""Auth Pydantic schemas for request / response validation."""


import uuid
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


# ── Requests ────────────────────────────────────────────────────────

class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=128)


# ── Embedded / Shared ──────────────────────────────────────────────

class UserInfo(BaseModel):
    id: uuid.UUID
    employee_id: str
    name: str
    email: str
    role: str
    department: Optional[str] = None
    position: Optional[str] = None


class DeptBrief(BaseModel):
    id: uuid.UUID
    name: str
    code: str


# ── Responses ───────────────────────────────────────────────────────

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserInfo


class MeResponse(BaseModel):
    id: uuid.UUID
    employee_id: str
    name: str
    email: str
    role: str
    capabilities: list[str]
    position: Optional[str] = None
    department: Optional[DeptBrief] = None
    supervisor_id: Optional[uuid.UUID] = None
    direct_reports_count: int
