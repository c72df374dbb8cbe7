"""Staff directory Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Update  → request bodies (write)
  - *Response / *Detail → response bodies (read)
  - *Brief              → compact embedded representations
"""


import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from wardstaff.common.constants import UserRole


# ═════════════════════════════════════════════════════════════════════
# Shared / embedded
# ═════════════════════════════════════════════════════════════════════


class DepartmentBrief(BaseModel):
    """Minimal department info embedded in other responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    code: str


class StaffBrief(BaseModel):
    """Minimal staff info embedded in other responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: str
    full_name: str
    position: str
    role: UserRole


# ═════════════════════════════════════════════════════════════════════
# Department
# ═════════════════════════════════════════════════════════════════════


class DepartmentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    code: Optional[str] = Field(None, min_length=1, max_length=20)
    description: Optional[str] = None
    manager_id: Optional[uuid.UUID] = None
    color: Optional[str] = Field(None, max_length=20)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Department name cannot be blank.")
        return v


class DepartmentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    code: Optional[str] = Field(None, min_length=1, max_length=20)
    description: Optional[str] = None
    manager_id: Optional[uuid.UUID] = None
    color: Optional[str] = Field(None, max_length=20)
    is_active: Optional[bool] = None


class DepartmentResponse(BaseModel):
    """Full department representation."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    code: str
    description: Optional[str] = None
    manager_id: Optional[uuid.UUID] = None
    color: Optional[str] = None
    is_active: bool = True
    created_at: datetime
    updated_at: datetime
    # Enriched by the service layer
    staff_count: int = 0
    manager_name: Optional[str] = None


# ═════════════════════════════════════════════════════════════════════
# Staff — write schemas
# ═════════════════════════════════════════════════════════════════════


class StaffCreate(BaseModel):
    """Payload for creating a new staff member."""

    employee_id: str = Field(..., min_length=1, max_length=30)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    role: UserRole = UserRole.staff
    department_id: Optional[uuid.UUID] = None
    position: str = Field(..., min_length=1, max_length=150)
    supervisor_id: Optional[uuid.UUID] = None
    phone_number: Optional[str] = Field(None, max_length=30)
    address: Optional[str] = None
    date_of_joining: Optional[date] = None


class StaffUpdate(BaseModel):
    """Partial update — every field optional.

    Role, password and activation have dedicated endpoints.
    """

    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    department_id: Optional[uuid.UUID] = None
    position: Optional[str] = Field(None, min_length=1, max_length=150)
    phone_number: Optional[str] = Field(None, max_length=30)
    address: Optional[str] = None
    date_of_joining: Optional[date] = None


class RoleChangeRequest(BaseModel):
    role: UserRole


class SupervisorAssignRequest(BaseModel):
    supervisor_id: Optional[uuid.UUID] = None


# ═════════════════════════════════════════════════════════════════════
# Staff — read schemas
# ═════════════════════════════════════════════════════════════════════


class StaffResponse(BaseModel):
    """Staff list / detail representation (never exposes the password hash)."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: str
    first_name: str
    last_name: str
    full_name: str
    email: str
    role: UserRole
    department_id: Optional[uuid.UUID] = None
    position: str
    supervisor_id: Optional[uuid.UUID] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None
    date_of_joining: date
    is_active: bool
    created_at: datetime
    updated_at: datetime


class StaffDetail(StaffResponse):
    department: Optional[DepartmentBrief] = None
    supervisor: Optional[StaffBrief] = None
    direct_reports_count: int = 0


class ProfileUpdate(BaseModel):
    """Contact details a staff member may change on their own record."""

    phone_number: Optional[str] = Field(None, max_length=30)
    address: Optional[str] = None
