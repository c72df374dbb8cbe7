"""Notification Pydantic schemas for request / response validation."""


import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ── Email templates ─────────────────────────────────────────────────

class EmailTemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, pattern=r"^[a-z0-9_]+$")
    category: str = Field("general", max_length=50)
    subject: str = Field(..., min_length=1, max_length=255)
    body: str = Field(..., min_length=1)
    variables: Optional[list[str]] = None
    description: Optional[str] = None
    is_active: bool = True


class EmailTemplateUpdate(BaseModel):
    category: Optional[str] = Field(None, max_length=50)
    subject: Optional[str] = Field(None, min_length=1, max_length=255)
    body: Optional[str] = Field(None, min_length=1)
    variables: Optional[list[str]] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


class EmailTemplateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    category: str
    subject: str
    body: str
    variables: list[str]
    description: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class TemplatePreviewRequest(BaseModel):
    staff_id: Optional[uuid.UUID] = None
    variables: dict[str, Any] = Field(default_factory=dict)


class TemplatePreviewResponse(BaseModel):
    subject: str
    body: str


# ── Sending ─────────────────────────────────────────────────────────

class SendEmailRequest(BaseModel):
    """Either a stored template (``template_name``) or a raw subject + message."""

    staff_ids: list[uuid.UUID] = Field(..., min_length=1)
    template_name: Optional[str] = None
    subject: Optional[str] = Field(None, max_length=255)
    message: Optional[str] = None
    variables: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _template_or_message(self) -> "SendEmailRequest":
        if not self.template_name and not (self.subject and self.message):
            raise ValueError("Provide template_name, or both subject and message.")
        return self


class MailResultOut(BaseModel):
    recipient: str
    success: bool
    skipped: bool = False
    error: Optional[str] = None


class SendEmailResponse(BaseModel):
    sent: int
    failed: int
    results: list[MailResultOut]
