"""Admin router — dashboard, audit log and email template management.

Dashboard and audit log need their own capabilities; template endpoints
require ``email_template:manage`` (admin only by default).
"""

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from wardstaff.admin.schemas import AuditLogItem, DashboardResponse, SeedResult
from wardstaff.admin.service import AdminService
from wardstaff.auth.dependencies import require_capability
from wardstaff.auth.service import Actor
from wardstaff.common.constants import Capability
from wardstaff.common.pagination import PaginatedResponse, PaginationParams
from wardstaff.database import get_db
from wardstaff.notifications.schemas import (
    EmailTemplateCreate,
    EmailTemplateResponse,
    EmailTemplateUpdate,
    TemplatePreviewRequest,
    TemplatePreviewResponse,
)
from wardstaff.notifications.service import NotificationService

router = APIRouter(prefix="", tags=["admin"])

_templates_dep = require_capability(Capability.email_template_manage)


# ═══════════════════════════════════════════════════════════════════
# DASHBOARD / AUDIT
# ═══════════════════════════════════════════════════════════════════

@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard(
    _actor: Actor = Depends(require_capability(Capability.dashboard_admin)),
    db: AsyncSession = Depends(get_db),
):
    """Headline counts for today."""
    return await AdminService.dashboard(db)


@router.get("/audit-log", response_model=PaginatedResponse[AuditLogItem])
async def audit_log(
    pagination: PaginationParams = Depends(),
    entity_type: Optional[str] = Query(None),
    entity_id: Optional[uuid.UUID] = Query(None),
    actor_id: Optional[uuid.UUID] = Query(None),
    action: Optional[str] = Query(None),
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    _actor: Actor = Depends(require_capability(Capability.audit_read)),
    db: AsyncSession = Depends(get_db),
):
    return await AdminService.audit_log(
        db, pagination,
        entity_type=entity_type, entity_id=entity_id, actor_id=actor_id,
        action=action, from_date=from_date, to_date=to_date,
    )


# ═══════════════════════════════════════════════════════════════════
# EMAIL TEMPLATES
# ═══════════════════════════════════════════════════════════════════

@router.get("/email-templates", response_model=list[EmailTemplateResponse])
async def list_templates(
    category: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None),
    _actor: Actor = Depends(_templates_dep),
    db: AsyncSession = Depends(get_db),
):
    return await NotificationService.list_templates(db, category=category, is_active=is_active)


@router.post("/email-templates", response_model=EmailTemplateResponse, status_code=201)
async def create_template(
    body: EmailTemplateCreate,
    actor: Actor = Depends(_templates_dep),
    db: AsyncSession = Depends(get_db),
):
    return await NotificationService.create_template(db, body, actor_id=actor.id)


@router.post("/email-templates/seed", response_model=SeedResult, status_code=201)
async def seed_templates(
    _actor: Actor = Depends(_templates_dep),
    db: AsyncSession = Depends(get_db),
):
    """Insert any missing built-in template."""
    count = await NotificationService.seed_defaults(db)
    return SeedResult(message=f"Seeded {count} email templates.", created=count)


@router.get("/email-templates/{template_id}", response_model=EmailTemplateResponse)
async def get_template(
    template_id: uuid.UUID,
    _actor: Actor = Depends(_templates_dep),
    db: AsyncSession = Depends(get_db),
):
    return await NotificationService.get_template(db, template_id)


@router.put("/email-templates/{template_id}", response_model=EmailTemplateResponse)
async def update_template(
    template_id: uuid.UUID,
    body: EmailTemplateUpdate,
    actor: Actor = Depends(_templates_dep),
    db: AsyncSession = Depends(get_db),
):
    return await NotificationService.update_template(db, template_id, body, actor_id=actor.id)


@router.post("/email-templates/{template_id}/preview", response_model=TemplatePreviewResponse)
async def preview_template(
    template_id: uuid.UUID,
    body: TemplatePreviewRequest,
    _actor: Actor = Depends(_templates_dep),
    db: AsyncSession = Depends(get_db),
):
    """Render with sample variables (and optionally a real recipient) without sending."""
    return await NotificationService.preview_template(db, template_id, body)
