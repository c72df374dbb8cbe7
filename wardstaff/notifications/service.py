"""Notification service — email template storage, rendering and dispatch.

Workflow services call the ``notify_*`` helpers below.  Delivery problems
are logged and reported in the returned :class:`MailResult`; they never
abort the operation that triggered the email.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wardstaff.common.audit import create_audit_entry
from wardstaff.common.constants import DATE_FORMAT, LeaveStatus
from wardstaff.common.exceptions import ConflictError, NotFoundException
from wardstaff.config import settings
from wardstaff.notifications.mailer import MailResult, send_mail
from wardstaff.notifications.models import EmailTemplate
from wardstaff.notifications.render import placeholders, render
from wardstaff.notifications.schemas import (
    EmailTemplateCreate,
    EmailTemplateUpdate,
    SendEmailRequest,
    TemplatePreviewRequest,
    TemplatePreviewResponse,
)
from wardstaff.notifications.templates import DEFAULT_TEMPLATES, DEFAULT_TEMPLATES_BY_NAME
from wardstaff.staff.models import StaffMember

logger = logging.getLogger(__name__)


def _fmt_date(value: Optional[date]) -> str:
    return value.strftime(DATE_FORMAT) if value else ""


def recipient_context(staff: StaffMember) -> dict[str, Any]:
    """Variables every template can use for its recipient."""
    return {
        "officeName": settings.OFFICE_NAME,
        "staffName": staff.full_name,
        "employeeId": staff.employee_id,
    }


# ── Core service ────────────────────────────────────────────────────


class NotificationService:
    """Async email-template operations."""

    # ── Templates ───────────────────────────────────────────────────

    @staticmethod
    async def list_templates(
        db: AsyncSession,
        *,
        category: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> list[EmailTemplate]:
        query = select(EmailTemplate).order_by(EmailTemplate.category, EmailTemplate.name)
        if category:
            query = query.where(EmailTemplate.category == category)
        if is_active is not None:
            query = query.where(EmailTemplate.is_active == is_active)
        return list((await db.execute(query)).scalars().all())

    @staticmethod
    async def get_template(db: AsyncSession, template_id: uuid.UUID) -> EmailTemplate:
        template = await db.get(EmailTemplate, template_id)
        if template is None:
            raise NotFoundException("EmailTemplate", template_id)
        return template

    @staticmethod
    async def create_template(
        db: AsyncSession,
        data: EmailTemplateCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> EmailTemplate:
        existing = await db.execute(
            select(EmailTemplate.id).where(EmailTemplate.name == data.name)
        )
        if existing.scalar() is not None:
            raise ConflictError("name", data.name)

        values = data.model_dump()
        if values["variables"] is None:
            values["variables"] = placeholders(data.subject + data.body)
        template = EmailTemplate(**values)
        db.add(template)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="email_template",
            entity_id=template.id,
            actor_id=actor_id,
            new_values={"name": template.name, "category": template.category},
        )
        return template

    @staticmethod
    async def update_template(
        db: AsyncSession,
        template_id: uuid.UUID,
        data: EmailTemplateUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> EmailTemplate:
        template = await NotificationService.get_template(db, template_id)
        changes = data.model_dump(exclude_unset=True)
        if not changes:
            return template

        old_values = {k: getattr(template, k) for k in changes}
        for field, value in changes.items():
            setattr(template, field, value)
        if ("subject" in changes or "body" in changes) and "variables" not in changes:
            template.variables = placeholders(template.subject + template.body)
        template.updated_at = datetime.now(timezone.utc)
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="email_template",
            entity_id=template.id,
            actor_id=actor_id,
            old_values=old_values,
            new_values=changes,
        )
        return template

    @staticmethod
    async def seed_defaults(db: AsyncSession) -> int:
        """Insert any built-in template missing from the table.  Returns the count added."""
        result = await db.execute(select(EmailTemplate.name))
        present = {row[0] for row in result.all()}
        added = 0
        for spec in DEFAULT_TEMPLATES:
            if spec["name"] in present:
                continue
            db.add(EmailTemplate(**spec))
            added += 1
        if added:
            await db.flush()
            logger.info("seeded %d default email templates", added)
        return added

    @staticmethod
    async def resolve_template(db: AsyncSession, name: str) -> Optional[tuple[str, str]]:
        """Return ``(subject, body)`` for *name*.

        A stored row wins over the built-in default; a stored but inactive
        row disables the template (returns ``None``).
        """
        result = await db.execute(select(EmailTemplate).where(EmailTemplate.name == name))
        template = result.scalars().first()
        if template is not None:
            if not template.is_active:
                return None
            return template.subject, template.body
        default = DEFAULT_TEMPLATES_BY_NAME.get(name)
        if default is None:
            raise NotFoundException("EmailTemplate", name)
        return default["subject"], default["body"]

    @staticmethod
    async def render_template(
        db: AsyncSession,
        name: str,
        context: dict[str, Any],
    ) -> Optional[tuple[str, str]]:
        resolved = await NotificationService.resolve_template(db, name)
        if resolved is None:
            return None
        subject, body = resolved
        return render(subject, context), render(body, context, escape=True)

    @staticmethod
    async def preview_template(
        db: AsyncSession,
        template_id: uuid.UUID,
        data: TemplatePreviewRequest,
    ) -> TemplatePreviewResponse:
        """Render a stored template (active or not) without sending it."""
        template = await NotificationService.get_template(db, template_id)
        context = dict(data.variables)
        context.setdefault("officeName", settings.OFFICE_NAME)
        if data.staff_id is not None:
            staff = await db.get(StaffMember, data.staff_id)
            if staff is None:
                raise NotFoundException("StaffMember", data.staff_id)
            context.update(recipient_context(staff))
        return TemplatePreviewResponse(
            subject=render(template.subject, context),
            body=render(template.body, context, escape=True),
        )

    # ── Sending ─────────────────────────────────────────────────────

    @staticmethod
    async def send_template(
        db: AsyncSession,
        name: str,
        recipient: StaffMember,
        variables: Optional[dict[str, Any]] = None,
    ) -> MailResult:
        """Render template *name* for *recipient* and mail it."""
        context = {**(variables or {}), **recipient_context(recipient)}
        rendered = await NotificationService.render_template(db, name, context)
        if rendered is None:
            logger.info("template %s is inactive; not mailing %s", name, recipient.email)
            return MailResult(success=False, recipient=recipient.email, skipped=True)
        subject, body = rendered
        return await send_mail(recipient.email, subject, body)

    @staticmethod
    async def send_to_staff(
        db: AsyncSession,
        data: SendEmailRequest,
        *,
        actor_id: uuid.UUID,
    ) -> list[MailResult]:
        """Send a template or a free-form message to each listed staff member."""
        result = await db.execute(
            select(StaffMember).where(StaffMember.id.in_(data.staff_ids))
        )
        recipients = {s.id: s for s in result.scalars().all()}
        missing = [sid for sid in data.staff_ids if sid not in recipients]
        if missing:
            raise NotFoundException("StaffMember", missing[0])

        outcomes: list[MailResult] = []
        for staff_id in data.staff_ids:
            staff = recipients[staff_id]
            if data.template_name:
                outcomes.append(
                    await NotificationService.send_template(
                        db, data.template_name, staff, data.variables,
                    )
                )
            else:
                context = {**data.variables, **recipient_context(staff)}
                outcomes.append(
                    await send_mail(
                        staff.email,
                        render(data.subject or "", context),
                        render(data.message or "", context, escape=True),
                    )
                )

        await create_audit_entry(
            db,
            action="send_email",
            entity_type="email",
            entity_id=actor_id,
            actor_id=actor_id,
            new_values={
                "template": data.template_name,
                "subject": data.subject,
                "recipients": [str(sid) for sid in data.staff_ids],
                "sent": sum(1 for o in outcomes if o.success),
            },
        )
        return outcomes


# ═════════════════════════════════════════════════════════════════════
# Cross-module dispatchers (called from workflow services)
# ═════════════════════════════════════════════════════════════════════


async def notify_leave_application(db: AsyncSession, leave, applicant: StaffMember) -> Optional[MailResult]:
    """Email the applicant's supervisor about a new leave application."""
    if applicant.supervisor is None:
        logger.debug("no supervisor to notify for leave %s", leave.id)
        return None
    return await NotificationService.send_template(
        db,
        "leave_application",
        applicant.supervisor,
        {
            "applicantName": applicant.full_name,
            "leaveType": leave.leave_type,
            "startDate": _fmt_date(leave.start_date),
            "endDate": _fmt_date(leave.end_date),
            "numberOfDays": leave.number_of_days,
            "reason": leave.reason,
        },
    )


async def notify_leave_decision(db: AsyncSession, leave, applicant: StaffMember) -> MailResult:
    """Email the applicant the approval or rejection of their leave."""
    name = "leave_approval" if leave.status == LeaveStatus.approved else "leave_rejection"
    decided = leave.decided_at.date() if leave.decided_at else None
    return await NotificationService.send_template(
        db,
        name,
        applicant,
        {
            "leaveType": leave.leave_type,
            "startDate": _fmt_date(leave.start_date),
            "endDate": _fmt_date(leave.end_date),
            "numberOfDays": leave.number_of_days,
            "approvalDate": _fmt_date(decided),
            "rejectionReason": leave.rejection_reason,
        },
    )


async def notify_case_opened(db: AsyncSession, case, staff: StaffMember) -> MailResult:
    return await NotificationService.send_template(
        db,
        "disciplinary_warning",
        staff,
        {
            "infractionType": case.infraction_type,
            "dateOfInfraction": _fmt_date(case.date_of_infraction),
            "description": case.description,
        },
    )


async def notify_sanction(db: AsyncSession, case, staff: StaffMember) -> MailResult:
    return await NotificationService.send_template(
        db,
        "sanction_notice",
        staff,
        {
            "sanction": case.sanction,
            "sanctionDetails": case.sanction_details,
            "remedialMeasures": case.remedial_measures,
        },
    )


async def notify_case_resolved(db: AsyncSession, case, staff: StaffMember) -> MailResult:
    return await NotificationService.send_template(
        db,
        "disciplinary_resolved",
        staff,
        {
            "dateOfInfraction": _fmt_date(case.date_of_infraction),
            "actionTaken": case.action_taken,
            "sanction": case.sanction,
        },
    )


async def notify_welcome(db: AsyncSession, staff: StaffMember, department_name: Optional[str]) -> MailResult:
    return await NotificationService.send_template(
        db,
        "welcome",
        staff,
        {
            "position": staff.position,
            "department": department_name,
            "email": staff.email,
        },
    )
