"""Notification endpoints — send templated or free-form email to staff."""


from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from wardstaff.auth.dependencies import require_capability
from wardstaff.auth.service import Actor
from wardstaff.common.constants import Capability
from wardstaff.database import get_db
from wardstaff.notifications.schemas import (
    MailResultOut,
    SendEmailRequest,
    SendEmailResponse,
)
from wardstaff.notifications.service import NotificationService

router = APIRouter(prefix="", tags=["notifications"])


# ── POST /send ──────────────────────────────────────────────────────

@router.post("/send", response_model=SendEmailResponse)
async def send_email(
    body: SendEmailRequest,
    actor: Actor = Depends(require_capability(Capability.email_send)),
    db: AsyncSession = Depends(get_db),
):
    """Mail a stored template or a raw subject/message to one or more staff."""
    outcomes = await NotificationService.send_to_staff(db, body, actor_id=actor.id)
    return SendEmailResponse(
        sent=sum(1 for o in outcomes if o.success),
        failed=sum(1 for o in outcomes if not o.success),
        results=[
            MailResultOut(
                recipient=o.recipient,
                success=o.success,
                skipped=o.skipped,
                error=o.error,
            )
            for o in outcomes
        ],
    )
