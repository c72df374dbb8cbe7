"""Auth dependencies — JWT validation, actor resolution, capability enforcement."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Callable

from fastapi import Depends, Request
from fastapi.exceptions import HTTPException
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from wardstaff.auth.models import UserSession
from wardstaff.auth.service import Actor, hash_token
from wardstaff.common.constants import Capability
from wardstaff.common.exceptions import ForbiddenException
from wardstaff.config import settings
from wardstaff.database import get_db
from wardstaff.staff.models import StaffMember


def _extract_bearer(request: Request) -> str:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid Authorization header.")
    return auth_header[7:]


# ── Core dependency ─────────────────────────────────────────────────

async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> StaffMember:
    """Validate JWT, verify session, return the authenticated StaffMember."""
    token = _extract_bearer(request)

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired.")
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token.")

    if payload.get("type") != "access":
        raise HTTPException(status_code=401, detail="Invalid token type.")

    # Session must exist, not revoked, not expired
    result = await db.execute(
        select(UserSession).where(
            UserSession.token_hash == hash_token(token),
            UserSession.is_revoked.is_(False),
            UserSession.expires_at > datetime.now(timezone.utc),
        ),
    )
    if result.scalars().first() is None:
        raise HTTPException(status_code=401, detail="Session invalid or expired.")

    try:
        staff_id = uuid.UUID(payload["sub"])
    except (KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token subject.")

    staff_result = await db.execute(
        select(StaffMember)
        .where(StaffMember.id == staff_id, StaffMember.is_active.is_(True))
        .options(selectinload(StaffMember.department)),
    )
    staff = staff_result.scalars().first()
    if staff is None:
        raise HTTPException(status_code=401, detail="User account is inactive or not found.")

    # The stored role wins over the token claim so role changes apply immediately.
    actor = Actor.for_staff(staff)
    request.state.user_role = staff.role
    request.state.actor = actor
    return staff


async def get_current_actor(
    request: Request,
    staff: StaffMember = Depends(get_current_user),
) -> Actor:
    """Return the Actor resolved by :func:`get_current_user`."""
    return request.state.actor


# ── Capability-based dependency ─────────────────────────────────────

def require_capability(*capabilities: Capability) -> Callable:
    """Return a dependency that passes when the actor holds ANY of *capabilities*."""

    async def _check(actor: Actor = Depends(get_current_actor)) -> Actor:
        if not any(actor.can(c) for c in capabilities):
            raise ForbiddenException(
                detail=(
                    f"Role '{actor.role.value}' lacks the required capability: "
                    f"{[c.value for c in capabilities]}."
                ),
            )
        return actor
