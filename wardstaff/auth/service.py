"""Auth service — password hashing, JWT management, session lifecycle, actors."""

from __future__ import annotations

import hashlib
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from werkzeug.security import check_password_hash, generate_password_hash

from wardstaff.auth.models import UserSession
from wardstaff.common.constants import ROLE_CAPABILITIES, Capability, UserRole
from wardstaff.common.exceptions import ForbiddenException, ValidationException
from wardstaff.config import settings
from wardstaff.staff.models import StaffMember

logger = logging.getLogger(__name__)


# ── Actor ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Actor:
    """The authenticated caller, resolved once per request."""

    id: uuid.UUID
    role: UserRole
    capabilities: frozenset[Capability] = field(default_factory=frozenset)

    @classmethod
    def for_staff(cls, staff: StaffMember) -> "Actor":
        return cls(
            id=staff.id,
            role=staff.role,
            capabilities=ROLE_CAPABILITIES.get(staff.role, frozenset()),
        )

    def can(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def require(self, capability: Capability) -> None:
        if capability not in self.capabilities:
            raise ForbiddenException(
                detail=f"Capability '{capability.value}' is not granted to role '{self.role.value}'.",
            )


# ── Passwords ───────────────────────────────────────────────────────

def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return check_password_hash(password_hash, password)
    except ValueError:
        # unknown hash method in a stored value
        return False


# ── JWT helpers ─────────────────────────────────────────────────────

def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def create_access_token(staff_id: uuid.UUID, role: UserRole) -> tuple[str, int]:
    """Return (encoded_jwt, expires_in_seconds)."""
    expires_in = settings.JWT_EXPIRY_HOURS * 3600
    payload = {
        "sub": str(staff_id),
        "role": role.value,
        "type": "access",
        "jti": uuid.uuid4().hex,
        "exp": datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS),
    }
    token = jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    return token, expires_in


# ── Login ───────────────────────────────────────────────────────────

async def authenticate(db: AsyncSession, email: str, password: str) -> StaffMember:
    """Return the active staff member matching the credentials.

    Unknown email, wrong password and inactive accounts all produce the
    same 403 so the response does not reveal which one failed.
    """
    result = await db.execute(
        select(StaffMember)
        .where(func.lower(StaffMember.email) == email.strip().lower())
        .options(selectinload(StaffMember.department)),
    )
    staff = result.scalars().first()
    if staff is None or not verify_password(password, staff.password_hash):
        logger.info("failed login for %s", email)
        raise ForbiddenException(detail="Invalid email or password.")
    if not staff.is_active:
        logger.info("login refused for inactive account %s", staff.employee_id)
        raise ForbiddenException(detail="Invalid email or password.")
    return staff


async def create_session(
    db: AsyncSession,
    staff: StaffMember,
    ip: Optional[str],
    user_agent: Optional[str],
) -> tuple[str, int]:
    """Issue an access token and persist its session.  Returns (token, expires_in)."""
    access_token, expires_in = create_access_token(staff.id, staff.role)
    session = UserSession(
        staff_id=staff.id,
        token_hash=hash_token(access_token),
        ip_address=ip,
        user_agent=user_agent,
        expires_at=datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS),
    )
    db.add(session)
    await db.flush()
    return access_token, expires_in


# ── Revoke ──────────────────────────────────────────────────────────

async def revoke_session(db: AsyncSession, token_hash: str) -> None:
    """Mark a session as revoked by its token hash."""
    result = await db.execute(
        select(UserSession).where(UserSession.token_hash == token_hash),
    )
    session = result.scalars().first()
    if session:
        session.is_revoked = True
        await db.flush()


async def revoke_all_sessions(db: AsyncSession, staff_id: uuid.UUID) -> int:
    """Revoke every active session of a staff member (deactivation, password change)."""
    result = await db.execute(
        select(UserSession).where(
            UserSession.staff_id == staff_id,
            UserSession.is_revoked.is_(False),
        ),
    )
    sessions = result.scalars().all()
    for session in sessions:
        session.is_revoked = True
    await db.flush()
    return len(sessions)


# ── Password change ─────────────────────────────────────────────────

async def change_password(
    db: AsyncSession,
    staff: StaffMember,
    current_password: str,
    new_password: str,
) -> None:
    if not verify_password(current_password, staff.password_hash):
        raise ValidationException({"current_password": ["Current password is incorrect."]})
    if current_password == new_password:
        raise ValidationException(
            {"new_password": ["New password must differ from the current one."]}
        )
    staff.password_hash = hash_password(new_password)
    await db.flush()
