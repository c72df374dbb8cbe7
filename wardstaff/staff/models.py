"""Staff directory ORM models: Department, StaffMember.

SQLAlchemy 2.0 async-compatible models with Mapped[] annotations.
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wardstaff.common.audit import TimestampMixin
from wardstaff.common.constants import UserRole
from wardstaff.common.enum_type import enum_column_type
from wardstaff.database import Base

# ═════════════════════════════════════════════════════════════════════
# Department
# ═════════════════════════════════════════════════════════════════════


class Department(Base, TimestampMixin):
    """Named organisational unit of the ward office."""

    __tablename__ = "departments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(150), unique=True, nullable=False)
    code: Mapped[str] = mapped_column(sa.String(20), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    manager_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("staff_members.id", name="fk_department_manager", use_alter=True),
    )
    color: Mapped[Optional[str]] = mapped_column(sa.String(20))
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=True, server_default=sa.true(),
    )

    # ── Relationships ───────────────────────────────────────────────
    manager: Mapped[Optional[StaffMember]] = relationship(
        foreign_keys=[manager_id],
    )
    members: Mapped[list[StaffMember]] = relationship(
        back_populates="department", foreign_keys="StaffMember.department_id",
    )

    def __repr__(self) -> str:
        return f"<Department {self.name!r} ({self.code})>"


# ═════════════════════════════════════════════════════════════════════
# StaffMember
# ═════════════════════════════════════════════════════════════════════


class StaffMember(Base, TimestampMixin):
    """Employee record — also the login identity carrying the role."""

    __tablename__ = "staff_members"

    # ── Primary key ─────────────────────────────────────────────────
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # ── Identifiers ─────────────────────────────────────────────────
    employee_id: Mapped[str] = mapped_column(
        sa.String(30), unique=True, nullable=False,
    )
    email: Mapped[str] = mapped_column(
        sa.String(255), unique=True, nullable=False,
    )
    password_hash: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        enum_column_type(UserRole, "user_role"),
        nullable=False,
        default=UserRole.staff,
    )

    # ── Name / contact ──────────────────────────────────────────────
    first_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    phone_number: Mapped[Optional[str]] = mapped_column(sa.String(30))
    address: Mapped[Optional[str]] = mapped_column(sa.Text)

    # ── Employment ──────────────────────────────────────────────────
    department_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("departments.id"),
    )
    position: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    supervisor_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("staff_members.id"),
    )
    date_of_joining: Mapped[date] = mapped_column(
        sa.Date, nullable=False, default=date.today,
    )
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=True, server_default=sa.true(),
    )

    __table_args__ = (
        sa.Index("ix_staff_members_department_id", "department_id"),
        sa.Index("ix_staff_members_supervisor_id", "supervisor_id"),
    )

    # ── Relationships ───────────────────────────────────────────────
    department: Mapped[Optional[Department]] = relationship(
        back_populates="members", foreign_keys=[department_id],
    )
    supervisor: Mapped[Optional[StaffMember]] = relationship(
        remote_side=[id], foreign_keys=[supervisor_id], back_populates="reports",
    )
    reports: Mapped[list[StaffMember]] = relationship(
        back_populates="supervisor", foreign_keys=[supervisor_id],
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<StaffMember {self.employee_id} {self.full_name!r} ({self.role.value})>"
