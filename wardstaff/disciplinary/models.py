"""Disciplinary ORM model: DisciplinaryCase (appeal fields stored inline)."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wardstaff.common.audit import TimestampMixin
from wardstaff.common.constants import (
    AppealDecision,
    CaseStatus,
    InfractionType,
    Sanction,
)
from wardstaff.common.enum_type import enum_column_type
from wardstaff.database import Base


class DisciplinaryCase(Base, TimestampMixin):
    __tablename__ = "disciplinary_cases"
    __table_args__ = (
        sa.Index("ix_disciplinary_cases_staff_id", "staff_id"),
        sa.Index("ix_disciplinary_cases_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    staff_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("staff_members.id", ondelete="CASCADE"),
        nullable=False,
    )
    infraction_type: Mapped[InfractionType] = mapped_column(
        enum_column_type(InfractionType, "infraction_type"), nullable=False,
    )
    description: Mapped[str] = mapped_column(sa.Text, nullable=False)
    date_of_infraction: Mapped[date] = mapped_column(sa.Date, nullable=False)
    reported_by: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("staff_members.id"), nullable=False,
    )
    status: Mapped[CaseStatus] = mapped_column(
        enum_column_type(CaseStatus, "case_status"),
        nullable=False,
        default=CaseStatus.open,
    )

    # ── Sanction / remedial ─────────────────────────────────────────
    sanction: Mapped[Optional[Sanction]] = mapped_column(
        enum_column_type(Sanction, "sanction_type"),
    )
    sanction_details: Mapped[Optional[str]] = mapped_column(sa.Text)
    sanction_date: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    remedial_measures: Mapped[Optional[str]] = mapped_column(sa.Text)

    # ── Staff response ──────────────────────────────────────────────
    staff_response: Mapped[Optional[str]] = mapped_column(sa.Text)
    response_date: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))

    # ── Resolution ──────────────────────────────────────────────────
    action_taken: Mapped[Optional[str]] = mapped_column(sa.Text)
    action_taken_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("staff_members.id"),
    )
    action_date: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    resolved_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))

    # ── Appeal ──────────────────────────────────────────────────────
    has_appealed: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=False, server_default=sa.false(),
    )
    appeal_details: Mapped[Optional[str]] = mapped_column(sa.Text)
    appeal_date: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    appeal_decision: Mapped[Optional[AppealDecision]] = mapped_column(
        enum_column_type(AppealDecision, "appeal_decision"),
    )
    appeal_decision_details: Mapped[Optional[str]] = mapped_column(sa.Text)
    appeal_decided_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("staff_members.id"),
    )
    appeal_decision_date: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )

    # Relationships
    staff: Mapped["StaffMember"] = relationship(foreign_keys=[staff_id])
    reporter: Mapped["StaffMember"] = relationship(foreign_keys=[reported_by])
