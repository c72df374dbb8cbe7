"""Attendance ORM model: AttendanceRecord (one row per staff member per day)."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wardstaff.common.audit import TimestampMixin
from wardstaff.common.constants import AttendanceStatus
from wardstaff.common.enum_type import enum_column_type
from wardstaff.database import Base


class AttendanceRecord(Base, TimestampMixin):
    __tablename__ = "attendance_records"
    __table_args__ = (
        sa.UniqueConstraint("staff_id", "date", name="uq_attendance_staff_date"),
        sa.Index("ix_attendance_records_date", "date"),
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
    date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    status: Mapped[AttendanceStatus] = mapped_column(
        enum_column_type(AttendanceStatus, "attendance_status"), nullable=False,
    )
    check_in_time: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    check_out_time: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    hours_worked: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(5, 2))
    remarks: Mapped[Optional[str]] = mapped_column(sa.Text)
    marked_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("staff_members.id")
    )

    # Relationships
    staff: Mapped["StaffMember"] = relationship(foreign_keys=[staff_id])
    marker: Mapped[Optional["StaffMember"]] = relationship(foreign_keys=[marked_by])

    def __repr__(self) -> str:
        return f"<AttendanceRecord {self.staff_id} {self.date} {self.status.value}>"
