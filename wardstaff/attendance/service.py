"""Attendance service layer — daily marking, bulk marking, listing, statistics.

Business logic:
  - One record per (staff, date); re-marking overwrites the existing row
  - Hours worked derived from check-in / check-out
  - Supervisors mark only their direct reports; clerks and admins mark anyone
  - Bulk marking is best-effort: each entry runs in its own savepoint
"""

from __future__ import annotations

import logging
import uuid
from collections import Counter, defaultdict
from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from wardstaff.attendance.models import AttendanceRecord
from wardstaff.attendance.schemas import (
    AttendanceMarkRequest,
    AttendanceOut,
    AttendanceStats,
    BulkAttendanceError,
    BulkAttendanceRequest,
    BulkAttendanceResponse,
    DailyAttendance,
)
from wardstaff.auth.service import Actor
from wardstaff.common.audit import create_audit_entry
from wardstaff.common.constants import AttendanceStatus, Capability
from wardstaff.common.exceptions import (
    AppException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from wardstaff.common.pagination import PaginatedResponse, PaginationParams, paginate
from wardstaff.staff.models import StaffMember
from wardstaff.staff.service import ensure_supervises, visible_staff_ids

logger = logging.getLogger(__name__)

_TWO_PLACES = Decimal("0.01")


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps as UTC so they compare with aware ones."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def compute_hours_worked(
    check_in: Optional[datetime],
    check_out: Optional[datetime],
) -> Optional[Decimal]:
    """Hours between check-in and check-out, rounded to 2 decimals; None unless both are set."""
    check_in, check_out = _as_utc(check_in), _as_utc(check_out)
    if check_in is None or check_out is None:
        return None
    seconds = Decimal(str((check_out - check_in).total_seconds()))
    return (seconds / Decimal(3600)).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)


# ═════════════════════════════════════════════════════════════════════
# AttendanceService
# ═════════════════════════════════════════════════════════════════════


class AttendanceService:
    """Async attendance operations."""

    @staticmethod
    async def _load_record(db: AsyncSession, record_id: uuid.UUID) -> AttendanceRecord:
        result = await db.execute(
            select(AttendanceRecord)
            .where(AttendanceRecord.id == record_id)
            .options(selectinload(AttendanceRecord.staff))
            .execution_options(populate_existing=True)
        )
        record = result.scalars().first()
        if record is None:
            raise NotFoundException("AttendanceRecord", str(record_id))
        return record

    # ─────────────────────────────────────────────────────────────────
    # Mark
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _upsert(
        db: AsyncSession,
        actor: Actor,
        data: AttendanceMarkRequest,
    ) -> AttendanceRecord:
        """Validate and write one mark.  No eager loading; used by bulk marking."""

        if data.date > date.today():
            raise ValidationException({"date": ["Cannot mark attendance for a future date."]})

        staff = await db.get(StaffMember, data.staff_id)
        if staff is None:
            raise NotFoundException("StaffMember", str(data.staff_id))

        await ensure_supervises(
            db, actor, staff.id,
            any_cap=Capability.attendance_mark_any,
            team_cap=Capability.attendance_mark_team,
            action="mark attendance",
        )

        result = await db.execute(
            select(AttendanceRecord).where(
                AttendanceRecord.staff_id == data.staff_id,
                AttendanceRecord.date == data.date,
            )
        )
        record = result.scalars().first()

        check_in = _as_utc(data.check_in_time)
        check_out = _as_utc(data.check_out_time)
        if record is not None:
            # omitted times keep what was recorded earlier
            check_in = check_in or _as_utc(record.check_in_time)
            check_out = check_out or _as_utc(record.check_out_time)
        if check_in and check_out and check_out < check_in:
            raise ValidationException(
                {"check_out_time": ["Check-out cannot be earlier than check-in."]}
            )

        old_values = None
        if record is None:
            record = AttendanceRecord(staff_id=data.staff_id, date=data.date)
            db.add(record)
            action = "create"
        else:
            old_values = {
                "status": record.status,
                "check_in_time": record.check_in_time,
                "check_out_time": record.check_out_time,
                "remarks": record.remarks,
            }
            record.updated_at = datetime.now(timezone.utc)
            action = "update"

        record.status = data.status
        record.check_in_time = check_in
        record.check_out_time = check_out
        record.hours_worked = compute_hours_worked(check_in, check_out)
        record.remarks = data.remarks
        record.marked_by = actor.id
        await db.flush()

        await create_audit_entry(
            db,
            action=action,
            entity_type="attendance_record",
            entity_id=record.id,
            actor_id=actor.id,
            old_values=old_values,
            new_values={
                "staff_id": data.staff_id,
                "date": data.date,
                "status": data.status,
                "check_in_time": check_in,
                "check_out_time": check_out,
            },
        )
        return record

    @staticmethod
    async def mark(
        db: AsyncSession,
        actor: Actor,
        data: AttendanceMarkRequest,
    ) -> AttendanceOut:
        """Create or overwrite the record for (staff, date)."""
        record = await AttendanceService._upsert(db, actor, data)
        logger.info(
            "attendance %s %s -> %s by %s",
            data.staff_id, data.date, data.status.value, actor.id,
        )
        return AttendanceOut.model_validate(await AttendanceService._load_record(db, record.id))

    @staticmethod
    async def mark_bulk(
        db: AsyncSession,
        actor: Actor,
        data: BulkAttendanceRequest,
    ) -> BulkAttendanceResponse:
        """Mark every entry for ``data.date``; failures are collected, not raised."""

        saved: list[uuid.UUID] = []
        errors: list[BulkAttendanceError] = []

        for entry in data.entries:
            mark = AttendanceMarkRequest(date=data.date, **entry.model_dump())
            try:
                async with db.begin_nested():
                    record = await AttendanceService._upsert(db, actor, mark)
                saved.append(record.id)
            except (AppException, IntegrityError) as exc:
                detail = exc.detail if isinstance(exc, AppException) else "Database constraint violated."
                if isinstance(exc, ValidationException) and exc.errors:
                    detail = "; ".join(m for msgs in exc.errors.values() for m in msgs)
                errors.append(BulkAttendanceError(staff_id=entry.staff_id, error=detail))

        results = [
            AttendanceOut.model_validate(await AttendanceService._load_record(db, rid))
            for rid in saved
        ]
        logger.info(
            "bulk attendance %s by %s: %d saved, %d failed",
            data.date, actor.id, len(results), len(errors),
        )
        return BulkAttendanceResponse(
            success=len(results),
            failed=len(errors),
            results=results,
            errors=errors,
        )

    # ─────────────────────────────────────────────────────────────────
    # Read
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _scoped_query(
        db: AsyncSession,
        actor: Actor,
        *,
        staff_id: Optional[uuid.UUID] = None,
        department_id: Optional[uuid.UUID] = None,
        on_date: Optional[date] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        status: Optional[AttendanceStatus] = None,
    ):
        allowed = await visible_staff_ids(
            db, actor,
            all_cap=Capability.attendance_read_all,
            team_cap=Capability.attendance_read_team,
            own_cap=Capability.attendance_read_own,
        )
        query = select(AttendanceRecord)
        if allowed is not None:
            if staff_id is not None and staff_id not in allowed:
                raise ForbiddenException("You cannot view this staff member's attendance.")
            query = query.where(AttendanceRecord.staff_id.in_(allowed))

        if staff_id is not None:
            query = query.where(AttendanceRecord.staff_id == staff_id)
        if department_id is not None:
            query = query.where(
                AttendanceRecord.staff_id.in_(
                    select(StaffMember.id).where(StaffMember.department_id == department_id)
                )
            )
        if on_date is not None:
            query = query.where(AttendanceRecord.date == on_date)
        if from_date is not None:
            query = query.where(AttendanceRecord.date >= from_date)
        if to_date is not None:
            query = query.where(AttendanceRecord.date <= to_date)
        if status is not None:
            query = query.where(AttendanceRecord.status == status)
        return query

    @staticmethod
    async def list_records(
        db: AsyncSession,
        actor: Actor,
        pagination: PaginationParams,
        *,
        staff_id: Optional[uuid.UUID] = None,
        department_id: Optional[uuid.UUID] = None,
        on_date: Optional[date] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        status: Optional[AttendanceStatus] = None,
    ) -> PaginatedResponse:
        query = await AttendanceService._scoped_query(
            db, actor,
            staff_id=staff_id,
            department_id=department_id,
            on_date=on_date,
            from_date=from_date,
            to_date=to_date,
            status=status,
        )
        query = query.options(selectinload(AttendanceRecord.staff)).order_by(
            AttendanceRecord.date.desc(), AttendanceRecord.created_at.desc(),
        )
        page = await paginate(db, query, pagination, model=AttendanceRecord)
        return PaginatedResponse[AttendanceOut](
            data=[AttendanceOut.model_validate(r) for r in page.data],
            meta=page.meta,
        )

    @staticmethod
    async def get_record(
        db: AsyncSession,
        actor: Actor,
        record_id: uuid.UUID,
    ) -> AttendanceOut:
        record = await AttendanceService._load_record(db, record_id)
        allowed = await visible_staff_ids(
            db, actor,
            all_cap=Capability.attendance_read_all,
            team_cap=Capability.attendance_read_team,
            own_cap=Capability.attendance_read_own,
        )
        if allowed is not None and record.staff_id not in allowed:
            raise ForbiddenException("You cannot view this attendance record.")
        return AttendanceOut.model_validate(record)

    # ─────────────────────────────────────────────────────────────────
    # Statistics
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def stats(
        db: AsyncSession,
        actor: Actor,
        *,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        staff_id: Optional[uuid.UUID] = None,
        department_id: Optional[uuid.UUID] = None,
    ) -> AttendanceStats:
        """Status counts, attendance percentage, average hours and a per-day breakdown.

        The range defaults to the last 30 days ending today.
        """
        to_date = to_date or date.today()
        from_date = from_date or to_date - timedelta(days=29)
        if from_date > to_date:
            raise ValidationException({"from_date": ["from_date must not be after to_date."]})

        query = await AttendanceService._scoped_query(
            db, actor,
            staff_id=staff_id,
            department_id=department_id,
            from_date=from_date,
            to_date=to_date,
        )
        records = (await db.execute(query)).scalars().all()

        counts: Counter[str] = Counter({s.value: 0 for s in AttendanceStatus})
        per_day: dict[date, Counter[str]] = defaultdict(Counter)
        hours: list[Decimal] = []
        for record in records:
            counts[record.status.value] += 1
            per_day[record.date][record.status.value] += 1
            if record.check_in_time and record.check_out_time and record.hours_worked is not None:
                hours.append(Decimal(record.hours_worked))

        total = len(records)
        percentage = round(counts[AttendanceStatus.present.value] / total * 100, 2) if total else 0.0
        average = float(
            (sum(hours) / len(hours)).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)
        ) if hours else 0.0

        return AttendanceStats(
            from_date=from_date,
            to_date=to_date,
            total_records=total,
            counts=dict(counts),
            attendance_percentage=percentage,
            average_hours=average,
            daily=[
                DailyAttendance(date=day, total=sum(c.values()), counts=dict(c))
                for day, c in sorted(per_day.items())
            ],
        )
