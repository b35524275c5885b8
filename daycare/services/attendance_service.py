"""Attendance service: check-in/check-out, absences, ratio compliance and reports."""

import logging
import math
from dataclasses import dataclass
from datetime import date, time, timedelta
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from daycare.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from daycare.core.settings import settings
from daycare.models import (
    ABSENCE_STATUSES,
    Attendance,
    AttendanceStatus,
    Child,
    ChildStatus,
    ParentChild,
    Schedule,
    ScheduleStatus,
    User,
    UserRole,
)
from daycare.utils.attendance_notes import merge_attendance_notes
from daycare.utils.timezone import current_local_time, now_utc, today_local

logger = logging.getLogger(__name__)

REPORT_DEFAULT_DAYS = 30


def is_present(record: Attendance) -> bool:
    """A record counts as present unless it is an absence."""
    if record.status in ABSENCE_STATUSES:
        return False
    if record.check_in_time or record.check_out_time:
        return True
    return record.status in (AttendanceStatus.PRESENT, AttendanceStatus.LATE)


@dataclass
class ComplianceResult:
    date: date
    ratio_kids: float
    ratio_staff: float
    kids_per_staff: float
    kids_present: int
    staff_scheduled: int
    required_staff: int

    @property
    def in_compliance(self) -> bool:
        return self.staff_scheduled >= self.required_staff


@dataclass
class ChildAttendanceSummary:
    child_id: int
    child_name: str
    total_days: int
    present_days: int
    late_days: int
    absent_days: int
    sick_days: int
    vacation_days: int

    @property
    def attendance_rate(self) -> Optional[float]:
        if not self.total_days:
            return None
        return round(self.present_days * 100.0 / self.total_days, 2)


class AttendanceService:
    """Service for daily child attendance."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def ensure_scheduled(self, user: User, day: Optional[date]) -> None:
        """Educators may only work attendance on a day they have a PENDING or ACCEPTED shift."""
        if user.role == UserRole.ADMIN:
            return
        target = day or today_local()
        result = await self.db.execute(
            select(Schedule.id)
            .where(
                Schedule.user_id == user.id,
                Schedule.shift_date == target,
                Schedule.status.in_((ScheduleStatus.PENDING, ScheduleStatus.ACCEPTED)),
            )
            .limit(1)
        )
        if result.scalar_one_or_none() is None:
            raise PermissionDeniedError(
                "Attendance access requires a scheduled shift on the requested date"
            )

    async def _get_child(self, child_id: int) -> Child:
        child = await self.db.get(Child, child_id)
        if not child:
            raise NotFoundError("Child not found")
        return child

    async def _get_record(self, child_id: int, day: date) -> Optional[Attendance]:
        result = await self.db.execute(
            select(Attendance).where(
                Attendance.child_id == child_id,
                Attendance.attendance_date == day,
            )
        )
        return result.scalar_one_or_none()

    async def _reload(self, record_id: int) -> Attendance:
        result = await self.db.execute(
            select(Attendance)
            .options(selectinload(Attendance.child))
            .where(Attendance.id == record_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def list_records(
        self,
        child_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[AttendanceStatus] = None,
    ) -> List[Attendance]:
        query = select(Attendance).options(selectinload(Attendance.child))
        if child_id is not None:
            query = query.where(Attendance.child_id == child_id)
        if start_date:
            query = query.where(Attendance.attendance_date >= start_date)
        if end_date:
            query = query.where(Attendance.attendance_date <= end_date)
        if status:
            query = query.where(Attendance.status == status)
        result = await self.db.execute(
            query.order_by(Attendance.attendance_date.desc(), Attendance.check_in_time.desc())
        )
        return list(result.scalars().all())

    async def roster(self, status: Optional[ChildStatus] = ChildStatus.ACTIVE) -> List[Child]:
        """Children for the attendance screen with their parents."""
        query = select(Child).options(
            selectinload(Child.parent_links).selectinload(ParentChild.parent)
        )
        if status:
            query = query.where(Child.status == status)
        result = await self.db.execute(query.order_by(Child.last_name, Child.first_name))
        return list(result.scalars().all())

    async def check_in(
        self,
        child_id: int,
        actor: User,
        attendance_date: Optional[date] = None,
        check_in_time: Optional[time] = None,
        parent_name: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Attendance:
        """Create or update the day's record with a check-in."""
        await self._get_child(child_id)
        day = attendance_date or today_local()
        record = await self._get_record(child_id, day)

        if record is None:
            record = Attendance(child_id=child_id, attendance_date=day)
            self.db.add(record)
        else:
            record.updated_at = now_utc()

        record.check_in_time = check_in_time or current_local_time()
        record.checked_in_by = actor.id
        record.parent_dropped_off = parent_name
        record.status = AttendanceStatus.PRESENT
        if notes is not None:
            record.notes = merge_attendance_notes(record.notes, drop_off=notes)

        await self.db.commit()
        logger.info(f"Checked in child {child_id} on {day} at {record.check_in_time}")
        return await self._reload(record.id)

    async def check_out(
        self,
        child_id: int,
        actor: User,
        attendance_date: Optional[date] = None,
        check_out_time: Optional[time] = None,
        parent_name: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Attendance:
        """Complete the day's record with a check-out."""
        await self._get_child(child_id)
        day = attendance_date or today_local()
        record = await self._get_record(child_id, day)
        if record is None:
            raise NotFoundError("No check-in record found for the specified date")
        if record.check_in_time is None:
            raise ValidationError("Child has not been checked in on the specified date")

        out_time = check_out_time or current_local_time()
        if out_time < record.check_in_time:
            raise ValidationError("Check-out time cannot be earlier than check-in time")

        record.check_out_time = out_time
        record.checked_out_by = actor.id
        record.parent_picked_up = parent_name
        if notes is not None:
            record.notes = merge_attendance_notes(record.notes, pick_up=notes)
        record.updated_at = now_utc()

        await self.db.commit()
        logger.info(f"Checked out child {child_id} on {day} at {out_time}")
        return await self._reload(record.id)

    async def mark_absent(
        self,
        child_id: int,
        actor: User,
        attendance_date: Optional[date] = None,
        status: AttendanceStatus = AttendanceStatus.ABSENT,
        notes: Optional[str] = None,
    ) -> Attendance:
        if status not in ABSENCE_STATUSES:
            raise ValidationError("Status must be ABSENT, SICK or VACATION")
        await self._get_child(child_id)
        day = attendance_date or today_local()
        record = await self._get_record(child_id, day)

        if record is None:
            record = Attendance(child_id=child_id, attendance_date=day, checked_in_by=actor.id)
            self.db.add(record)
        else:
            record.updated_at = now_utc()

        record.status = status
        record.check_in_time = None
        record.check_out_time = None
        record.parent_dropped_off = None
        record.parent_picked_up = None
        if notes is not None:
            record.notes = merge_attendance_notes(record.notes, general=notes)

        await self.db.commit()
        logger.info(f"Marked child {child_id} {status.value} on {day}")
        return await self._reload(record.id)

    async def compliance(
        self,
        day: Optional[date] = None,
        ratio_kids: Optional[float] = None,
        ratio_staff: Optional[float] = None,
    ) -> ComplianceResult:
        """Compare children present against ACCEPTED staff for a kids-to-staff ratio."""
        kids = settings.ratio_kids if ratio_kids is None else ratio_kids
        staff = settings.ratio_staff if ratio_staff is None else ratio_staff
        if not math.isfinite(kids) or kids <= 0:
            raise ValidationError("ratio_kids must be a positive number")
        if not math.isfinite(staff) or staff <= 0:
            raise ValidationError("ratio_staff must be a positive number")

        target = day or today_local()
        records = await self.db.execute(
            select(Attendance).where(Attendance.attendance_date == target)
        )
        present = sum(1 for record in records.scalars().all() if is_present(record))

        staff_result = await self.db.execute(
            select(func.count(func.distinct(Schedule.user_id))).where(
                Schedule.shift_date == target,
                Schedule.status == ScheduleStatus.ACCEPTED,
            )
        )
        staff_scheduled = staff_result.scalar() or 0

        kids_per_staff = kids / staff
        return ComplianceResult(
            date=target,
            ratio_kids=kids,
            ratio_staff=staff,
            kids_per_staff=kids_per_staff,
            kids_present=present,
            staff_scheduled=staff_scheduled,
            required_staff=math.ceil(present / kids_per_staff),
        )

    async def report(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> List[ChildAttendanceSummary]:
        """Per-child day counts for active children; defaults to the last 30 days."""
        end = end_date or today_local()
        start = start_date or end - timedelta(days=REPORT_DEFAULT_DAYS)
        if start > end:
            raise ValidationError("start_date must be on or before end_date")

        children = await self.db.execute(
            select(Child)
            .where(Child.status == ChildStatus.ACTIVE)
            .order_by(Child.first_name, Child.last_name)
        )
        summaries = {
            child.id: ChildAttendanceSummary(
                child_id=child.id,
                child_name=child.full_name,
                total_days=0,
                present_days=0,
                late_days=0,
                absent_days=0,
                sick_days=0,
                vacation_days=0,
            )
            for child in children.scalars().all()
        }
        if not summaries:
            return []

        counts = await self.db.execute(
            select(Attendance.child_id, Attendance.status, func.count(Attendance.id))
            .where(
                Attendance.child_id.in_(list(summaries)),
                Attendance.attendance_date >= start,
                Attendance.attendance_date <= end,
            )
            .group_by(Attendance.child_id, Attendance.status)
        )
        fields = {
            AttendanceStatus.PRESENT: "present_days",
            AttendanceStatus.LATE: "late_days",
            AttendanceStatus.ABSENT: "absent_days",
            AttendanceStatus.SICK: "sick_days",
            AttendanceStatus.VACATION: "vacation_days",
        }
        for child_id, status, count in counts.all():
            summary = summaries[child_id]
            summary.total_days += count
            field = fields[status]
            setattr(summary, field, getattr(summary, field) + count)

        return list(summaries.values())
