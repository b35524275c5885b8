"""Time entry service: educator hour submissions and admin review."""

import logging
from datetime import date, time
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from daycare.core.exceptions import NotFoundError, ValidationError
from daycare.models import TimeEntry, TimeEntryStatus, User
from daycare.services.audit_service import log_audit
from daycare.services.payroll_service import PayrollService
from daycare.utils.timezone import hours_between, now_utc

logger = logging.getLogger(__name__)

REVIEW_ACTIONS = {
    TimeEntryStatus.APPROVED: "APPROVE",
    TimeEntryStatus.REJECTED: "REJECT",
}


def resolve_total_hours(
    total_hours: Optional[Decimal],
    start_time: Optional[time],
    end_time: Optional[time],
) -> Decimal:
    """Use the given hours, or derive them from the start and end times."""
    if total_hours is not None:
        if total_hours <= 0:
            raise ValidationError("Total hours must be greater than zero")
        return total_hours
    if start_time is None or end_time is None:
        raise ValidationError("Entry date and total hours are required")
    if end_time <= start_time:
        raise ValidationError("End time must be after start time")
    return Decimal(str(hours_between(start_time, end_time)))


class TimeEntryService:
    """Service for educator time entries."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.payroll = PayrollService(db)

    async def _reload(self, entry_id: int) -> TimeEntry:
        result = await self.db.execute(
            select(TimeEntry)
            .options(selectinload(TimeEntry.user))
            .where(TimeEntry.id == entry_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def _ensure_open(self, day: date, action: str) -> None:
        if await self.payroll.closed_period_for(day):
            raise ValidationError(f"Cannot {action} entries in a closed pay period")

    async def get_own_entry(self, entry_id: int, user: User) -> TimeEntry:
        result = await self.db.execute(
            select(TimeEntry).where(TimeEntry.id == entry_id, TimeEntry.user_id == user.id)
        )
        entry = result.scalar_one_or_none()
        if not entry:
            raise NotFoundError("Time entry not found")
        return entry

    async def list_entries(
        self,
        user_id: Optional[int] = None,
        status: Optional[TimeEntryStatus] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> List[TimeEntry]:
        query = select(TimeEntry).options(selectinload(TimeEntry.user))
        if user_id is not None:
            query = query.where(TimeEntry.user_id == user_id)
        if status:
            query = query.where(TimeEntry.status == status)
        if date_from:
            query = query.where(TimeEntry.entry_date >= date_from)
        if date_to:
            query = query.where(TimeEntry.entry_date <= date_to)
        result = await self.db.execute(
            query.order_by(TimeEntry.entry_date.desc(), TimeEntry.id.desc())
        )
        return list(result.scalars().all())

    async def create_entry(
        self,
        user: User,
        entry_date: date,
        start_time: Optional[time] = None,
        end_time: Optional[time] = None,
        total_hours: Optional[Decimal] = None,
        notes: Optional[str] = None,
    ) -> TimeEntry:
        hours = resolve_total_hours(total_hours, start_time, end_time)
        await self._ensure_open(entry_date, "add")

        entry = TimeEntry(
            user_id=user.id,
            entry_date=entry_date,
            start_time=start_time,
            end_time=end_time,
            total_hours=hours,
            notes=notes,
        )
        self.db.add(entry)
        await self.db.commit()
        logger.info(f"User {user.id} logged {hours}h on {entry_date}")
        return await self._reload(entry.id)

    async def update_entry(self, entry_id: int, user: User, changes: dict) -> TimeEntry:
        entry = await self.get_own_entry(entry_id, user)
        if entry.status != TimeEntryStatus.PENDING:
            raise ValidationError("Cannot edit approved or rejected entries")
        await self._ensure_open(changes.get("entry_date") or entry.entry_date, "edit")
        if changes.get("entry_date") and changes["entry_date"] != entry.entry_date:
            await self._ensure_open(entry.entry_date, "edit")

        for key in ("entry_date", "start_time", "end_time", "notes"):
            if key in changes:
                setattr(entry, key, changes[key])

        if changes.get("total_hours") is not None:
            entry.total_hours = resolve_total_hours(changes["total_hours"], None, None)
        elif "start_time" in changes or "end_time" in changes:
            entry.total_hours = resolve_total_hours(None, entry.start_time, entry.end_time)

        entry.updated_at = now_utc()
        await self.db.commit()
        return await self._reload(entry.id)

    async def delete_entry(self, entry_id: int, user: User) -> None:
        entry = await self.get_own_entry(entry_id, user)
        if entry.status != TimeEntryStatus.PENDING:
            raise ValidationError("Cannot delete approved or rejected entries")
        await self._ensure_open(entry.entry_date, "delete")
        await self.db.delete(entry)
        await self.db.commit()

    async def review_entry(
        self,
        entry_id: int,
        new_status: TimeEntryStatus,
        reviewer: User,
        reason: Optional[str] = None,
    ) -> TimeEntry:
        """Approve or reject a single entry."""
        entry = await self.db.get(TimeEntry, entry_id)
        if not entry:
            raise NotFoundError("Time entry not found")
        await self._ensure_open(entry.entry_date, "review")

        entry.status = new_status
        entry.reviewed_by = reviewer.id
        entry.reviewed_at = now_utc()
        entry.rejection_reason = reason if new_status == TimeEntryStatus.REJECTED else None
        entry.updated_at = now_utc()

        await log_audit(
            db=self.db,
            action_type=REVIEW_ACTIONS[new_status],
            entity_type="time_entry",
            entity_id=entry.id,
            entity_name=f"{entry.entry_date} ({entry.total_hours}h)",
            description=f"{new_status.value.capitalize()} time entry {entry.id} for user {entry.user_id}",
            user=reviewer,
            changes={"reason": reason} if reason else None,
        )
        await self.db.commit()
        return await self._reload(entry.id)

    async def batch_approve(self, entry_ids: List[int], reviewer: User) -> int:
        """Approve every PENDING entry in entry_ids outside closed periods."""
        result = await self.db.execute(
            select(TimeEntry).where(
                TimeEntry.id.in_(entry_ids),
                TimeEntry.status == TimeEntryStatus.PENDING,
            )
        )
        approved = 0
        for entry in result.scalars().all():
            if await self.payroll.closed_period_for(entry.entry_date):
                logger.warning(f"Skipping time entry {entry.id}: pay period closed")
                continue
            entry.status = TimeEntryStatus.APPROVED
            entry.reviewed_by = reviewer.id
            entry.reviewed_at = now_utc()
            entry.rejection_reason = None
            approved += 1

        if approved:
            await log_audit(
                db=self.db,
                action_type="APPROVE",
                entity_type="time_entry",
                entity_id=None,
                entity_name=None,
                description=f"Batch approved {approved} time entries",
                user=reviewer,
                changes={"ids": entry_ids},
            )
        await self.db.commit()
        return approved
