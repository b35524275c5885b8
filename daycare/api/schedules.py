"""Staff schedule API endpoints."""

import logging
from datetime import date, datetime, time, timedelta
from typing import List, Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field, model_validator
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from daycare.api.dependencies import AdminUser, DbSession, EducatorUser
from daycare.models import Schedule, ScheduleStatus, User, UserRole
from daycare.services.audit_service import log_audit
from daycare.utils.pay_calendar import add_months
from daycare.utils.timezone import now_utc
from daycare.utils.updates import update_fields

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/schedules", tags=["schedules"])

RECURRING_DEFAULT_MONTHS = 3


class ScheduleCreate(BaseModel):
    """Shift creation model."""

    user_id: int
    shift_date: date
    start_time: time
    end_time: time
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_times(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class RecurringScheduleCreate(BaseModel):
    """Weekly shift on one weekday between two dates."""

    user_id: int
    weekday: int = Field(ge=0, le=6)  # 0=Monday ... 6=Sunday
    start_time: time
    end_time: time
    start_date: date
    end_date: Optional[date] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_times(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class ScheduleUpdate(BaseModel):
    """Shift update model."""

    shift_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    status: Optional[ScheduleStatus] = None
    notes: Optional[str] = None


class ScheduleRespond(BaseModel):
    status: ScheduleStatus
    reason: Optional[str] = None


class ScheduleResponse(BaseModel):
    """Shift response model."""

    id: int
    user_id: int
    shift_date: date
    start_time: time
    end_time: time
    status: ScheduleStatus
    notes: Optional[str] = None
    decline_reason: Optional[str] = None
    responded_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    # Related objects
    user_name: Optional[str] = None

    class Config:
        from_attributes = True


def schedule_to_response(schedule: Schedule) -> ScheduleResponse:
    response = ScheduleResponse.model_validate(schedule)
    response.user_name = schedule.user.full_name if schedule.user else None
    return response


async def _get_schedule(db, schedule_id: int) -> Schedule:
    result = await db.execute(
        select(Schedule)
        .options(selectinload(Schedule.user))
        .where(Schedule.id == schedule_id)
        .execution_options(populate_existing=True)
    )
    schedule = result.scalar_one_or_none()
    if not schedule:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Schedule not found"
        )
    return schedule


async def _get_educator(db, user_id: int) -> User:
    user = await db.get(User, user_id)
    if not user or user.role != UserRole.EDUCATOR:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Educator not found"
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot schedule an inactive educator"
        )
    return user


@router.get("", response_model=List[ScheduleResponse])
async def get_schedules(
    db: DbSession,
    admin: AdminUser,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    user_id: Optional[int] = None,
    status: Optional[ScheduleStatus] = None,
):
    """Get all shifts in a date range."""
    query = select(Schedule).options(selectinload(Schedule.user))
    if date_from:
        query = query.where(Schedule.shift_date >= date_from)
    if date_to:
        query = query.where(Schedule.shift_date <= date_to)
    if user_id is not None:
        query = query.where(Schedule.user_id == user_id)
    if status:
        query = query.where(Schedule.status == status)

    result = await db.execute(query.order_by(Schedule.shift_date, Schedule.start_time))
    return [schedule_to_response(s) for s in result.scalars().all()]


@router.post("", response_model=ScheduleResponse, status_code=status.HTTP_201_CREATED)
async def create_schedule(schedule_data: ScheduleCreate, db: DbSession, admin: AdminUser):
    """Create a PENDING shift for an educator."""
    educator = await _get_educator(db, schedule_data.user_id)
    schedule = Schedule(**schedule_data.model_dump(), created_by=admin.id)
    db.add(schedule)
    await db.flush()
    await log_audit(
        db=db,
        action_type="CREATE",
        entity_type="schedule",
        entity_id=schedule.id,
        entity_name=educator.full_name,
        description=f"Scheduled {educator.full_name} on {schedule.shift_date} {schedule.start_time}-{schedule.end_time}",
        user=admin,
    )
    await db.commit()
    return schedule_to_response(await _get_schedule(db, schedule.id))


@router.post("/recurring", response_model=List[ScheduleResponse], status_code=status.HTTP_201_CREATED)
async def create_recurring_schedule(
    payload: RecurringScheduleCreate, db: DbSession, admin: AdminUser
):
    """Create one shift per week on the given weekday; three months when no end date is given."""
    educator = await _get_educator(db, payload.user_id)
    end = payload.end_date or add_months(payload.start_date, RECURRING_DEFAULT_MONTHS)
    if end < payload.start_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="end_date must be on or after start_date"
        )

    current = payload.start_date + timedelta(days=(payload.weekday - payload.start_date.weekday()) % 7)
    schedules = []
    while current <= end:
        schedules.append(Schedule(
            user_id=educator.id,
            shift_date=current,
            start_time=payload.start_time,
            end_time=payload.end_time,
            notes=payload.notes,
            created_by=admin.id,
        ))
        current += timedelta(days=7)

    db.add_all(schedules)
    await log_audit(
        db=db,
        action_type="CREATE",
        entity_type="schedule",
        entity_id=None,
        entity_name=educator.full_name,
        description=f"Created {len(schedules)} weekly shifts for {educator.full_name}",
        user=admin,
    )
    await db.commit()
    logger.info(f"Created {len(schedules)} recurring shifts for user {educator.id}")

    result = await db.execute(
        select(Schedule)
        .options(selectinload(Schedule.user))
        .where(Schedule.id.in_([s.id for s in schedules]))
        .order_by(Schedule.shift_date)
    )
    return [schedule_to_response(s) for s in result.scalars().all()]


@router.get("/mine", response_model=List[ScheduleResponse])
async def my_schedules(
    db: DbSession,
    educator: EducatorUser,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    status: Optional[ScheduleStatus] = None,
):
    """The educator's own shifts."""
    query = (
        select(Schedule)
        .options(selectinload(Schedule.user))
        .where(Schedule.user_id == educator.id)
    )
    if date_from:
        query = query.where(Schedule.shift_date >= date_from)
    if date_to:
        query = query.where(Schedule.shift_date <= date_to)
    if status:
        query = query.where(Schedule.status == status)
    result = await db.execute(query.order_by(Schedule.shift_date, Schedule.start_time))
    return [schedule_to_response(s) for s in result.scalars().all()]


@router.post("/{schedule_id}/respond", response_model=ScheduleResponse)
async def respond_to_schedule(
    schedule_id: int, payload: ScheduleRespond, db: DbSession, educator: EducatorUser
):
    """Accept or decline one of the educator's own shifts."""
    schedule = await _get_schedule(db, schedule_id)
    if schedule.user_id != educator.id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Schedule not found"
        )
    if payload.status == ScheduleStatus.PENDING:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Response must be ACCEPTED or DECLINED"
        )

    schedule.status = payload.status
    schedule.decline_reason = payload.reason if payload.status == ScheduleStatus.DECLINED else None
    schedule.responded_at = now_utc()
    await db.commit()
    logger.info(f"User {educator.id} {payload.status.value} schedule {schedule_id}")
    return schedule_to_response(await _get_schedule(db, schedule_id))


@router.get("/{schedule_id}", response_model=ScheduleResponse)
async def get_schedule(schedule_id: int, db: DbSession, admin: AdminUser):
    return schedule_to_response(await _get_schedule(db, schedule_id))


@router.patch("/{schedule_id}", response_model=ScheduleResponse)
async def update_schedule(
    schedule_id: int, schedule_data: ScheduleUpdate, db: DbSession, admin: AdminUser
):
    """Update shift."""
    schedule = await _get_schedule(db, schedule_id)
    changes = update_fields(schedule_data, Schedule)
    for key, value in changes.items():
        setattr(schedule, key, value)

    if schedule.end_time <= schedule.start_time:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="end_time must be after start_time"
        )

    await log_audit(
        db=db,
        action_type="UPDATE",
        entity_type="schedule",
        entity_id=schedule.id,
        entity_name=schedule.user.full_name if schedule.user else None,
        description=f"Updated shift {schedule.id} on {schedule.shift_date}",
        user=admin,
        changes={"after": {key: str(value) for key, value in changes.items()}},
    )
    await db.commit()
    return schedule_to_response(await _get_schedule(db, schedule_id))


@router.delete("/{schedule_id}")
async def delete_schedule(schedule_id: int, db: DbSession, admin: AdminUser):
    """Delete shift."""
    schedule = await _get_schedule(db, schedule_id)
    await log_audit(
        db=db,
        action_type="DELETE",
        entity_type="schedule",
        entity_id=schedule.id,
        entity_name=schedule.user.full_name if schedule.user else None,
        description=f"Deleted shift {schedule.id} on {schedule.shift_date}",
        user=admin,
    )
    await db.delete(schedule)
    await db.commit()
    return {"message": "Schedule deleted successfully"}
