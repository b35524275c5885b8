"""Time entry API endpoints for educators and admin review."""

import logging
from datetime import date, datetime, time
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from daycare.api.dependencies import AdminUser, DbSession, EducatorUser
from daycare.models import TimeEntry, TimeEntryStatus
from daycare.services.time_entry_service import TimeEntryService
from daycare.utils.updates import update_fields

router = APIRouter(prefix="/api/time-entries", tags=["time-entries"])
logger = logging.getLogger(__name__)


class TimeEntryCreateRequest(BaseModel):
    entry_date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    total_hours: Optional[Decimal] = Field(default=None, gt=0, le=24)
    notes: Optional[str] = None


class TimeEntryUpdateRequest(BaseModel):
    entry_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    total_hours: Optional[Decimal] = Field(default=None, gt=0, le=24)
    notes: Optional[str] = None


class RejectRequest(BaseModel):
    reason: Optional[str] = None


class BatchApproveRequest(BaseModel):
    ids: List[int] = Field(min_length=1)


class TimeEntryResponse(BaseModel):
    id: int
    user_id: int
    user_name: Optional[str] = None
    entry_date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    total_hours: Decimal
    notes: Optional[str] = None
    status: TimeEntryStatus
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: Optional[datetime] = None


def entry_to_response(entry: TimeEntry) -> TimeEntryResponse:
    return TimeEntryResponse(
        id=entry.id,
        user_id=entry.user_id,
        user_name=entry.user.full_name if entry.user else None,
        entry_date=entry.entry_date,
        start_time=entry.start_time,
        end_time=entry.end_time,
        total_hours=entry.total_hours,
        notes=entry.notes,
        status=entry.status,
        reviewed_by=entry.reviewed_by,
        reviewed_at=entry.reviewed_at,
        rejection_reason=entry.rejection_reason,
        created_at=entry.created_at,
    )


@router.get("/mine", response_model=List[TimeEntryResponse])
async def my_time_entries(
    db: DbSession,
    educator: EducatorUser,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    status: Optional[TimeEntryStatus] = None,
):
    """The educator's own entries, newest first."""
    entries = await TimeEntryService(db).list_entries(educator.id, status, date_from, date_to)
    return [entry_to_response(entry) for entry in entries]


@router.post("", response_model=TimeEntryResponse, status_code=status.HTTP_201_CREATED)
async def create_time_entry(payload: TimeEntryCreateRequest, db: DbSession, educator: EducatorUser):
    entry = await TimeEntryService(db).create_entry(
        user=educator,
        entry_date=payload.entry_date,
        start_time=payload.start_time,
        end_time=payload.end_time,
        total_hours=payload.total_hours,
        notes=payload.notes,
    )
    return entry_to_response(entry)


@router.put("/{entry_id}", response_model=TimeEntryResponse)
async def update_time_entry(
    entry_id: int, payload: TimeEntryUpdateRequest, db: DbSession, educator: EducatorUser
):
    """Edit a PENDING entry outside any closed pay period."""
    changes = update_fields(payload, TimeEntry)
    entry = await TimeEntryService(db).update_entry(entry_id, educator, changes)
    return entry_to_response(entry)


@router.delete("/{entry_id}")
async def delete_time_entry(entry_id: int, db: DbSession, educator: EducatorUser):
    await TimeEntryService(db).delete_entry(entry_id, educator)
    return {"message": "Time entry deleted"}


@router.get("", response_model=List[TimeEntryResponse])
async def list_time_entries(
    db: DbSession,
    admin: AdminUser,
    user_id: Optional[int] = None,
    status: Optional[TimeEntryStatus] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
):
    entries = await TimeEntryService(db).list_entries(user_id, status, date_from, date_to)
    return [entry_to_response(entry) for entry in entries]


@router.post("/batch-approve")
async def batch_approve(payload: BatchApproveRequest, db: DbSession, admin: AdminUser):
    """Approve several PENDING entries at once."""
    approved = await TimeEntryService(db).batch_approve(payload.ids, admin)
    return {"message": f"Approved {approved} time entries", "approved": approved}


@router.post("/{entry_id}/approve", response_model=TimeEntryResponse)
async def approve_time_entry(entry_id: int, db: DbSession, admin: AdminUser):
    entry = await TimeEntryService(db).review_entry(entry_id, TimeEntryStatus.APPROVED, admin)
    return entry_to_response(entry)


@router.post("/{entry_id}/reject", response_model=TimeEntryResponse)
async def reject_time_entry(
    entry_id: int, payload: RejectRequest, db: DbSession, admin: AdminUser
):
    entry = await TimeEntryService(db).review_entry(
        entry_id, TimeEntryStatus.REJECTED, admin, reason=payload.reason
    )
    return entry_to_response(entry)
