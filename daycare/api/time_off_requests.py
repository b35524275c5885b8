"""Time-off request API endpoints for staff and admin review."""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from daycare.api.dependencies import AdminUser, DbSession, StaffUser
from daycare.models import TimeOffRequest, TimeOffStatus, TimeOffType
from daycare.services.time_off_service import TimeOffService, days_requested

router = APIRouter(prefix="/api/time-off-requests", tags=["time-off"])
logger = logging.getLogger(__name__)


class TimeOffCreateRequest(BaseModel):
    start_date: date
    end_date: date
    request_type: TimeOffType
    reason: Optional[str] = None
    hours: Optional[Decimal] = Field(default=None, gt=0, le=24)


class TimeOffRejectRequest(BaseModel):
    reason: Optional[str] = None


class TimeOffResponse(BaseModel):
    id: int
    user_id: int
    user_name: Optional[str] = None
    start_date: date
    end_date: date
    request_type: TimeOffType
    hours: Optional[Decimal] = None
    days: Decimal
    reason: Optional[str] = None
    status: TimeOffStatus
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    review_note: Optional[str] = None
    created_at: Optional[datetime] = None


def request_to_response(request: TimeOffRequest) -> TimeOffResponse:
    return TimeOffResponse(
        id=request.id,
        user_id=request.user_id,
        user_name=request.user.full_name if request.user else None,
        start_date=request.start_date,
        end_date=request.end_date,
        request_type=request.request_type,
        hours=request.hours,
        days=days_requested(request),
        reason=request.reason,
        status=request.status,
        reviewed_by=request.reviewed_by,
        reviewed_at=request.reviewed_at,
        review_note=request.review_note,
        created_at=request.created_at,
    )


@router.post("", response_model=TimeOffResponse, status_code=status.HTTP_201_CREATED)
async def create_time_off_request(payload: TimeOffCreateRequest, db: DbSession, staff: StaffUser):
    """Request leave for a date range, or some hours of a single day."""
    request = await TimeOffService(db).create_request(
        user=staff,
        start_date=payload.start_date,
        end_date=payload.end_date,
        request_type=payload.request_type,
        reason=payload.reason,
        hours=payload.hours,
    )
    return request_to_response(request)


@router.get("/mine", response_model=List[TimeOffResponse])
async def my_time_off_requests(db: DbSession, staff: StaffUser):
    requests = await TimeOffService(db).list_requests(user_id=staff.id)
    return [request_to_response(request) for request in requests]


@router.get("", response_model=List[TimeOffResponse])
async def list_time_off_requests(
    db: DbSession,
    admin: AdminUser,
    status: Optional[TimeOffStatus] = None,
    user_id: Optional[int] = None,
):
    requests = await TimeOffService(db).list_requests(user_id=user_id, status=status)
    return [request_to_response(request) for request in requests]


@router.post("/{request_id}/approve", response_model=TimeOffResponse)
async def approve_time_off_request(request_id: int, db: DbSession, admin: AdminUser):
    """Approve a PENDING request; sick and vacation leave come off the staff balance."""
    request = await TimeOffService(db).approve(request_id, admin)
    return request_to_response(request)


@router.post("/{request_id}/reject", response_model=TimeOffResponse)
async def reject_time_off_request(
    request_id: int, db: DbSession, admin: AdminUser, payload: Optional[TimeOffRejectRequest] = None
):
    note = payload.reason if payload else None
    request = await TimeOffService(db).reject(request_id, admin, note)
    return request_to_response(request)


@router.delete("/{request_id}")
async def cancel_time_off_request(request_id: int, db: DbSession, staff: StaffUser):
    """Withdraw one of your own PENDING requests."""
    await TimeOffService(db).cancel(request_id, staff)
    return {"message": "Request cancelled"}
