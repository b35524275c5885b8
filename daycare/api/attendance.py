"""Attendance API endpoints."""

import logging
from datetime import date, datetime, time
from typing import List, Optional

from fastapi import APIRouter, Query
from pydantic import BaseModel

from daycare.api.dependencies import AdminUser, DbSession, StaffUser
from daycare.models import Attendance, AttendanceStatus, ChildStatus
from daycare.services.attendance_service import AttendanceService
from daycare.utils.attendance_notes import parse_attendance_notes
from daycare.utils.timezone import today_local

router = APIRouter(prefix="/api/attendance", tags=["attendance"])
logger = logging.getLogger(__name__)


class CheckInRequest(BaseModel):
    child_id: int
    attendance_date: Optional[date] = None
    check_in_time: Optional[time] = None
    parent_name: Optional[str] = None
    notes: Optional[str] = None


class CheckOutRequest(BaseModel):
    child_id: int
    attendance_date: Optional[date] = None
    check_out_time: Optional[time] = None
    parent_name: Optional[str] = None
    notes: Optional[str] = None


class MarkAbsentRequest(BaseModel):
    child_id: int
    attendance_date: Optional[date] = None
    status: AttendanceStatus = AttendanceStatus.ABSENT
    notes: Optional[str] = None


class AttendanceResponse(BaseModel):
    id: int
    child_id: int
    child_name: Optional[str] = None
    attendance_date: date
    check_in_time: Optional[time] = None
    check_out_time: Optional[time] = None
    checked_in_by: Optional[int] = None
    checked_out_by: Optional[int] = None
    parent_dropped_off: Optional[str] = None
    parent_picked_up: Optional[str] = None
    status: AttendanceStatus
    notes: Optional[str] = None
    drop_off_note: str = ""
    pick_up_note: str = ""
    general_notes: str = ""
    updated_at: Optional[datetime] = None


class RosterParent(BaseModel):
    id: int
    first_name: str
    last_name: str
    is_primary_contact: bool
    relationship: str


class RosterChild(BaseModel):
    id: int
    first_name: str
    last_name: str
    status: ChildStatus
    parents: List[RosterParent]


class ComplianceResponse(BaseModel):
    date: date
    ratio_kids: float
    ratio_staff: float
    kids_per_staff: float
    kids_present: int
    staff_scheduled: int
    required_staff: int
    in_compliance: bool


class AttendanceReportRow(BaseModel):
    child_id: int
    child_name: str
    total_days: int
    present_days: int
    late_days: int
    absent_days: int
    sick_days: int
    vacation_days: int
    attendance_rate: Optional[float] = None


def attendance_to_response(record: Attendance) -> AttendanceResponse:
    notes = parse_attendance_notes(record.notes)
    return AttendanceResponse(
        id=record.id,
        child_id=record.child_id,
        child_name=record.child.full_name if record.child else None,
        attendance_date=record.attendance_date,
        check_in_time=record.check_in_time,
        check_out_time=record.check_out_time,
        checked_in_by=record.checked_in_by,
        checked_out_by=record.checked_out_by,
        parent_dropped_off=record.parent_dropped_off,
        parent_picked_up=record.parent_picked_up,
        status=record.status,
        notes=record.notes,
        drop_off_note=notes.drop_off,
        pick_up_note=notes.pick_up,
        general_notes=notes.general,
        updated_at=record.updated_at,
    )


@router.get("", response_model=List[AttendanceResponse])
async def list_attendance(
    db: DbSession,
    staff: StaffUser,
    child_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    status: Optional[AttendanceStatus] = None,
):
    service = AttendanceService(db)
    await service.ensure_scheduled(staff, start_date)
    records = await service.list_records(child_id, start_date, end_date, status)
    return [attendance_to_response(record) for record in records]


@router.get("/today", response_model=List[AttendanceResponse])
async def today_attendance(db: DbSession, staff: StaffUser):
    service = AttendanceService(db)
    await service.ensure_scheduled(staff, None)
    today = today_local()
    records = await service.list_records(start_date=today, end_date=today)
    return [attendance_to_response(record) for record in records]


@router.get("/children", response_model=List[RosterChild])
async def attendance_children(
    db: DbSession,
    staff: StaffUser,
    attendance_date: Optional[date] = None,
    status: Optional[ChildStatus] = ChildStatus.ACTIVE,
):
    """Children to take attendance for, with their parents."""
    service = AttendanceService(db)
    await service.ensure_scheduled(staff, attendance_date)
    children = await service.roster(status)
    return [
        RosterChild(
            id=child.id,
            first_name=child.first_name,
            last_name=child.last_name,
            status=child.status,
            parents=[
                RosterParent(
                    id=link.parent.id,
                    first_name=link.parent.first_name,
                    last_name=link.parent.last_name,
                    is_primary_contact=link.is_primary_contact,
                    relationship=link.relationship_type,
                )
                for link in child.parent_links
            ],
        )
        for child in children
    ]


@router.get("/compliance", response_model=ComplianceResponse)
async def attendance_compliance(
    db: DbSession,
    admin: AdminUser,
    day: Optional[date] = Query(None, alias="date"),
    ratio_kids: Optional[float] = None,
    ratio_staff: Optional[float] = None,
):
    """Whether ACCEPTED staff cover the children present at the given ratio."""
    result = await AttendanceService(db).compliance(day, ratio_kids, ratio_staff)
    return ComplianceResponse(
        date=result.date,
        ratio_kids=result.ratio_kids,
        ratio_staff=result.ratio_staff,
        kids_per_staff=result.kids_per_staff,
        kids_present=result.kids_present,
        staff_scheduled=result.staff_scheduled,
        required_staff=result.required_staff,
        in_compliance=result.in_compliance,
    )


@router.get("/report", response_model=List[AttendanceReportRow])
async def attendance_report(
    db: DbSession,
    admin: AdminUser,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
):
    summaries = await AttendanceService(db).report(start_date, end_date)
    return [
        AttendanceReportRow(
            child_id=s.child_id,
            child_name=s.child_name,
            total_days=s.total_days,
            present_days=s.present_days,
            late_days=s.late_days,
            absent_days=s.absent_days,
            sick_days=s.sick_days,
            vacation_days=s.vacation_days,
            attendance_rate=s.attendance_rate,
        )
        for s in summaries
    ]


@router.post("/check-in", response_model=AttendanceResponse)
async def check_in(payload: CheckInRequest, db: DbSession, staff: StaffUser):
    service = AttendanceService(db)
    await service.ensure_scheduled(staff, payload.attendance_date)
    record = await service.check_in(
        child_id=payload.child_id,
        actor=staff,
        attendance_date=payload.attendance_date,
        check_in_time=payload.check_in_time,
        parent_name=payload.parent_name,
        notes=payload.notes,
    )
    return attendance_to_response(record)


@router.post("/check-out", response_model=AttendanceResponse)
async def check_out(payload: CheckOutRequest, db: DbSession, staff: StaffUser):
    service = AttendanceService(db)
    await service.ensure_scheduled(staff, payload.attendance_date)
    record = await service.check_out(
        child_id=payload.child_id,
        actor=staff,
        attendance_date=payload.attendance_date,
        check_out_time=payload.check_out_time,
        parent_name=payload.parent_name,
        notes=payload.notes,
    )
    return attendance_to_response(record)


@router.post("/mark-absent", response_model=AttendanceResponse)
async def mark_absent(payload: MarkAbsentRequest, db: DbSession, staff: StaffUser):
    """Record an ABSENT, SICK or VACATION day; any check-in times are cleared."""
    service = AttendanceService(db)
    await service.ensure_scheduled(staff, payload.attendance_date)
    record = await service.mark_absent(
        child_id=payload.child_id,
        actor=staff,
        attendance_date=payload.attendance_date,
        status=payload.status,
        notes=payload.notes,
    )
    return attendance_to_response(record)
