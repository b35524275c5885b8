"""Child management API endpoints."""

import logging
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, File, HTTPException, UploadFile, status
from fastapi.responses import FileResponse
from pydantic import BaseModel, Field

from daycare.api.dependencies import AdminUser, DbSession
from daycare.core.settings import settings
from daycare.models import BillingCycle, Child, ChildStatus, EmergencyContact
from daycare.services.child_service import ChildService
from daycare.services.storage import PHOTO_TYPES, save_upload
from daycare.utils.updates import update_fields

router = APIRouter(prefix="/api/children", tags=["children"])
logger = logging.getLogger(__name__)


class ChildCreateRequest(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    date_of_birth: date
    enrollment_start_date: Optional[date] = None
    enrollment_end_date: Optional[date] = None
    status: ChildStatus = ChildStatus.ACTIVE
    waitlist_priority: Optional[int] = Field(default=None, ge=1)
    monthly_rate: Optional[Decimal] = Field(default=None, ge=0)
    billing_cycle: BillingCycle = BillingCycle.MONTHLY
    allergies: Optional[list] = None
    medical_notes: Optional[str] = None
    notes: Optional[str] = None
    family_id: Optional[int] = None
    parent_ids: List[int] = []


class ChildUpdateRequest(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    date_of_birth: Optional[date] = None
    enrollment_start_date: Optional[date] = None
    enrollment_end_date: Optional[date] = None
    status: Optional[ChildStatus] = None
    waitlist_priority: Optional[int] = Field(default=None, ge=1)
    monthly_rate: Optional[Decimal] = Field(default=None, ge=0)
    billing_cycle: Optional[BillingCycle] = None
    allergies: Optional[list] = None
    medical_notes: Optional[str] = None
    notes: Optional[str] = None


class LinkParentRequest(BaseModel):
    parent_id: int
    relationship: str = "Parent"
    is_primary_contact: bool = False
    can_pickup: bool = True
    has_billing_responsibility: bool = False


class EmergencyContactRequest(BaseModel):
    name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    relationship_type: Optional[str] = None
    is_primary: bool = False


class EmergencyContactUpdateRequest(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    relationship_type: Optional[str] = None
    is_primary: Optional[bool] = None


class EmergencyContactResponse(BaseModel):
    id: int
    name: str
    phone: str
    relationship_type: Optional[str] = None
    is_primary: bool

    class Config:
        from_attributes = True


class ChildParentResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    relationship: str
    is_primary_contact: bool
    can_pickup: bool
    has_billing_responsibility: bool


class ChildResponse(BaseModel):
    id: int
    family_id: Optional[int] = None
    first_name: str
    last_name: str
    date_of_birth: date
    enrollment_start_date: date
    enrollment_end_date: Optional[date] = None
    status: ChildStatus
    waitlist_priority: Optional[int] = None
    monthly_rate: Optional[Decimal] = None
    billing_cycle: BillingCycle
    allergies: Optional[list] = None
    medical_notes: Optional[str] = None
    notes: Optional[str] = None
    has_photo: bool = False
    photo_uploaded_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    parents: List[ChildParentResponse] = []


class ChildDetailResponse(ChildResponse):
    emergency_contacts: List[EmergencyContactResponse] = []


def child_to_response(child: Child, detail: bool = False) -> ChildResponse:
    data = dict(
        id=child.id,
        family_id=child.family_id,
        first_name=child.first_name,
        last_name=child.last_name,
        date_of_birth=child.date_of_birth,
        enrollment_start_date=child.enrollment_start_date,
        enrollment_end_date=child.enrollment_end_date,
        status=child.status,
        waitlist_priority=child.waitlist_priority,
        monthly_rate=child.monthly_rate,
        billing_cycle=child.billing_cycle,
        allergies=child.allergies,
        medical_notes=child.medical_notes,
        notes=child.notes,
        has_photo=bool(child.photo_path),
        photo_uploaded_at=child.photo_uploaded_at,
        created_at=child.created_at,
        parents=[
            ChildParentResponse(
                id=link.parent.id,
                first_name=link.parent.first_name,
                last_name=link.parent.last_name,
                email=link.parent.email,
                phone=link.parent.phone,
                relationship=link.relationship_type,
                is_primary_contact=link.is_primary_contact,
                can_pickup=link.can_pickup,
                has_billing_responsibility=link.has_billing_responsibility,
            )
            for link in sorted(child.parent_links, key=lambda link: not link.is_primary_contact)
        ],
    )
    if detail:
        return ChildDetailResponse(
            **data,
            emergency_contacts=[
                EmergencyContactResponse.model_validate(c) for c in child.emergency_contacts
            ],
        )
    return ChildResponse(**data)


@router.get("", response_model=List[ChildResponse])
async def list_children(
    db: DbSession,
    admin: AdminUser,
    status: Optional[ChildStatus] = None,
    search: Optional[str] = None,
    family_id: Optional[int] = None,
):
    """List children; with status=WAITLIST they come back in priority order."""
    children = await ChildService(db).list_children(status, search, family_id)
    return [child_to_response(child) for child in children]


@router.get("/{child_id}", response_model=ChildDetailResponse)
async def get_child(child_id: int, db: DbSession, admin: AdminUser):
    child = await ChildService(db).get_child(child_id)
    return child_to_response(child, detail=True)


@router.post("", response_model=ChildDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_child(payload: ChildCreateRequest, db: DbSession, admin: AdminUser):
    """Create a child and link the given parents; the first one is the primary contact."""
    data = payload.model_dump(exclude={"parent_ids", "waitlist_priority"})
    child = await ChildService(db).create_child(
        data, payload.parent_ids, admin, waitlist_priority=payload.waitlist_priority
    )
    return child_to_response(child, detail=True)


@router.patch("/{child_id}", response_model=ChildDetailResponse)
async def update_child(
    child_id: int, payload: ChildUpdateRequest, db: DbSession, admin: AdminUser
):
    """Update a child; status changes assign or clear the waitlist position."""
    changes = update_fields(payload, Child)
    child = await ChildService(db).update_child(child_id, changes, admin)
    return child_to_response(child, detail=True)


@router.delete("/{child_id}")
async def delete_child(child_id: int, db: DbSession, admin: AdminUser):
    await ChildService(db).delete_child(child_id, admin)
    return {"message": "Child deleted successfully"}


@router.post("/{child_id}/parents", response_model=ChildDetailResponse)
async def link_parent(
    child_id: int, payload: LinkParentRequest, db: DbSession, admin: AdminUser
):
    child = await ChildService(db).link_parent(
        child_id,
        payload.parent_id,
        admin,
        relationship_type=payload.relationship,
        is_primary_contact=payload.is_primary_contact,
        can_pickup=payload.can_pickup,
        has_billing_responsibility=payload.has_billing_responsibility,
    )
    return child_to_response(child, detail=True)


@router.delete("/{child_id}/parents/{parent_id}", response_model=ChildDetailResponse)
async def unlink_parent(child_id: int, parent_id: int, db: DbSession, admin: AdminUser):
    child = await ChildService(db).unlink_parent(child_id, parent_id, admin)
    return child_to_response(child, detail=True)


@router.get("/{child_id}/emergency-contacts", response_model=List[EmergencyContactResponse])
async def list_emergency_contacts(child_id: int, db: DbSession, admin: AdminUser):
    child = await ChildService(db).get_child(child_id)
    return child.emergency_contacts


@router.post(
    "/{child_id}/emergency-contacts",
    response_model=EmergencyContactResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_emergency_contact(
    child_id: int, payload: EmergencyContactRequest, db: DbSession, admin: AdminUser
):
    return await ChildService(db).add_emergency_contact(child_id, payload.model_dump())


@router.patch("/{child_id}/emergency-contacts/{contact_id}", response_model=EmergencyContactResponse)
async def update_emergency_contact(
    child_id: int,
    contact_id: int,
    payload: EmergencyContactUpdateRequest,
    db: DbSession,
    admin: AdminUser,
):
    return await ChildService(db).update_emergency_contact(
        child_id, contact_id, update_fields(payload, EmergencyContact)
    )


@router.delete("/{child_id}/emergency-contacts/{contact_id}")
async def delete_emergency_contact(
    child_id: int, contact_id: int, db: DbSession, admin: AdminUser
):
    await ChildService(db).delete_emergency_contact(child_id, contact_id)
    return {"message": "Emergency contact deleted"}


@router.post("/{child_id}/photo", response_model=ChildResponse)
async def upload_photo(
    child_id: int,
    db: DbSession,
    admin: AdminUser,
    file: UploadFile = File(...),
):
    """Upload a JPG, PNG or WEBP photo, replacing any existing one."""
    service = ChildService(db)
    await service.get_child(child_id)
    stored = await save_upload(file, "photos", PHOTO_TYPES, settings.max_photo_mb)
    child = await service.set_photo(child_id, stored, admin)
    return child_to_response(child)


@router.get("/{child_id}/photo")
async def get_photo(child_id: int, db: DbSession, admin: AdminUser):
    child = await ChildService(db).get_child(child_id)
    if not child.photo_path or not Path(child.photo_path).exists():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Photo not found"
        )
    return FileResponse(child.photo_path, media_type=child.photo_mime_type)


@router.delete("/{child_id}/photo")
async def delete_photo(child_id: int, db: DbSession, admin: AdminUser):
    await ChildService(db).remove_photo(child_id, admin)
    return {"message": "Photo deleted"}
