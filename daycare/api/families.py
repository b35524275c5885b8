"""Family management API endpoints."""

import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, Field

from daycare.api.dependencies import AdminUser, DbSession
from daycare.models import BillingCycle, ChildStatus, Family
from daycare.services.family_service import FamilyService

router = APIRouter(prefix="/api/families", tags=["families"])
logger = logging.getLogger(__name__)


class FamilyParentInput(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    phone: Optional[str] = None


class FamilyChildInput(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    date_of_birth: date
    enrollment_start_date: Optional[date] = None
    status: ChildStatus = ChildStatus.ACTIVE
    monthly_rate: Optional[Decimal] = None
    billing_cycle: BillingCycle = BillingCycle.MONTHLY
    allergies: Optional[list] = None
    medical_notes: Optional[str] = None
    notes: Optional[str] = None


class EmergencyContactInput(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    relationship: Optional[str] = None


class FamilyCreateRequest(BaseModel):
    family_name: Optional[str] = None
    notes: Optional[str] = None
    parent1: FamilyParentInput
    parent2: Optional[FamilyParentInput] = None
    child: FamilyChildInput
    emergency_contact: Optional[EmergencyContactInput] = None


class FamilyStatusRequest(BaseModel):
    is_active: bool


class FamilyParentResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    user_id: Optional[int] = None
    is_active: bool
    is_primary_contact: bool = False
    has_billing_responsibility: bool = False


class FamilyChildResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    date_of_birth: date
    status: ChildStatus
    monthly_rate: Optional[Decimal] = None
    billing_cycle: BillingCycle
    waitlist_priority: Optional[int] = None
    allergies: Optional[list] = None
    medical_notes: Optional[str] = None

    class Config:
        from_attributes = True


class FamilyResponse(BaseModel):
    id: int
    name: str
    notes: Optional[str] = None
    parents: List[FamilyParentResponse]
    children: List[FamilyChildResponse]
    primary_parent: Optional[FamilyParentResponse] = None
    total_monthly_rate: Decimal
    all_accounts_active: bool


class CredentialResponse(BaseModel):
    email: str
    password: str


class FamilyCreateResponse(BaseModel):
    message: str
    family: FamilyResponse
    passwords: List[CredentialResponse]


class FamilyDeleteResponse(BaseModel):
    message: str
    children_deleted: int
    parents_deleted: int
    parents_detached: int


def family_to_response(family: Family) -> FamilyResponse:
    """Flatten a family with parent link flags and billing totals."""
    child_ids = {child.id for child in family.children}
    parents = []
    for parent in family.parents:
        links = [link for link in parent.child_links if link.child_id in child_ids]
        parents.append(FamilyParentResponse(
            id=parent.id,
            first_name=parent.first_name,
            last_name=parent.last_name,
            email=parent.email,
            phone=parent.phone,
            user_id=parent.user_id,
            is_active=parent.is_active,
            is_primary_contact=any(link.is_primary_contact for link in links),
            has_billing_responsibility=any(link.has_billing_responsibility for link in links),
        ))
    parents.sort(key=lambda p: not p.is_primary_contact)

    total_rate = sum(
        (child.monthly_rate for child in family.children if child.monthly_rate),
        Decimal("0.00"),
    )
    return FamilyResponse(
        id=family.id,
        name=family.name,
        notes=family.notes,
        parents=parents,
        children=[FamilyChildResponse.model_validate(child) for child in family.children],
        primary_parent=parents[0] if parents else None,
        total_monthly_rate=total_rate,
        all_accounts_active=all(parent.is_active for parent in parents),
    )


@router.get("", response_model=List[FamilyResponse])
async def list_families(db: DbSession, admin: AdminUser):
    """List households with their parents, children and billing totals."""
    families = await FamilyService(db).list_families()
    return [family_to_response(family) for family in families]


@router.get("/{family_id}", response_model=FamilyResponse)
async def get_family(family_id: int, db: DbSession, admin: AdminUser):
    family = await FamilyService(db).get_family(family_id)
    return family_to_response(family)


@router.post("", response_model=FamilyCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_family(payload: FamilyCreateRequest, db: DbSession, admin: AdminUser):
    """Create parent(s), their login accounts and a first child in one step.

    The generated passwords are returned once and never stored in clear.
    """
    family, child, credentials = await FamilyService(db).create_family(
        parent1=payload.parent1.model_dump(),
        parent2=payload.parent2.model_dump() if payload.parent2 else None,
        child=payload.child.model_dump(),
        emergency_contact=payload.emergency_contact.model_dump() if payload.emergency_contact else None,
        family_name=payload.family_name,
        notes=payload.notes,
        actor=admin,
    )
    return FamilyCreateResponse(
        message="Family created successfully",
        family=family_to_response(family),
        passwords=[CredentialResponse(email=c.email, password=c.password) for c in credentials],
    )


@router.patch("/{family_id}/status")
async def set_family_status(
    family_id: int, payload: FamilyStatusRequest, db: DbSession, admin: AdminUser
):
    """Activate or deactivate every parent account in the family."""
    updated = await FamilyService(db).set_accounts_active(family_id, payload.is_active, admin)
    state = "activated" if payload.is_active else "deactivated"
    return {"message": f"Family accounts {state} successfully", "is_active": payload.is_active, "parents_updated": updated}


@router.delete("/{family_id}", response_model=FamilyDeleteResponse)
async def delete_family(
    family_id: int,
    db: DbSession,
    admin: AdminUser,
    delete_parents: bool = Query(False, description="Also delete parent records and their login accounts"),
):
    """Delete a family's children; parents are deleted or kept per delete_parents."""
    outcome = await FamilyService(db).delete_family(family_id, delete_parents, admin)
    return FamilyDeleteResponse(
        message="Family deleted successfully",
        children_deleted=outcome.children_deleted,
        parents_deleted=outcome.parents_deleted,
        parents_detached=outcome.parents_detached,
    )
