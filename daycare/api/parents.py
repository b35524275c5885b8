"""Parent management API endpoints."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import selectinload

from daycare.api.dependencies import AdminUser, DbSession
from daycare.core.security import MIN_PASSWORD_LENGTH
from daycare.models import (
    CreditType,
    Family,
    Invoice,
    Message,
    Parent,
    ParentChild,
    ParentCredit,
    User,
)
from daycare.services.audit_service import log_audit
from daycare.services.family_service import create_parent_with_account
from daycare.services.invoice_service import OPEN_STATUSES, InvoiceService
from daycare.utils.billing import to_money
from daycare.utils.timezone import now_utc
from daycare.utils.updates import update_fields

router = APIRouter(prefix="/api/parents", tags=["parents"])
logger = logging.getLogger(__name__)


class ParentBase(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    postal_code: Optional[str] = None
    notes: Optional[str] = None


class ParentCreateRequest(ParentBase):
    family_id: Optional[int] = None
    password: Optional[str] = Field(default=None, min_length=MIN_PASSWORD_LENGTH)


class ParentUpdateRequest(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    postal_code: Optional[str] = None
    notes: Optional[str] = None
    family_id: Optional[int] = None
    is_active: Optional[bool] = None


class ParentResponse(ParentBase):
    id: int
    family_id: Optional[int] = None
    user_id: Optional[int] = None
    is_active: bool
    credit_balance: Decimal
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DirectoryChild(BaseModel):
    id: int
    first_name: str
    last_name: str
    status: str
    relationship: str
    is_primary_contact: bool
    can_pickup: bool


class DirectoryEntry(ParentResponse):
    children: List[DirectoryChild]
    unpaid_invoices: int
    outstanding_balance: Decimal


class CreditRequest(BaseModel):
    amount: Decimal = Field(gt=0)
    description: Optional[str] = None


class CreditEntryResponse(BaseModel):
    id: int
    amount: Decimal
    credit_type: CreditType
    invoice_id: Optional[int] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CreditLedgerResponse(BaseModel):
    parent_id: int
    credit_balance: Decimal
    entries: List[CreditEntryResponse]


async def _get_parent(db, parent_id: int) -> Parent:
    parent = await db.get(Parent, parent_id)
    if not parent:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Parent not found"
        )
    return parent


@router.get("", response_model=List[ParentResponse])
async def list_parents(
    db: DbSession,
    admin: AdminUser,
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
):
    """List parents, optionally filtered by name/email search and active flag."""
    query = select(Parent)
    if search:
        pattern = f"%{search}%"
        query = query.where(
            or_(
                Parent.first_name.ilike(pattern),
                Parent.last_name.ilike(pattern),
                Parent.email.ilike(pattern),
            )
        )
    if is_active is not None:
        query = query.where(Parent.is_active.is_(is_active))
    result = await db.execute(query.order_by(Parent.last_name, Parent.first_name))
    return result.scalars().all()


@router.get("/directory", response_model=List[DirectoryEntry])
async def parent_directory(db: DbSession, admin: AdminUser):
    """Parents with their children and what they still owe."""
    result = await db.execute(
        select(Parent)
        .options(selectinload(Parent.child_links).selectinload(ParentChild.child))
        .order_by(Parent.last_name, Parent.first_name)
    )
    parents = result.scalars().all()

    balances_result = await db.execute(
        select(
            Invoice.parent_id,
            func.count(Invoice.id),
            func.coalesce(func.sum(Invoice.balance_due), 0),
        )
        .where(Invoice.status.in_(OPEN_STATUSES))
        .group_by(Invoice.parent_id)
    )
    balances = {row[0]: (row[1], row[2]) for row in balances_result.all()}

    directory = []
    for parent in parents:
        unpaid, outstanding = balances.get(parent.id, (0, 0))
        entry = ParentResponse.model_validate(parent).model_dump()
        directory.append(DirectoryEntry(
            **entry,
            children=[
                DirectoryChild(
                    id=link.child.id,
                    first_name=link.child.first_name,
                    last_name=link.child.last_name,
                    status=link.child.status.value,
                    relationship=link.relationship_type,
                    is_primary_contact=link.is_primary_contact,
                    can_pickup=link.can_pickup,
                )
                for link in parent.child_links
            ],
            unpaid_invoices=unpaid,
            outstanding_balance=to_money(outstanding),
        ))
    return directory


@router.get("/{parent_id}", response_model=ParentResponse)
async def get_parent(parent_id: int, db: DbSession, admin: AdminUser):
    return await _get_parent(db, parent_id)


@router.post("", response_model=ParentResponse, status_code=status.HTTP_201_CREATED)
async def create_parent(payload: ParentCreateRequest, db: DbSession, admin: AdminUser):
    """Create a parent; a login account is created when email and password are given."""
    if payload.family_id is not None and await db.get(Family, payload.family_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Family not found"
        )

    parent_data = payload.model_dump(exclude={"family_id", "password"})
    parent = await create_parent_with_account(
        db, parent_data, payload.password, family_id=payload.family_id
    )
    await log_audit(
        db=db,
        action_type="CREATE",
        entity_type="parent",
        entity_id=parent.id,
        entity_name=parent.full_name,
        description=f"Created parent {parent.full_name}",
        user=admin,
    )
    await db.commit()
    await db.refresh(parent)
    logger.info(f"Created parent {parent.id}")
    return parent


@router.patch("/{parent_id}", response_model=ParentResponse)
async def update_parent(
    parent_id: int, payload: ParentUpdateRequest, db: DbSession, admin: AdminUser
):
    parent = await _get_parent(db, parent_id)
    changes = update_fields(payload, Parent)
    before = {key: str(getattr(parent, key)) for key in changes}

    for key, value in changes.items():
        setattr(parent, key, value)
    parent.updated_at = now_utc()

    # Keep the login account in step with the contact record
    if parent.user_id and ("is_active" in changes or "first_name" in changes or "last_name" in changes):
        user = await db.get(User, parent.user_id)
        if user is not None:
            user.is_active = parent.is_active
            user.first_name = parent.first_name
            user.last_name = parent.last_name

    await log_audit(
        db=db,
        action_type="UPDATE",
        entity_type="parent",
        entity_id=parent.id,
        entity_name=parent.full_name,
        description=f"Updated parent {parent.full_name}",
        user=admin,
        changes={"before": before, "after": {key: str(value) for key, value in changes.items()}},
    )
    await db.commit()
    await db.refresh(parent)
    return parent


@router.delete("/{parent_id}")
async def delete_parent(parent_id: int, db: DbSession, admin: AdminUser):
    """Delete a parent without billing history, together with its login account."""
    parent = await _get_parent(db, parent_id)

    invoice_count = await db.execute(
        select(func.count(Invoice.id)).where(Invoice.parent_id == parent_id)
    )
    if invoice_count.scalar():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Parent has invoices; deactivate instead of deleting"
        )

    name = parent.full_name
    user_id = parent.user_id
    await db.execute(delete(ParentChild).where(ParentChild.parent_id == parent_id))
    await db.execute(delete(ParentCredit).where(ParentCredit.parent_id == parent_id))
    await db.execute(
        delete(Message).where(or_(Message.from_parent_id == parent_id, Message.to_parent_id == parent_id))
    )
    await db.execute(delete(Parent).where(Parent.id == parent_id))
    if user_id:
        await db.execute(delete(User).where(User.id == user_id))

    await log_audit(
        db=db,
        action_type="DELETE",
        entity_type="parent",
        entity_id=parent_id,
        entity_name=name,
        description=f"Deleted parent {name}",
        user=admin,
    )
    await db.commit()
    return {"message": "Parent deleted successfully"}


@router.get("/{parent_id}/credits", response_model=CreditLedgerResponse)
async def get_parent_credits(parent_id: int, db: DbSession, admin: AdminUser):
    """Credit balance and ledger of a parent."""
    parent = await _get_parent(db, parent_id)
    result = await db.execute(
        select(ParentCredit)
        .where(ParentCredit.parent_id == parent_id)
        .order_by(ParentCredit.created_at.desc(), ParentCredit.id.desc())
    )
    return CreditLedgerResponse(
        parent_id=parent.id,
        credit_balance=parent.credit_balance,
        entries=[CreditEntryResponse.model_validate(entry) for entry in result.scalars().all()],
    )


@router.post("/{parent_id}/credits", response_model=CreditLedgerResponse)
async def add_parent_credit(
    parent_id: int, payload: CreditRequest, db: DbSession, admin: AdminUser
):
    """Add account credit (refund, overpayment, goodwill) to a parent."""
    await _get_parent(db, parent_id)
    await InvoiceService(db).add_credit(parent_id, payload.amount, payload.description, admin)
    return await get_parent_credits(parent_id, db, admin)
