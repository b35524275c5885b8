"""Staff account management API endpoints."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy import func, select

from daycare.api.dependencies import AdminUser, DbSession
from daycare.core.security import MIN_PASSWORD_LENGTH, get_password_hash
from daycare.models import PayFrequency, PaymentType, User, UserRole
from daycare.services.audit_service import log_audit
from daycare.utils.timezone import now_utc
from daycare.utils.updates import update_fields

router = APIRouter(prefix="/api/users", tags=["users"])
logger = logging.getLogger(__name__)


class StaffCreateRequest(BaseModel):
    email: str
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)
    first_name: str
    last_name: str
    role: UserRole = UserRole.EDUCATOR
    hourly_rate: Optional[Decimal] = None
    payment_type: PaymentType = PaymentType.HOURLY
    salary_amount: Optional[Decimal] = None
    pay_frequency: PayFrequency = PayFrequency.BI_WEEKLY
    sick_days_remaining: Decimal = Field(default=Decimal("0"), ge=0)
    vacation_days_remaining: Decimal = Field(default=Decimal("0"), ge=0)


class StaffUpdateRequest(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    hourly_rate: Optional[Decimal] = None
    payment_type: Optional[PaymentType] = None
    salary_amount: Optional[Decimal] = None
    pay_frequency: Optional[PayFrequency] = None
    sick_days_remaining: Optional[Decimal] = None
    vacation_days_remaining: Optional[Decimal] = None
    is_active: Optional[bool] = None


class StaffResponse(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: str
    role: UserRole
    is_active: bool
    hourly_rate: Optional[Decimal] = None
    payment_type: PaymentType
    salary_amount: Optional[Decimal] = None
    pay_frequency: PayFrequency
    sick_days_remaining: Decimal
    vacation_days_remaining: Decimal
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


@router.get("", response_model=List[StaffResponse])
async def list_staff(
    db: DbSession,
    admin: AdminUser,
    role: Optional[UserRole] = None,
    include_inactive: bool = True,
):
    """List staff accounts (admins and educators)."""
    query = select(User).where(User.role != UserRole.PARENT)
    if role:
        query = query.where(User.role == role)
    if not include_inactive:
        query = query.where(User.is_active.is_(True))
    result = await db.execute(query.order_by(User.last_name, User.first_name))
    return result.scalars().all()


@router.post("", response_model=StaffResponse, status_code=status.HTTP_201_CREATED)
async def create_staff(payload: StaffCreateRequest, db: DbSession, admin: AdminUser):
    """Create an educator or admin account."""
    if payload.role == UserRole.PARENT:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Parent accounts are created through families or parents",
        )

    email = payload.email.strip().lower()
    existing = await db.execute(select(User.id).where(func.lower(User.email) == email))
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already in use",
        )

    user = User(
        email=email,
        password_hash=get_password_hash(payload.password),
        first_name=payload.first_name,
        last_name=payload.last_name,
        role=payload.role,
        hourly_rate=payload.hourly_rate,
        payment_type=payload.payment_type,
        salary_amount=payload.salary_amount,
        pay_frequency=payload.pay_frequency,
        sick_days_remaining=payload.sick_days_remaining,
        vacation_days_remaining=payload.vacation_days_remaining,
    )
    db.add(user)
    await db.flush()

    await log_audit(
        db=db,
        action_type="CREATE",
        entity_type="user",
        entity_id=user.id,
        entity_name=user.full_name,
        description=f"Created {user.role.value.lower()} account {user.email}",
        user=admin,
    )
    await db.commit()
    await db.refresh(user)

    logger.info(f"Created staff account {user.id} ({user.email})")
    return user


@router.patch("/{user_id}", response_model=StaffResponse)
async def update_staff(
    user_id: int, payload: StaffUpdateRequest, db: DbSession, admin: AdminUser
):
    """Update names, pay settings or the active flag of a staff account."""
    user = await db.get(User, user_id)
    if not user or user.role == UserRole.PARENT:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Staff member not found",
        )
    if user.id == admin.id and payload.is_active is False:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot deactivate your own account",
        )

    changes = update_fields(payload, User)
    before = {key: str(getattr(user, key)) for key in changes}
    for key, value in changes.items():
        setattr(user, key, value)
    user.updated_at = now_utc()

    await log_audit(
        db=db,
        action_type="UPDATE",
        entity_type="user",
        entity_id=user.id,
        entity_name=user.full_name,
        description=f"Updated staff account {user.email}",
        user=admin,
        changes={"before": before, "after": {key: str(value) for key, value in changes.items()}},
    )
    await db.commit()
    await db.refresh(user)
    return user
