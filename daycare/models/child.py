"""Child enrollment and emergency contact models."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from daycare.core.database import Base


class ChildStatus(str, Enum):
    """Enrollment status enum."""

    ACTIVE = "ACTIVE"
    WAITLIST = "WAITLIST"
    INACTIVE = "INACTIVE"
    ENROLLED = "ENROLLED"


class BillingCycle(str, Enum):
    """How often a child's tuition is billed."""

    WEEKLY = "WEEKLY"
    BI_WEEKLY = "BI_WEEKLY"
    MONTHLY = "MONTHLY"


class Child(Base):
    """Child enrollment record."""

    __tablename__ = "children"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    family_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("families.id", ondelete="CASCADE"), nullable=True, index=True
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    date_of_birth: Mapped[date] = mapped_column(Date, nullable=False)
    enrollment_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    enrollment_end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    status: Mapped[ChildStatus] = mapped_column(
        SQLEnum(ChildStatus), default=ChildStatus.ACTIVE, nullable=False, index=True
    )
    monthly_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    billing_cycle: Mapped[BillingCycle] = mapped_column(
        SQLEnum(BillingCycle), default=BillingCycle.MONTHLY, nullable=False
    )
    allergies: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    medical_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    waitlist_priority: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Profile photo stored on disk
    photo_path: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    photo_mime_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    photo_uploaded_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    family: Mapped[Optional["Family"]] = relationship("Family", back_populates="children")
    parent_links: Mapped[list["ParentChild"]] = relationship(
        "ParentChild", back_populates="child", cascade="all, delete-orphan"
    )
    emergency_contacts: Mapped[list["EmergencyContact"]] = relationship(
        "EmergencyContact",
        back_populates="child",
        cascade="all, delete-orphan",
        order_by="EmergencyContact.id",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"<Child(id={self.id}, name='{self.full_name}', status={self.status})>"


class EmergencyContact(Base):
    """Person to call when no parent can be reached."""

    __tablename__ = "emergency_contacts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    child_id: Mapped[int] = mapped_column(
        ForeignKey("children.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[str] = mapped_column(String(50), nullable=False)
    relationship_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # Relationships
    child: Mapped["Child"] = relationship("Child", back_populates="emergency_contacts")

    def __repr__(self) -> str:
        return f"<EmergencyContact(id={self.id}, child_id={self.child_id}, name='{self.name}')>"
