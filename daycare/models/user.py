"""User account model."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, DateTime, Enum as SQLEnum, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from daycare.core.database import Base


class UserRole(str, Enum):
    """User role enum."""

    ADMIN = "ADMIN"
    EDUCATOR = "EDUCATOR"
    PARENT = "PARENT"


class PaymentType(str, Enum):
    """How an educator is paid."""

    HOURLY = "HOURLY"
    SALARY = "SALARY"


class PayFrequency(str, Enum):
    """Payroll cycle length."""

    BI_WEEKLY = "BI_WEEKLY"
    SEMI_MONTHLY = "SEMI_MONTHLY"
    MONTHLY = "MONTHLY"


class User(Base):
    """Login account for admins, educators and parents."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[UserRole] = mapped_column(SQLEnum(UserRole), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    must_reset_password: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Payroll settings (educators)
    hourly_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    payment_type: Mapped[PaymentType] = mapped_column(
        SQLEnum(PaymentType), default=PaymentType.HOURLY, nullable=False
    )
    salary_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    pay_frequency: Mapped[PayFrequency] = mapped_column(
        SQLEnum(PayFrequency), default=PayFrequency.BI_WEEKLY, nullable=False
    )

    # Leave balances in days (educators)
    sick_days_remaining: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), default=Decimal("0"), server_default="0", nullable=False
    )
    vacation_days_remaining: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), default=Decimal("0"), server_default="0", nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    parent: Mapped[Optional["Parent"]] = relationship("Parent", back_populates="user")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role={self.role}, active={self.is_active})>"
