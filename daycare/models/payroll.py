"""Pay period, payout and time entry models."""

from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Date,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from daycare.core.database import Base
from daycare.models.user import PayFrequency


class PayPeriodStatus(str, Enum):
    """Pay period status enum."""

    OPEN = "OPEN"
    CLOSED = "CLOSED"


class TimeEntryStatus(str, Enum):
    """Time entry approval status."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class PayPeriod(Base):
    """Payroll cycle over which educator hours are aggregated."""

    __tablename__ = "pay_periods"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    frequency: Mapped[Optional[PayFrequency]] = mapped_column(
        SQLEnum(PayFrequency), nullable=True
    )
    status: Mapped[PayPeriodStatus] = mapped_column(
        SQLEnum(PayPeriodStatus), default=PayPeriodStatus.OPEN, nullable=False
    )
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # Relationships
    payouts: Mapped[list["Payout"]] = relationship(
        "Payout", back_populates="pay_period", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return (
            f"<PayPeriod(id={self.id}, name='{self.name}', "
            f"{self.start_date}..{self.end_date}, status={self.status})>"
        )


class Payout(Base):
    """Per-educator pay snapshot written when a pay period closes."""

    __tablename__ = "payouts"
    __table_args__ = (
        UniqueConstraint("pay_period_id", "user_id", name="payouts_period_user_unique"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    pay_period_id: Mapped[int] = mapped_column(
        ForeignKey("pay_periods.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    total_hours: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    gross_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    deductions: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), default=Decimal("0.00"), nullable=False
    )
    net_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # Relationships
    pay_period: Mapped["PayPeriod"] = relationship("PayPeriod", back_populates="payouts")
    user: Mapped["User"] = relationship("User")

    def __repr__(self) -> str:
        return (
            f"<Payout(id={self.id}, user_id={self.user_id}, "
            f"hours={self.total_hours}, net={self.net_amount})>"
        )


class TimeEntry(Base):
    """Hours submitted by an educator for one day, subject to approval."""

    __tablename__ = "time_entries"
    __table_args__ = (
        Index("idx_time_entries_user_date", "user_id", "entry_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    end_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    total_hours: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[TimeEntryStatus] = mapped_column(
        SQLEnum(TimeEntryStatus), default=TimeEntryStatus.PENDING, nullable=False, index=True
    )
    reviewed_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    user: Mapped["User"] = relationship("User", foreign_keys=[user_id])

    def __repr__(self) -> str:
        return (
            f"<TimeEntry(id={self.id}, user_id={self.user_id}, date={self.entry_date}, "
            f"hours={self.total_hours}, status={self.status})>"
        )
