"""Staff time-off request model."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import Date, DateTime, Enum as SQLEnum, ForeignKey, Index, Integer, Numeric, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from daycare.core.database import Base


class TimeOffType(str, Enum):
    """Kind of leave; SICK and VACATION draw down the matching balance."""

    SICK = "SICK"
    VACATION = "VACATION"
    UNPAID = "UNPAID"


class TimeOffStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class TimeOffRequest(Base):
    """Leave requested by a staff member for a date range, or part of one day."""

    __tablename__ = "time_off_requests"
    __table_args__ = (
        Index("idx_time_off_user_status", "user_id", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    request_type: Mapped[TimeOffType] = mapped_column(SQLEnum(TimeOffType), nullable=False)
    hours: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[TimeOffStatus] = mapped_column(
        SQLEnum(TimeOffStatus), default=TimeOffStatus.PENDING, nullable=False
    )
    reviewed_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    review_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    user: Mapped["User"] = relationship("User", foreign_keys=[user_id])

    def __repr__(self) -> str:
        return (
            f"<TimeOffRequest(id={self.id}, user_id={self.user_id}, {self.request_type}, "
            f"{self.start_date}..{self.end_date}, status={self.status})>"
        )
