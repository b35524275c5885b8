"""Staff shift schedule model."""

from datetime import date, datetime, time
from enum import Enum
from typing import Optional

from sqlalchemy import Date, DateTime, Enum as SQLEnum, ForeignKey, Index, Integer, Text, Time, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from daycare.core.database import Base


class ScheduleStatus(str, Enum):
    """Shift response status."""

    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"


class Schedule(Base):
    """A shift an educator is scheduled to work."""

    __tablename__ = "schedules"
    __table_args__ = (
        Index("idx_schedules_user_date", "user_id", "shift_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    shift_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    status: Mapped[ScheduleStatus] = mapped_column(
        SQLEnum(ScheduleStatus), default=ScheduleStatus.PENDING, nullable=False
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    decline_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    responded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # Relationships
    user: Mapped["User"] = relationship("User", foreign_keys=[user_id])

    def __repr__(self) -> str:
        return (
            f"<Schedule(id={self.id}, user_id={self.user_id}, date={self.shift_date}, "
            f"{self.start_time}-{self.end_time}, status={self.status})>"
        )
