"""Attendance model."""

from datetime import date, datetime, time
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Date,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from daycare.core.database import Base


class AttendanceStatus(str, Enum):
    """Attendance status enum."""

    PRESENT = "PRESENT"
    LATE = "LATE"
    ABSENT = "ABSENT"
    SICK = "SICK"
    VACATION = "VACATION"


ABSENCE_STATUSES = (AttendanceStatus.ABSENT, AttendanceStatus.SICK, AttendanceStatus.VACATION)


class Attendance(Base):
    """Per-child, per-day check-in/check-out record."""

    __tablename__ = "attendance"
    __table_args__ = (
        UniqueConstraint("child_id", "attendance_date", name="attendance_child_date_unique"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    child_id: Mapped[int] = mapped_column(
        ForeignKey("children.id", ondelete="CASCADE"), nullable=False, index=True
    )
    attendance_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    check_in_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    check_out_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    checked_in_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    checked_out_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    parent_dropped_off: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    parent_picked_up: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    status: Mapped[AttendanceStatus] = mapped_column(
        SQLEnum(AttendanceStatus), default=AttendanceStatus.PRESENT, nullable=False
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    child: Mapped["Child"] = relationship("Child")

    def __repr__(self) -> str:
        return (
            f"<Attendance(id={self.id}, child_id={self.child_id}, "
            f"date={self.attendance_date}, status={self.status})>"
        )
