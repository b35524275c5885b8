"""Message model."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from daycare.core.database import Base


class Message(Base):
    """Message between staff and a parent.

    Exactly one sender column and one recipient column is set: staff-side
    parties are users, family-side parties are parents.
    """

    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    from_user_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    from_parent_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("parents.id", ondelete="CASCADE"), nullable=True
    )
    to_user_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    to_parent_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("parents.id", ondelete="CASCADE"), nullable=True, index=True
    )
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), index=True
    )

    # Relationships
    from_user: Mapped[Optional["User"]] = relationship("User", foreign_keys=[from_user_id])
    to_user: Mapped[Optional["User"]] = relationship("User", foreign_keys=[to_user_id])
    from_parent: Mapped[Optional["Parent"]] = relationship("Parent", foreign_keys=[from_parent_id])
    to_parent: Mapped[Optional["Parent"]] = relationship("Parent", foreign_keys=[to_parent_id])

    def __repr__(self) -> str:
        return f"<Message(id={self.id}, subject='{self.subject}', read={self.is_read})>"
