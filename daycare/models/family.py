"""Family model."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from daycare.core.database import Base


class Family(Base):
    """Household grouping of parents and children for billing and contact."""

    __tablename__ = "families"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # Relationships
    parents: Mapped[list["Parent"]] = relationship(
        "Parent", back_populates="family", order_by="Parent.id"
    )
    children: Mapped[list["Child"]] = relationship(
        "Child", back_populates="family", order_by="Child.id"
    )

    def __repr__(self) -> str:
        return f"<Family(id={self.id}, name='{self.name}')>"
