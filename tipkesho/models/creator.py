"""
SQLAlchemy model for creator profiles.

``total_tips`` and ``total_amount_received`` are running totals over settled
tips. They are only ever changed by ``tipLedger.settle_tip`` via an SQL-side
increment, never assigned from application memory.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin


class Creator(TimestampMixin, Base):
    __tablename__ = "creators"

    # Same value as the owning user's id
    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    user_id: Mapped[str] = mapped_column(
        String(128),
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )

    # Profile (denormalized from the user for display)
    tip_handle: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    full_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="Other")
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Aggregates
    total_tips: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    total_amount_received: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0.00"), server_default="0"
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="creator_profile")

    def __repr__(self) -> str:
        return (
            f"<Creator(id={self.id}, handle={self.tip_handle}, "
            f"tips={self.total_tips}, received={self.total_amount_received})>"
        )
