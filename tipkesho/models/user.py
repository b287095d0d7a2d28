"""
SQLAlchemy model for the users table.

User ids are the identity provider's uid, not generated locally.
"""

from typing import Optional

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin


class User(TimestampMixin, Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)

    # Profile
    username: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    full_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)
    phone_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    # Roles
    is_creator: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Relationships
    creator_profile: Mapped[Optional["Creator"]] = relationship(
        "Creator", back_populates="user", uselist=False
    )

    @property
    def display_name(self) -> Optional[str]:
        return self.full_name or self.username

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username={self.username})>"
