"""
SQLAlchemy model for the tip ledger.

A TipRecord is a point-in-time receipt: ``from_username`` and
``to_creator_handle`` are captured at creation and never refreshed, and the
fee split is computed once. Records are never deleted.
"""

import enum
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, Enum, Index, Numeric, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin

_JSON = JSON().with_variant(JSONB(), "postgresql")


class TipStatus(str, enum.Enum):
    INITIATED = "initiated"
    AWAITING_PROVIDER = "awaiting_provider"
    SETTLED = "settled"
    FAILED_INITIATION = "failed_initiation"
    ERROR_INITIATION = "error_initiation"


class PaymentProvider(str, enum.Enum):
    FLUTTERWAVE = "flutterwave"
    DIRECT = "direct"


class TipRecord(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "tips"
    __table_args__ = (
        Index("ix_tips_from_user_created", "from_user_id", "created_at"),
        Index("ix_tips_to_creator_created", "to_creator_id", "created_at"),
    )

    # Idempotency key toward the payment provider
    tx_ref: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)

    # Parties (snapshots captured at creation)
    from_user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    from_username: Mapped[str] = mapped_column(String(200), nullable=False)
    to_creator_id: Mapped[str] = mapped_column(String(128), nullable=False)
    to_creator_handle: Mapped[str] = mapped_column(String(100), nullable=False)

    # Money
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    platform_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    creator_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="KES")

    # Content
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    mpesa_phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    # Lifecycle
    payment_provider: Mapped[PaymentProvider] = mapped_column(
        Enum(
            PaymentProvider,
            name="payment_provider",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )
    status: Mapped[TipStatus] = mapped_column(
        Enum(
            TipStatus,
            name="tip_status",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=TipStatus.INITIATED,
    )
    settled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Audit (stored verbatim)
    provider_response: Mapped[Optional[dict[str, Any]]] = mapped_column(_JSON, nullable=True)
    provider_error: Mapped[Optional[dict[str, Any]]] = mapped_column(_JSON, nullable=True)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<TipRecord(id={self.id}, tx_ref={self.tx_ref}, "
            f"amount={self.amount}, status={self.status})>"
        )
