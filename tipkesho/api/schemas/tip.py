"""
Pydantic v2 schemas for the Tip API.

Covers:
- SendTip request (provider path and direct-ledger path)
- Tip receipt output and list envelopes

Request fields are deliberately untyped: the raw JSON values are handed to
``tipValidator`` so every malformed field is rejected with the same error
shape (``invalid_argument``) rather than a framework 422.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from tipkesho.models.tip import PaymentProvider, TipStatus


def _to_camel(name: str) -> str:
    """Convert a snake_case string to camelCase."""
    parts = name.split("_")
    return parts[0] + "".join(word.capitalize() for word in parts[1:])


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class SendTipRequest(BaseModel):
    """Request body for POST /tips and POST /tips/direct."""

    model_config = ConfigDict(
        alias_generator=_to_camel,
        populate_by_name=True,
    )

    to_creator_id: Any = Field(None, description="Recipient creator id")
    amount: Any = Field(None, description="Tip amount in KES, greater than 0")
    message: Any = Field(None, description="Optional note to the creator")
    tipper_phone_number: Any = Field(
        None, description="M-Pesa number, +2547XXXXXXXX or +2541XXXXXXXX"
    )
    tipper_email: Any = Field(None, description="Optional receipt email")
    tipper_name: Any = Field(None, description="Optional display name")

    def to_raw(self) -> dict[str, Any]:
        """Return the fields the client actually sent, keyed by wire name."""
        return self.model_dump(by_alias=True, exclude_unset=True)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class TipOut(BaseModel):
    """Tip receipt."""

    model_config = ConfigDict(
        alias_generator=_to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    id: uuid.UUID
    tx_ref: str
    from_user_id: str
    from_username: str
    to_creator_id: str
    to_creator_handle: str
    amount: Decimal
    platform_fee: Decimal
    creator_amount: Decimal
    currency: str
    message: Optional[str] = None
    payment_provider: PaymentProvider
    status: TipStatus
    last_error: Optional[str] = None
    created_at: datetime
    settled_at: Optional[datetime] = None


class SendTipResponse(BaseModel):
    model_config = ConfigDict(
        alias_generator=_to_camel,
        populate_by_name=True,
    )

    success: bool = True
    message: str
    tip: TipOut
    provider_receipt: Optional[dict[str, Any]] = None


class TipResponse(BaseModel):
    success: bool = True
    data: TipOut


class TipListResponse(BaseModel):
    success: bool = True
    data: list[TipOut]
