"""
Tip Request Validator
=====================

Validates and normalizes an incoming tip request and computes the platform
fee split. Pure functions only: no database or network access.

Fee split::

    platform_fee   = round(amount * fee_rate, 2)
    creator_amount = round(amount - platform_fee, 2)

Both roundings are ROUND_HALF_UP to the currency minor unit, so
``platform_fee + creator_amount == amount`` always holds.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from tipkesho.core.errors import InvalidArgument

MONEY_QUANT = Decimal("0.01")

# Safaricom / Airtel mobile-money numbers: +254 then 7 or 1, then 8 digits
MPESA_PHONE_REGEX = re.compile(r"^\+254[17]\d{8}$")
MPESA_PHONE_FORMAT = "+2547XXXXXXXX or +2541XXXXXXXX"

AMOUNT_ERROR = "amount must be greater than 0"


@dataclass(frozen=True)
class NormalizedTipRequest:
    """A validated tip request with the amount as an exact 2-dp Decimal."""
    to_creator_id: str
    amount: Decimal
    message: Optional[str]
    tipper_phone_number: Optional[str]
    tipper_email: Optional[str] = None
    tipper_name: Optional[str] = None


@dataclass(frozen=True)
class FeeSplit:
    amount: Decimal
    platform_fee: Decimal
    creator_amount: Decimal


def _to_money(value: Any) -> Decimal:
    """Convert a JSON number to a positive 2-dp Decimal."""
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise InvalidArgument(AMOUNT_ERROR)
    # str() first so 333.33 stays 333.33 instead of its binary expansion
    amount = Decimal(str(value))
    if not amount.is_finite():
        raise InvalidArgument(AMOUNT_ERROR)
    try:
        amount = amount.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise InvalidArgument(AMOUNT_ERROR)
    if amount <= 0:
        raise InvalidArgument(AMOUNT_ERROR)
    return amount


def _optional_str(data: Mapping[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidArgument(f"{key} must be a string")
    value = value.strip()
    return value or None


def compute_fee_split(amount: Decimal, fee_rate: Decimal) -> FeeSplit:
    """Split ``amount`` into the platform fee and the creator's share."""
    platform_fee = (amount * fee_rate).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)
    creator_amount = (amount - platform_fee).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)
    return FeeSplit(
        amount=amount,
        platform_fee=platform_fee,
        creator_amount=creator_amount,
    )


def validate_tip_request(
    data: Mapping[str, Any],
    *,
    require_phone: bool = True,
) -> NormalizedTipRequest:
    """Validate a raw tip request and return its normalized form.

    Args:
        data: Raw request fields keyed by their wire names (``toCreatorId``,
              ``amount``, ``message``, ``tipperPhoneNumber``, ``tipperEmail``,
              ``tipperName``).
        require_phone: Whether a mobile-money phone number is mandatory. The
              direct-ledger path has no STK push and passes False.

    Raises:
        InvalidArgument: On the first field that fails validation.
    """
    to_creator_id = data.get("toCreatorId")
    if not isinstance(to_creator_id, str) or not to_creator_id.strip():
        raise InvalidArgument("Invalid creator ID.")

    amount = _to_money(data.get("amount"))

    message = data.get("message")
    if message is not None and not isinstance(message, str):
        raise InvalidArgument("Invalid message format.")
    message = (message or "").strip() or None

    phone = data.get("tipperPhoneNumber")
    if phone is None and not require_phone:
        normalized_phone = None
    elif not isinstance(phone, str) or not MPESA_PHONE_REGEX.fullmatch(phone):
        raise InvalidArgument(
            f"Invalid tipper phone number. Format: {MPESA_PHONE_FORMAT}."
        )
    else:
        normalized_phone = phone

    return NormalizedTipRequest(
        to_creator_id=to_creator_id.strip(),
        amount=amount,
        message=message,
        tipper_phone_number=normalized_phone,
        tipper_email=_optional_str(data, "tipperEmail"),
        tipper_name=_optional_str(data, "tipperName"),
    )
