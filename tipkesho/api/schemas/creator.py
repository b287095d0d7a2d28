"""
Pydantic v2 schemas for creator read endpoints.
"""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict


def _to_camel(name: str) -> str:
    """Convert a snake_case string to camelCase."""
    parts = name.split("_")
    return parts[0] + "".join(word.capitalize() for word in parts[1:])


class CreatorStatsOut(BaseModel):
    model_config = ConfigDict(
        alias_generator=_to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    creator_id: str
    tip_handle: str
    total_tips: int
    total_amount_received: Decimal


class CreatorStatsResponse(BaseModel):
    success: bool = True
    data: CreatorStatsOut
