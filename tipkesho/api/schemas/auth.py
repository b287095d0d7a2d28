"""
Pydantic v2 schemas for session endpoints.

All models use camelCase field names on the wire via ``alias_generator``
together with ``populate_by_name=True`` so both snake_case and camelCase are
accepted for construction.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def _to_camel(name: str) -> str:
    """Convert a snake_case string to camelCase."""
    parts = name.split("_")
    return parts[0] + "".join(word.capitalize() for word in parts[1:])


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class LoginRequest(BaseModel):
    """Request body for POST /auth/sessions."""

    model_config = ConfigDict(
        alias_generator=_to_camel,
        populate_by_name=True,
    )

    id_token: str = Field(
        ...,
        min_length=1,
        description="Token issued by the identity provider after phone/OTP or federated login",
    )


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class UserOut(BaseModel):
    model_config = ConfigDict(
        alias_generator=_to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    id: str
    username: Optional[str] = None
    full_name: Optional[str] = None
    email: Optional[str] = None
    is_creator: bool = False


class SessionOut(BaseModel):
    model_config = ConfigDict(
        alias_generator=_to_camel,
        populate_by_name=True,
    )

    token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: UserOut


class SessionResponse(BaseModel):
    """Envelope for POST /auth/sessions."""

    model_config = ConfigDict(
        alias_generator=_to_camel,
        populate_by_name=True,
    )

    success: bool = True
    data: SessionOut


class MessageResponse(BaseModel):
    success: bool = True
    message: str
