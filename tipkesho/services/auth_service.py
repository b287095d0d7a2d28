"""
Authentication service for the TipKesho platform.

Phone/OTP and federated login happen at the external identity provider. This
service turns a verified identity-provider token into an explicit session:

- ``open_session``    -- on login: persist an ``AuthSession`` and issue a JWT
                         whose ``jti`` is the session id
- ``resolve_session`` -- per request: decode the JWT and return a
                         ``CallerSession`` for the handler to use
- ``close_session``   -- on logout: revoke the session

No session state lives in process memory; handlers receive the
``CallerSession`` through dependency injection.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tipkesho.core.config import settings
from tipkesho.core.errors import Unauthenticated
from tipkesho.models import AuthSession, User
from tipkesho.services import directoryService

logger = logging.getLogger(__name__)

SESSION_TOKEN_TYPE = "session"


@dataclass(frozen=True)
class CallerSession:
    """The authenticated caller of a request."""
    user_id: str
    session_id: uuid.UUID
    display_name: Optional[str] = None
    email: Optional[str] = None


# ---------------------------------------------------------------------------
# Identity provider boundary
# ---------------------------------------------------------------------------

def verify_identity_token(id_token: str) -> dict:
    """Verify a token issued by the identity provider and return its claims.

    Raises:
        Unauthenticated: If the token is invalid, expired, or has no subject.
    """
    try:
        claims = jwt.decode(
            id_token,
            settings.identity_provider_secret,
            algorithms=[settings.identity_provider_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Identity token has expired.")
    except jwt.InvalidTokenError:
        raise Unauthenticated("Invalid identity token.")

    if not isinstance(claims.get("sub"), str) or not claims["sub"]:
        raise Unauthenticated("Invalid identity token: missing subject.")
    return claims


# ---------------------------------------------------------------------------
# Session lifecycle
# ---------------------------------------------------------------------------

def _encode_session_token(user_id: str, session_id: uuid.UUID, expires_at: datetime) -> str:
    payload = {
        "sub": user_id,
        "type": SESSION_TOKEN_TYPE,
        "jti": str(session_id),
        "iat": datetime.now(timezone.utc),
        "exp": expires_at,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


async def login(db: AsyncSession, id_token: str) -> tuple[User, str, datetime]:
    """Exchange an identity-provider token for a TipKesho session.

    Returns:
        Tuple of (user, session_token, expires_at).

    Raises:
        Unauthenticated: If the identity token is invalid or the identity has
                         no user profile in the directory.
    """
    claims = verify_identity_token(id_token)

    user = await directoryService.get_user(db, claims["sub"])
    if user is None:
        raise Unauthenticated("No user profile exists for this identity.")

    token, expires_at = await open_session(db, user)
    return user, token, expires_at


async def open_session(db: AsyncSession, user: User) -> tuple[str, datetime]:
    """Create a session for ``user`` and return (token, expires_at)."""
    expires_at = datetime.now(timezone.utc) + timedelta(
        minutes=settings.session_ttl_minutes
    )
    session = AuthSession(id=uuid.uuid4(), user_id=user.id, expires_at=expires_at)
    db.add(session)
    await db.commit()

    logger.info("Session opened: session=%s, user=%s", session.id, user.id)
    return _encode_session_token(user.id, session.id, expires_at), expires_at


async def resolve_session(db: AsyncSession, token: str) -> CallerSession:
    """Decode a session token and return the caller it belongs to.

    Raises:
        Unauthenticated: If the token is invalid or expired, or the session
                         has been revoked.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Session has expired.")
    except jwt.InvalidTokenError:
        raise Unauthenticated("Invalid session token.")

    if payload.get("type") != SESSION_TOKEN_TYPE:
        raise Unauthenticated("Invalid token type. Expected a session token.")

    user_id = payload.get("sub")
    if not user_id:
        raise Unauthenticated("Invalid session token: missing subject.")

    try:
        session_id = uuid.UUID(payload.get("jti"))
    except (TypeError, ValueError):
        raise Unauthenticated("Invalid session token: malformed session id.")

    result = await db.execute(
        select(User)
        .join(AuthSession, AuthSession.user_id == User.id)
        .where(
            AuthSession.id == session_id,
            AuthSession.user_id == user_id,
            AuthSession.revoked_at.is_(None),
            AuthSession.expires_at > datetime.now(timezone.utc),
        )
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise Unauthenticated("Session is no longer active.")

    return CallerSession(
        user_id=user.id,
        session_id=session_id,
        display_name=user.display_name,
        email=user.email,
    )


async def close_session(db: AsyncSession, session_id: uuid.UUID) -> bool:
    """Revoke a session. Returns False if it was already revoked."""
    result = await db.execute(
        update(AuthSession)
        .where(AuthSession.id == session_id, AuthSession.revoked_at.is_(None))
        .values(revoked_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    revoked = result.rowcount == 1
    if revoked:
        logger.info("Session closed: session=%s", session_id)
    return revoked
