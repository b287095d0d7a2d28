"""
Shared FastAPI dependencies for the TipKesho backend.

Provides the async database session dependency used by all route handlers,
the caller-session dependency that resolves a Bearer token to a
``CallerSession``, and the payment gateway dependency.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Annotated, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tipkesho.core.config import settings
from tipkesho.core.errors import Unauthenticated
from tipkesho.integrations.flutterwave import FlutterwaveGateway
from tipkesho.services import auth_service
from tipkesho.services.auth_service import CallerSession

# ---------------------------------------------------------------------------
# Async engine & session factory
# ---------------------------------------------------------------------------
# The engine is created once at module import time.  The session factory
# produces lightweight ``AsyncSession`` instances that are scoped to a single
# request via the ``get_db`` dependency below.
# ---------------------------------------------------------------------------

engine = create_async_engine(
    settings.database_url,
    echo=settings.sql_echo,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session scoped to one request.

    Services commit at their own durable points; anything left pending when
    the handler raises is rolled back here.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


DBSession = Annotated[AsyncSession, Depends(get_db)]


# ---------------------------------------------------------------------------
# Authentication dependencies
# ---------------------------------------------------------------------------

_bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_session(
    credentials: Annotated[
        Optional[HTTPAuthorizationCredentials], Depends(_bearer_scheme)
    ],
    db: DBSession,
) -> CallerSession:
    """Resolve the Bearer token to the caller's session.

    Raises ``Unauthenticated`` (401) if the token is missing, expired, or
    belongs to a revoked session.
    """
    if credentials is None:
        raise Unauthenticated("The function must be called while authenticated.")
    return await auth_service.resolve_session(db, credentials.credentials)


CurrentSession = Annotated[CallerSession, Depends(get_current_session)]


# ---------------------------------------------------------------------------
# Payment gateway
# ---------------------------------------------------------------------------

def get_payment_gateway() -> FlutterwaveGateway:
    """Return the payment gateway. Tests override this with a stubbed transport."""
    return FlutterwaveGateway()


PaymentGateway = Annotated[FlutterwaveGateway, Depends(get_payment_gateway)]
