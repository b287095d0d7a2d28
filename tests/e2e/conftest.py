"""
E2E test fixtures for the TipKesho backend.

Provides:
- An in-process FastAPI test app with all routes and the error handler
  registered
- httpx AsyncClient wired via ASGI transport (no network needed)
- Each request gets its own session from the test session factory, as in
  production
- The payment gateway dependency bound to the Flutterwave stub
- Helpers to log in as a seeded user

The full route -> service -> DB flow is exercised; only the Flutterwave HTTP
endpoint is stubbed.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, AsyncGenerator

import jwt
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tipkesho.core.config import settings
from tests.conftest import CREATOR_ID, SUPPORTER_PHONE, FakeFlutterwave


# ---------------------------------------------------------------------------
# FastAPI test application
# ---------------------------------------------------------------------------

def _create_test_app(
    factory: async_sessionmaker[AsyncSession],
    provider: FakeFlutterwave,
):
    """Build a FastAPI app with all routes registered and the DB and gateway
    dependencies overridden."""
    from fastapi import FastAPI

    from tipkesho.api.deps import get_db, get_payment_gateway
    from tipkesho.api.routes.auth import router as auth_router
    from tipkesho.api.routes.creators import router as creators_router
    from tipkesho.api.routes.tips import router as tips_router
    from tipkesho.core.errors import TipKeshoError, handle_tipkesho_error

    app = FastAPI(title="TipKesho Test")
    app.add_exception_handler(TipKeshoError, handle_tipkesho_error)

    async def _override_get_db():
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_payment_gateway] = provider.gateway

    app.include_router(auth_router, prefix="/api/v1")
    app.include_router(tips_router, prefix="/api/v1")
    app.include_router(creators_router, prefix="/api/v1")

    return app


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    flutterwave: FakeFlutterwave,
) -> AsyncGenerator[AsyncClient, None]:
    """httpx AsyncClient connected to the test app via ASGI transport."""
    app = _create_test_app(session_factory, flutterwave)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def identity_token(user_id: str, *, expires_in: timedelta = timedelta(minutes=5)) -> str:
    """Mint a token the way the identity provider would after OTP login."""
    now = datetime.now(timezone.utc)
    return jwt.encode(
        {"sub": user_id, "iat": now, "exp": now + expires_in},
        settings.identity_provider_secret,
        algorithm=settings.identity_provider_algorithm,
    )


async def login(client: AsyncClient, user_id: str) -> dict[str, str]:
    """Open a session for ``user_id`` and return the Authorization header."""
    resp = await client.post(
        "/api/v1/auth/sessions", json={"idToken": identity_token(user_id)}
    )
    assert resp.status_code == 201, resp.text
    return {"Authorization": f"Bearer {resp.json()['data']['token']}"}


def tip_body(**overrides: Any) -> dict[str, Any]:
    body: dict[str, Any] = {
        "toCreatorId": CREATOR_ID,
        "amount": 100,
        "message": "Asante sana!",
        "tipperPhoneNumber": SUPPORTER_PHONE,
    }
    body.update(overrides)
    return body
