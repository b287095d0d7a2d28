"""
Shared pytest fixtures for TipKesho backend tests.

Provides:
- A file-backed async SQLite database per test, configured so that every
  transaction takes the write lock up front (``BEGIN IMMEDIATE``). Concurrent
  sessions then serialize the way row locks do on PostgreSQL instead of
  failing with "database is locked" on lock upgrade.
- Seeded directory data: a supporter, a creator, and an outsider.
- A stub Flutterwave API built on ``httpx.MockTransport`` so the real gateway
  code runs without network access.
"""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Any, AsyncGenerator, Optional

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from tipkesho.integrations.flutterwave import FlutterwaveGateway
from tipkesho.models import Base, Creator, User

# ---------------------------------------------------------------------------
# Test IDs (stable across tests so cross-references work)
# ---------------------------------------------------------------------------

SUPPORTER_USER_ID = "uid-supporter-0001"
CREATOR_USER_ID = "uid-creator-0001"
CREATOR_ID = CREATOR_USER_ID
CREATOR_HANDLE = "baraka_beats"
OUTSIDER_USER_ID = "uid-outsider-0001"
UNKNOWN_CREATOR_ID = "abcdefghij-missing"

SUPPORTER_PHONE = "+254712345678"
TEST_SECRET_KEY = "FLWSECK_TEST-0123456789abcdef-X"


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

def _build_engine(db_path: Path) -> AsyncEngine:
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{db_path}",
        echo=False,
        connect_args={"timeout": 30},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, _):
        # Let SQLAlchemy, not the driver, emit BEGIN
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


@pytest_asyncio.fixture
async def db_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    engine = _build_engine(tmp_path / "tipkesho-test.db")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test database, with directory seed data."""
    factory = async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with factory() as session:
        await _seed_directory(session)
    return factory


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------

async def _seed_directory(db: AsyncSession) -> None:
    supporter = User(
        id=SUPPORTER_USER_ID,
        username="wanjiku",
        full_name="Wanjiku Kamau",
        email="wanjiku@example.com",
        phone_number=SUPPORTER_PHONE,
        is_creator=False,
    )
    creator_user = User(
        id=CREATOR_USER_ID,
        username="baraka",
        full_name="Baraka Otieno",
        email="baraka@example.com",
        is_creator=True,
    )
    outsider = User(id=OUTSIDER_USER_ID, username=None, full_name=None, email=None)
    db.add_all([supporter, creator_user, outsider])
    await db.flush()

    db.add(
        Creator(
            id=CREATOR_ID,
            user_id=CREATOR_USER_ID,
            tip_handle=CREATOR_HANDLE,
            full_name="Baraka Otieno",
            category="Music",
            total_tips=0,
            total_amount_received=Decimal("0.00"),
        )
    )
    await db.commit()


async def read_creator_totals(
    factory: async_sessionmaker[AsyncSession],
    creator_id: str = CREATOR_ID,
) -> tuple[int, Decimal]:
    """Read a creator's aggregate through a fresh session."""
    from tipkesho.services import directoryService

    async with factory() as session:
        stats = await directoryService.get_creator_stats(session, creator_id)
    assert stats is not None
    return stats.total_tips, stats.total_amount_received


# ---------------------------------------------------------------------------
# Flutterwave stub
# ---------------------------------------------------------------------------

class FakeFlutterwave:
    """In-process stand-in for the Flutterwave ``/payments`` endpoint.

    Every request is recorded. Configure the reply with ``respond`` or make
    the call fail with ``fail_with``.
    """

    def __init__(self) -> None:
        self.secret_key: Optional[str] = TEST_SECRET_KEY
        self.requests: list[httpx.Request] = []
        self._status_code = 200
        self._body: Any = {
            "status": "success",
            "message": "Charge initiated",
            "data": {"flw_ref": "FLW-MOCK-0001"},
        }
        self._exc: Optional[Exception] = None

    def respond(self, status_code: int, body: Any) -> None:
        self._status_code = status_code
        self._body = body
        self._exc = None

    def fail_with(self, exc: Exception) -> None:
        self._exc = exc

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self._exc is not None:
            raise self._exc
        if isinstance(self._body, (dict, list)):
            return httpx.Response(self._status_code, json=self._body)
        return httpx.Response(self._status_code, text=str(self._body))

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    def gateway(self) -> FlutterwaveGateway:
        return FlutterwaveGateway(
            credential_provider=lambda: self.secret_key,
            base_url="https://flutterwave.test/v3",
            timeout_seconds=5,
            transport=self.transport,
        )


@pytest.fixture
def flutterwave() -> FakeFlutterwave:
    return FakeFlutterwave()
