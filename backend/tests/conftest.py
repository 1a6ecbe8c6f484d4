"""
Best Shot Backend — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the entire test suite.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── db:               creates the schema on a throwaway SQLite file,
    │                     seeds it, drops it afterwards
    ├── session_factory:  async_sessionmaker bound to that database
    ├── db_session:       one session from the factory
    ├── feed / aggregator / vote_svc / admin_svc:
    │                     services wired to a private change feed
    ├── test_client:      HTTPX AsyncClient against the FastAPI app
    └── live_client:      Starlette TestClient with the lifespan (WebSockets)

Seed data:
    participants  ABC123 "김철수 님" (oldest), XYZ789 "이영희", PQR456 "박민수 님"
    photos        1..15, even ids carry a thumbnail url
"""

import asyncio
import os
import tempfile
from datetime import datetime, timedelta, timezone

# Settings are read at import time; point them at a throwaway database
# before any bestshot module is imported
_TEST_DIR = tempfile.mkdtemp(prefix="bestshot_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/bestshot.db"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["CODE_GUESS_LIMIT"] = "1000"
os.environ["RETRY_MIN_WAIT"] = "0"
os.environ["RETRY_MAX_WAIT"] = "0"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select

from bestshot import database
from bestshot.database import Base
from bestshot.models import Participant, Photo, Selection  # noqa: F401
from bestshot.services.admin_service import AdminService
from bestshot.services.change_feed import SelectionChangeFeed
from bestshot.services.tally_service import TallyAggregator
from bestshot.services.vote_service import VoteService

SEED_T0 = datetime(2025, 5, 3, 9, 0, tzinfo=timezone.utc)
PHOTO_COUNT = 15


def make_photo(photo_id: int) -> Photo:
    return Photo(
        id=photo_id,
        url=f"https://img.example.com/{photo_id}.jpg",
        thumbnail_url=f"https://img.example.com/thumbs/{photo_id}.jpg" if photo_id % 2 == 0 else None,
    )


# ══════════════════════════════════════════════════════════════════════════
# Database fixtures (SQLite via aiosqlite)
# ══════════════════════════════════════════════════════════════════════════

async def create_seeded_schema(engine) -> None:
    # WAL lets concurrent submissions wait for each other instead of
    # failing with "database is locked"
    async with engine.connect() as conn:
        await conn.exec_driver_sql("PRAGMA journal_mode=WAL")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with database.async_session_factory() as session:
        session.add_all(
            [
                Participant(name="김철수 님", code="ABC123", created_at=SEED_T0),
                Participant(name="이영희", code="XYZ789", created_at=SEED_T0 + timedelta(minutes=1)),
                Participant(name="박민수 님", code="PQR456", created_at=SEED_T0 + timedelta(minutes=2)),
            ]
        )
        session.add_all([make_photo(i) for i in range(1, PHOTO_COUNT + 1)])
        await session.commit()


async def drop_schema(engine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db():
    """
    Fresh schema plus seed rows for one test.

    The engine is disposed on teardown: pooled aiosqlite connections belong
    to the event loop of the test that opened them.
    """
    await create_seeded_schema(database.engine)
    yield database.engine
    await drop_schema(database.engine)


@pytest.fixture
def session_factory(db):
    return database.async_session_factory


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


# ══════════════════════════════════════════════════════════════════════════
# Services wired to a private change feed
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def feed():
    return SelectionChangeFeed()


@pytest_asyncio.fixture
async def aggregator(feed, session_factory):
    agg = TallyAggregator(feed, session_factory)
    yield agg
    await agg.stop()


@pytest.fixture
def vote_svc(feed, aggregator):
    return VoteService(feed=feed, aggregator=aggregator)


@pytest.fixture
def admin_svc(feed):
    return AdminService(feed=feed)


# ══════════════════════════════════════════════════════════════════════════
# HTTP client
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client(db):
    """
    HTTPX AsyncClient routed straight into the ASGI app.

    ASGITransport does not run the lifespan, so the live tally aggregator is
    not started; vote pages fall back to reading voters from the ledger.
    """
    from bestshot.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def live_client():
    """
    Starlette TestClient with the lifespan running, for WebSocket tests.

    The app runs on the client's own event loop, so the schema is built and
    torn down with asyncio.run around it and the engine disposed each time.
    """
    from starlette.testclient import TestClient

    from bestshot.main import app

    async def _setup():
        await create_seeded_schema(database.engine)
        await database.engine.dispose()

    asyncio.run(_setup())
    try:
        with TestClient(app) as client:
            yield client
    finally:
        asyncio.run(drop_schema(database.engine))


@pytest.fixture
def submit_rows():
    """Writes a completed ballot directly, bypassing the service."""

    async def _submit(session, code: str, photo_ids):
        result = await session.execute(select(Participant).where(Participant.code == code))
        participant = result.scalar_one()
        now = datetime.now(timezone.utc)
        session.add_all(
            [Selection(participant_id=participant.id, photo_id=pid, created_at=now) for pid in photo_ids]
        )
        participant.selected_count = 10
        participant.is_completed = True
        participant.completed_at = now
        await session.commit()
        return participant

    return _submit
