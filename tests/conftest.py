"""Pytest configuration and fixtures for tourpricing tests.

Provides an in-memory SQLite store, an in-memory cache and a recording
progress channel.
"""

from __future__ import annotations

import os

# Must be set before tourpricing.config is first used
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from io import BytesIO
from uuid import UUID, uuid4

import pytest
import pytest_asyncio

from tourpricing.config import DBConfig, reset_config
from tourpricing.db.connection import build_engine, build_session_factory
from tourpricing.db.models import Base
from tourpricing.db.repository import PricingRepository
from tourpricing.models import ProgressEvent

HEADER = "RouteCode,SeasonCode,Date,EconomyPrice,BusinessPrice,EconomySeats,BusinessSeats"


class InMemoryCache:
    """Dict-backed stand-in for RedisCache."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}
        self.get_calls = 0

    async def get(self, key: str) -> str | None:
        self.get_calls += 1
        return self.store.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        self.store[key] = value
        self.ttls[key] = ttl_seconds

    async def incr(self, key: str) -> int:
        value = int(self.store.get(key, "0")) + 1
        self.store[key] = str(value)
        return value


class RecordingChannel:
    """Progress channel that keeps every event it is sent."""

    def __init__(self) -> None:
        self.events: list[tuple[str, ProgressEvent]] = []

    async def notify(self, connection_id: str, event: ProgressEvent) -> None:
        self.events.append((connection_id, event))

    @property
    def stages(self) -> list[str]:
        return [event.stage for _, event in self.events]


@pytest.fixture(autouse=True)
def _fresh_config():
    """Each test reads config from its own environment."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def tour_operator_id() -> UUID:
    return uuid4()


@pytest_asyncio.fixture()
async def session_factory():
    """In-memory database shared by every session of one test."""
    engine = build_engine(DBConfig(url="sqlite+aiosqlite:///:memory:"))
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield build_session_factory(engine)
    finally:
        await engine.dispose()


@pytest.fixture
def repository(session_factory) -> PricingRepository:
    return PricingRepository(session_factory)


@pytest.fixture
def cache() -> InMemoryCache:
    return InMemoryCache()


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def csv_stream():
    """Build a binary CSV stream: header plus the given data lines."""

    def _build(*lines: str, header: str = HEADER) -> BytesIO:
        text = "\n".join([header, *lines]) + "\n"
        return BytesIO(text.encode("utf-8"))

    return _build
