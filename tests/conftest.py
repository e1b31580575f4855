"""Global test fixtures and utilities for streakfarm tests"""
import random
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

from streakfarm.services.economy_service import EconomyService
from tests.fakes import FakeDatabase, FakeStore


class FrozenClock:
    """Callable clock that only moves when told to"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


# ============================================================================
# Time Fixtures
# ============================================================================

@pytest.fixture
def frozen_now():
    """Fixed 'now' for deterministic tests (mid-day UTC)"""
    return datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(frozen_now):
    return FrozenClock(frozen_now)


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def mock_db_cursor():
    """Mock database cursor with standard query results"""
    cursor = AsyncMock()
    cursor.fetchone = AsyncMock(return_value=None)
    cursor.fetchall = AsyncMock(return_value=[])
    cursor.execute = AsyncMock()
    cursor.rowcount = 0
    return cursor


@pytest.fixture
def mock_db_connection(mock_db_cursor):
    """Mock psycopg connection whose cursor() yields mock_db_cursor"""
    conn = MagicMock()
    conn.cursor.return_value.__aenter__.return_value = mock_db_cursor
    return conn


# ============================================================================
# Economy Fixtures
# ============================================================================

@pytest.fixture
def account_id():
    """Standard test account ID"""
    return str(uuid4())


@pytest.fixture
def store():
    """In-memory store with the streak and wallet badges seeded"""
    fake = FakeStore()
    fake.add_streak_badges()
    return fake


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def economy_service(store, fake_db, clock):
    """EconomyService wired to the in-memory store"""
    with store.patch_queries():
        yield EconomyService(fake_db, clock=clock, rng=random.Random(42))


@pytest.fixture
def test_api_key():
    """Standard test API key"""
    return "test_api_key_12345"
