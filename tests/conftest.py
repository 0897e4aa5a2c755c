"""Shared test fixtures and configuration."""

import os
from datetime import datetime, timezone

import pytest

# In-memory SQLite during tests; Redis is never connected, so the debounce
# cache runs on its in-memory fallback
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SEARCH_LOG_DEBOUNCE_SECONDS", "300")

from searchlog.clock import FrozenClock  # noqa: E402
from searchlog.config import Settings  # noqa: E402
from searchlog.database import make_engine, make_session_factory  # noqa: E402
from searchlog.models import Base  # noqa: E402
from searchlog.service import SearchLogService  # noqa: E402
from searchlog.services.debounce import DebounceCache  # noqa: E402
from searchlog.services.store import SearchLogStore  # noqa: E402

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Thursday afternoon, well away from midnight
FROZEN_AT = datetime(2019, 5, 23, 18, 15, 30, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    return FrozenClock(FROZEN_AT)


@pytest.fixture
def test_settings():
    return Settings(
        database_url=TEST_DATABASE_URL,
        search_log_debounce_seconds=300,
        search_log_debounce_prefix_only=False,
        search_query_log_max_size=1_000_000,
    )


@pytest.fixture
async def engine():
    """Fresh in-memory database with tables created."""
    engine = make_engine(TEST_DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def cache(clock, test_settings):
    """Debounce cache without Redis, running on the frozen clock."""
    return DebounceCache(ttl_seconds=test_settings.search_log_debounce_seconds, clock=clock)


@pytest.fixture
def store(session_factory, clock):
    return SearchLogStore(session_factory, clock=clock)


@pytest.fixture
def service(session_factory, cache, clock, test_settings):
    return SearchLogService(session_factory, cache=cache, clock=clock, settings=test_settings)
