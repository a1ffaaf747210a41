"""
Test configuration and fixtures for the Traytic API.
This centralizes all test setup, making individual tests clean.
"""

import os

# Settings are read at import time; point everything at throwaway local state
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("STORE_SQLITE_PATH", "./test_analytics.db")
os.environ.setdefault("CACHE_BACKEND", "memory")
os.environ.setdefault("INSERT_WORKER_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from main import app
from traytic_app.auth.session import AuthUser, get_current_user
from traytic_app.cache.strategies import MemorySiteCache
from traytic_app.database.connection import Base, engine, SessionLocal, get_db
from traytic_app.dependencies import (
    get_cache,
    get_live_stream,
    get_queue,
    get_rate_limiter,
    get_store,
)
from traytic_app.models.site import Site, SiteMember
from traytic_app.queue.strategies import InMemoryQueue
from traytic_app.ratelimit.limiter import FixedWindowRateLimiter
from traytic_app.storage.strategies import SQLiteAnalyticsStore
from traytic_app.stream.live import LiveStream
from traytic_app.workers.insert_worker import InsertWorker


CHROME_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
IPHONE_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_1 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.1 Mobile/15E148 Safari/604.1"
)
GOOGLEBOT_UA = "Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)"


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test, seeded with two sites:
    s1 (acme.com) owned by org o1 with member u1, and s2 owned by org o2.
    """
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    db.add_all([
        Site(id="s1", name="Acme", domain="acme.com", org_id="o1"),
        Site(id="s2", name="Other", domain="other.org", org_id="o2"),
        SiteMember(id="m1", org_id="o1", user_id="u1", role="OWNER"),
        SiteMember(id="m2", org_id="o2", user_id="u2", role="OWNER"),
    ])
    db.commit()

    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def store(tmp_path):
    """A fresh SQLite analytics store per test"""
    return SQLiteAnalyticsStore(db_path=str(tmp_path / "analytics.db"))


@pytest.fixture
def queue():
    return InMemoryQueue(max_batches=1000)


@pytest.fixture
def rate_limiter():
    return FixedWindowRateLimiter(max_requests=200, window_seconds=60)


@pytest.fixture
def live_stream():
    return LiveStream()


@pytest.fixture
def worker(queue, store):
    return InsertWorker(queue=queue, store=store, batch_size=500)


@pytest.fixture(scope="function")
def client(db_session, store, queue, rate_limiter, live_stream):
    """
    Create a test client with every process singleton overridden.
    The caller is authenticated as u1 (member of the org owning s1).
    """
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache] = lambda: MemorySiteCache()
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_queue] = lambda: queue
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter
    app.dependency_overrides[get_live_stream] = lambda: live_stream
    app.dependency_overrides[get_current_user] = lambda: AuthUser(id="u1")

    with TestClient(app) as test_client:
        yield test_client

    # Clean up overrides
    app.dependency_overrides.clear()
