"""
Pytest configuration and fixtures

Tests run against an in-memory SQLite database. The schema is created from
the models before every test and dropped afterwards, so nothing leaks between
tests. Environment is set before any application module is imported.
"""
import os
import sys

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing-at-least-32-chars")
os.environ.setdefault("REDIS_URL", "redis://localhost:1/0")
os.environ.setdefault("LOG_FORMAT", "text")

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from uuid import uuid4

import core.cache as cache_mod
from core.database import Base, SessionLocal, engine
from core.security import create_access_token
import models  # noqa: F401  (registers tables)


@pytest.fixture(autouse=True)
def _fresh_schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _no_redis(monkeypatch):
    """Catalog caching is a no-op in tests."""
    monkeypatch.setattr(cache_mod, "get_redis_client", lambda: None)


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def user_id():
    return f"google-oauth2|{uuid4().hex[:12]}"


def auth_headers(user_id: str) -> dict:
    token = create_access_token({"sub": user_id})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers(user_id):
    return auth_headers(user_id)
