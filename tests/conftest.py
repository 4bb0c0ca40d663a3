"""Pytest configuration and shared fixtures.

Set DATABASE_URL before any tenderwatch import to use SQLite for tests.
Provides reusable fixtures: db session, API client, tender and alert factories.
"""
import os
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Force SQLite and file-mode email before any tenderwatch import
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///./test.db"
os.environ["EMAIL_MODE"] = "file"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ.setdefault("DEFAULT_TIMEZONE", "Asia/Colombo")

from tenderwatch.api.schemas.alert import AlertConfiguration
from tenderwatch.api.schemas.tender import TenderSnapshot
from tenderwatch.models import Base, User

NOW = datetime(2026, 3, 10, 6, 0, tzinfo=timezone.utc)


# ── Database fixtures ────────────────────────────────────────────────

@pytest.fixture()
def db_engine():
    """In-memory SQLite engine with all tables, shareable across threads."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def db(db_engine):
    """SQLAlchemy session bound to in-memory SQLite."""
    Session = sessionmaker(bind=db_engine, autocommit=False, autoflush=False)
    session = Session()
    yield session
    session.close()


@pytest.fixture()
def user(db) -> User:
    u = make_user()
    db.add(u)
    db.commit()
    return u


@pytest.fixture()
def outbox(tmp_path, monkeypatch):
    """File-mode emails land in a per-test directory."""
    path = tmp_path / "outbox"
    monkeypatch.setenv("EMAIL_MODE", "file")
    monkeypatch.setenv("EMAIL_OUTBOX_DIR", str(path))
    return path


@pytest.fixture()
def client(db_engine, outbox):
    """TestClient with get_db bound to the in-memory database."""
    from fastapi.testclient import TestClient

    from tenderwatch.db.session import get_db
    from tenderwatch.main import app

    Session = sessionmaker(bind=db_engine, autocommit=False, autoflush=False)

    def _get_test_db():
        session = Session()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_test_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


# ── Factories ────────────────────────────────────────────────────────

def make_user(**kwargs) -> User:
    """Factory for User with sensible defaults."""
    uid = uuid.uuid4().hex[:8]
    defaults = {
        "id": str(uuid.uuid4()),
        "email": f"user-{uid}@example.com",
        "name": "Test User",
        "timezone": "UTC",
    }
    defaults.update(kwargs)
    return User(**defaults)


def make_tender(**kwargs) -> TenderSnapshot:
    """
    Factory for TenderSnapshot. Nested sections can be given as dicts;
    closing_in (timedelta) sets the closing date relative to NOW.
    """
    closing_in = kwargs.pop("closing_in", timedelta(days=20))
    data = {
        "id": uuid.uuid4().hex[:24],
        "title": "Supply of laptops for district offices",
        "description": "Procurement of 50 laptop computers and accessories",
        "category": "IT Equipment",
        "organization": {"name": "Ministry of Education", "type": "government"},
        "location": {"province": "Western", "district": "Colombo", "city": "Colombo 07"},
        "dates": {"published": NOW - timedelta(days=1), "closing": NOW + closing_in},
        "financials": {"estimatedValue": {"amount": 250.0, "currency": "LKR"}},
        "status": "published",
        "priority": "medium",
    }
    data.update(kwargs)
    return TenderSnapshot.model_validate(data)


def make_rule_payload(**kwargs) -> dict:
    """camelCase request body for POST /api/alerts."""
    data = {
        "name": "Laptop tenders",
        "keywords": [{"term": "laptop", "matchType": "contains"}],
    }
    data.update(kwargs)
    return data


def make_config(**kwargs) -> AlertConfiguration:
    """Factory for a validated AlertConfiguration (snake_case keys)."""
    data = {
        "id": str(uuid.uuid4()),
        "user_id": str(uuid.uuid4()),
        "name": "Laptop tenders",
        "keywords": [{"term": "laptop", "match_type": "contains"}],
    }
    data.update(kwargs)
    return AlertConfiguration.model_validate(data)


# ── Markers ──────────────────────────────────────────────────────────

def pytest_configure(config):
    config.addinivalue_line("markers", "integration: marks integration tests")
    config.addinivalue_line("markers", "unit: marks unit tests")
