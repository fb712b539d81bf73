"""Pytest fixtures for the tool tracker.

Provides reusable test fixtures for:
- In-memory SQLite store with the tracker tables
- Settings isolated from the environment and any .env file
- FastAPI test client around the in-memory store
- DKIM signing with a fixed test key, and fake TXT lookups

Usage:
    def test_listing(client, repository):
        repository.update_location("drill", "user1@a.example.com", None)
        assert client.get("/api/items").status_code == 200
"""

import sys
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

backend_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(backend_src))
# Test helpers live in fixtures/
sys.path.insert(0, str(Path(__file__).parent))

from tooltracker.config import Settings
from tooltracker.database import create_db_engine, create_session_factory, ensure_tables
from tooltracker.infrastructure.repositories import TrackerRepository
from tooltracker.main import create_app
from tooltracker.models.base import Base

from fixtures.mail import DOMAIN1, KNOWN_SENDERS, make_txt_lookup


@pytest.fixture
def engine():
    """In-memory SQLite engine with the tracker tables"""
    engine = create_db_engine("sqlite://")
    ensure_tables(engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return create_session_factory(engine)


@pytest.fixture
def repository(session_factory) -> TrackerRepository:
    return TrackerRepository(session_factory)


@pytest.fixture
def settings() -> Settings:
    """Settings independent of the environment"""
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite://",
        DOMAIN=DOMAIN1,
        MAILBOX="tooltracker",
        FROM_REGEX=KNOWN_SENDERS,
    )


@pytest.fixture
def client(settings, session_factory) -> Generator[TestClient, None, None]:
    """Test client for the tracker view"""
    with TestClient(create_app(settings, session_factory)) as test_client:
        yield test_client


@pytest.fixture
def txt_lookup():
    return make_txt_lookup()
