"""FastAPI dependencies for the tracker view.

The app factory stores the settings and session factory on app.state, so
tests can build an app around an in-memory database.
"""

from typing import Generator

from fastapi import Request
from sqlalchemy.orm import Session

from ..config import Settings
from ..infrastructure.repositories import TrackerRepository


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_repository(request: Request) -> TrackerRepository:
    return TrackerRepository(request.app.state.session_factory)


def get_db(request: Request) -> Generator[Session, None, None]:
    """Yield a database session, closed after the request."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
