"""Database session dependency."""

from collections.abc import Generator

from fastapi import Request
from sqlalchemy.orm import Session

from teelinks.db.session import get_db


def get_session(request: Request) -> Generator[Session, None, None]:
    """FastAPI dependency yielding a session from the app's own session factory."""
    yield from get_db(request.app.state.session_factory)
