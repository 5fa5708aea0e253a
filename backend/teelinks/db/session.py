"""Engine and session factory configuration."""

from collections.abc import Generator
import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from teelinks.core.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()


def create_db_engine(database_url: str) -> Engine:
    """Build the process-wide engine for the hosted Postgres store.

    SQLite URLs (used for local runs and the test-suite) share a single
    in-process connection instead of a pool.
    """
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            echo=False,
            future=True,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )

    # pool_pre_ping: test connections before using (handles stale connections)
    # pool_recycle: hosted poolers drop idle connections after ~30 minutes
    return create_engine(
        database_url,
        echo=False,
        future=True,
        poolclass=QueuePool,
        pool_pre_ping=True,
        pool_recycle=1800,
        pool_size=5,
        max_overflow=10,
        connect_args={
            "connect_timeout": 10,
            "keepalives": 1,
            "keepalives_idle": 30,
            "keepalives_interval": 10,
            "keepalives_count": 5,
        },
    )


engine = create_db_engine(settings.database_url)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def get_db(
    session_factory: sessionmaker | None = None,
) -> Generator[Session, None, None]:
    """Yield a session for one request; the service decides when to commit."""
    db = (session_factory or SessionLocal)()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
