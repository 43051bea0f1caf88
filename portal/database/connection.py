"""
Database connection management for the portal.

The portal only persists its own state: browser sessions and the
notifications received for each user. SQLite is the default store; the
engine options below let it be shared across threads of the ASGI server.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Generator

from sqlalchemy import create_engine, func
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import DATABASE_URL, SESSION_MAX_AGE_MINUTES, TEST_DATABASE_URL
from .models import Base, WebSession

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> dict:
    if not url.startswith("sqlite"):
        return {}
    return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}


engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))
test_engine = create_engine(TEST_DATABASE_URL, **_engine_options(TEST_DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


# PUBLIC_INTERFACE
def get_db() -> Generator[Session, None, None]:
    """
    Dependency to get database session.

    Yields:
        Session: SQLAlchemy database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# PUBLIC_INTERFACE
def get_test_db() -> Generator[Session, None, None]:
    """Test counterpart of get_db, bound to the in-memory database."""
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


class DatabaseManager:
    """Schema setup and housekeeping for the portal tables."""

    @staticmethod
    def init_db():
        Base.metadata.create_all(bind=engine)

    @staticmethod
    def reset_test_db():
        """Drop and recreate every table of the test database."""
        Base.metadata.drop_all(bind=test_engine)
        Base.metadata.create_all(bind=test_engine)

    @staticmethod
    def purge_stale_sessions(db: Session, max_age_minutes: int = SESSION_MAX_AGE_MINUTES) -> int:
        """
        Delete browser sessions untouched for longer than the cookie lifetime.

        Their cookies have expired, so no browser can present them again.

        Args:
            db: Database session
            max_age_minutes: Age after which a session is stale

        Returns:
            int: Number of sessions deleted
        """
        cutoff = datetime.now(timezone.utc) - timedelta(minutes=max_age_minutes)
        last_seen = func.coalesce(WebSession.updated_at, WebSession.created_at)
        deleted = db.query(WebSession).filter(last_seen < cutoff).delete(synchronize_session=False)
        db.commit()
        if deleted:
            logger.info(f"Purged {deleted} stale browser session(s)")
        return deleted
