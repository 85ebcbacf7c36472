"""
Database connection for PhishNet.

Provides the SQLAlchemy engine, session factory and declarative Base
shared by all models, plus the `get_db` dependency for FastAPI routes.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from phishnet_app.config import settings

logger = logging.getLogger(__name__)


def _connect_args(database_url: str) -> dict:
    # SQLite connections are shared between the request thread pool workers
    if database_url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    settings.database_url,
    connect_args=_connect_args(settings.database_url),
    pool_pre_ping=True,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp (SQLite drops tzinfo on round trip)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_db():
    """
    Yield a database session for one request.

    The session is always closed, even if the route raised.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create all tables registered on Base."""
    # Import models so they're registered with Base
    import phishnet_app.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("✅ Database tables ready (%s)", engine.url.get_backend_name())
