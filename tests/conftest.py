"""
Test configuration and fixtures for the PhishNet API.
This centralizes all test setup, making individual tests clean.
"""

import asyncio
import os

# Settings are read at import time, so the test environment goes first
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["CACHE_BACKEND"] = "memory"
os.environ["QUEUE_BACKEND"] = "memory"
os.environ["GEMINI_API_KEY"] = ""
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["JWT_SECRET"] = "test-secret"
# The in-process worker and the rate limiter are switched on per test where needed
os.environ["ANALYTICS_WORKER_IN_PROCESS"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from main import app
from phishnet_app.analytics_processor.analytics_worker import AnalyticsWorker
from phishnet_app.database.connection import Base, get_db
from phishnet_app.dependencies import get_cache, get_queue
from phishnet_app.models.user import User
from phishnet_app.services.auth_service import AuthService, hash_password

# Test database configuration
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TEST_PASSWORD = "Secure@Pass1"


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    This ensures tests are isolated and don't affect each other.
    """
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()

    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def queue():
    """The in-memory analytics queue shared with the app, emptied per test."""
    queue = get_queue()
    queue.clear()
    yield queue
    queue.clear()


@pytest.fixture(scope="function")
def cache():
    cache = get_cache()
    asyncio.run(cache.clear())
    yield cache
    asyncio.run(cache.clear())


@pytest.fixture(scope="function")
def client(db_session, queue, cache):
    """
    Create a test client with database dependency overridden.
    This is the main fixture that tests will use.
    """
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def drain_analytics(db_session, queue):
    """
    Run the analytics worker over everything queued so far.

    The worker writes through its own session, so the test session is
    expired afterwards to see the new aggregate.
    """
    worker = AnalyticsWorker(queue=queue, db_session_factory=TestingSessionLocal)

    def drain() -> int:
        applied = asyncio.run(worker.drain())
        db_session.expire_all()
        return applied

    return drain


def create_user(db_session, email="jane@example.com", is_admin=False, **fields) -> User:
    user = User(
        first_name=fields.pop("first_name", "Jane"),
        last_name=fields.pop("last_name", "Doe"),
        email=email,
        password_hash=hash_password(TEST_PASSWORD),
        is_verified=True,
        is_admin=is_admin,
        **fields,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


def bearer(db_session, user: User) -> dict:
    token = AuthService(db_session).issue_token(user)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user(db_session):
    return create_user(db_session)


@pytest.fixture
def auth_headers(db_session, user):
    return bearer(db_session, user)


@pytest.fixture
def admin_headers(db_session):
    admin = create_user(db_session, email="admin@example.com", is_admin=True, first_name="Ada", last_name="Admin")
    return bearer(db_session, admin)
