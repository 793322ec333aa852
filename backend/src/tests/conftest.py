"""
Root test configuration and fixtures.

Provides:
- Database fixtures: SQLite in-memory (or PostgreSQL when DATABASE_URL is
  set), one outer transaction per test that is always rolled back
- Clerk fixtures: a mocked ClerkClient and canonical user factories
- Svix fixtures: a test signing secret and a factory producing real
  signed webhook requests
- App fixtures: a FastAPI TestClient wired to the test database and the
  mocked Clerk client
"""

import base64
import json
import os
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Generator, Optional
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import text
from sqlalchemy.orm import Session, sessionmaker
from svix.webhooks import Webhook

from src.config.settings import Settings
from src.database.session import create_db_engine
from src.integrations.clerk.client import ClerkClient
from src.integrations.clerk.models import ClerkAddress, ClerkEmailAddress, ClerkUser

# Set test environment
os.environ.setdefault("ENV", "test")

TEST_WEBHOOK_SECRET = "whsec_" + base64.b64encode(b"test_secret_key_1234567890").decode()


def _get_test_database_url() -> str:
    """Get database URL for tests."""
    database_url = os.getenv("DATABASE_URL")
    if database_url and database_url.startswith(("postgres://", "postgresql")):
        return database_url

    # Default to SQLite for unit tests if no PostgreSQL available
    return "sqlite:///:memory:"


# =============================================================================
# Database
# =============================================================================

@pytest.fixture(scope="session")
def db_engine():
    """
    Create database engine for tests.

    Uses PostgreSQL if DATABASE_URL is set, otherwise SQLite in-memory.
    """
    database_url = _get_test_database_url()
    engine = create_db_engine(database_url)

    if engine.dialect.name == "postgresql":
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception as e:
            pytest.skip(
                f"PostgreSQL not available. Unset DATABASE_URL to use SQLite. Error: {e}"
            )

    from src.db_base import Base
    from src.models import user  # noqa: F401

    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_connection(db_engine):
    """Connection holding an outer transaction that is rolled back after the test."""
    connection = db_engine.connect()
    transaction = connection.begin()

    yield connection

    transaction.rollback()
    connection.close()


@pytest.fixture(scope="function")
def session_factory(db_connection) -> sessionmaker:
    """
    Session factory bound to the test connection.

    Sessions commit and roll back savepoints, so the outer transaction
    (and therefore test isolation) is never affected.
    """
    return sessionmaker(
        bind=db_connection,
        autoflush=False,
        join_transaction_mode="create_savepoint",
    )


@pytest.fixture(scope="function")
def db_session(session_factory) -> Generator[Session, None, None]:
    """Database session for direct assertions and seeding."""
    session = session_factory()
    yield session
    session.close()


# =============================================================================
# Clerk
# =============================================================================

def make_clerk_user(
    user_id: str = "user_clerk_123",
    email: Optional[str] = "test@example.com",
    first_name: Optional[str] = "John",
    last_name: Optional[str] = "Doe",
    image_url: Optional[str] = "https://img.clerk.com/avatar.jpg",
    address: Optional[ClerkAddress] = None,
) -> ClerkUser:
    """Build a canonical Clerk user as the Clerk client would return it."""
    email_addresses = []
    primary_email_address_id = None
    if email is not None:
        email_addresses.append(ClerkEmailAddress(id="idn_primary", email_address=email))
        primary_email_address_id = "idn_primary"

    return ClerkUser(
        id=user_id,
        email_addresses=email_addresses,
        primary_email_address_id=primary_email_address_id,
        first_name=first_name,
        last_name=last_name,
        image_url=image_url,
        primary_address=address,
    )


@pytest.fixture
def clerk_user_factory():
    """Factory for canonical Clerk users."""
    return make_clerk_user


@pytest.fixture
def clerk_client():
    """ClerkClient mock; set get_user.return_value or side_effect per test."""
    client = AsyncMock(spec=ClerkClient)
    client.get_user.return_value = make_clerk_user()
    return client


# =============================================================================
# Svix
# =============================================================================

@pytest.fixture
def webhook_secret() -> str:
    """Test webhook signing secret."""
    return TEST_WEBHOOK_SECRET


@pytest.fixture
def make_event_body():
    """Factory for Clerk event envelopes as raw JSON bytes."""
    def _make(event_type: str, data: Optional[Dict[str, Any]] = None) -> bytes:
        envelope = {
            "object": "event",
            "type": event_type,
            "data": data if data is not None else {"id": "user_clerk_123"},
        }
        return json.dumps(envelope).encode("utf-8")
    return _make


@pytest.fixture
def sign_webhook(webhook_secret):
    """
    Factory returning Svix headers for a body.

    Usage:
        headers = sign_webhook(body)
        headers = sign_webhook(body, timestamp=old_datetime)
    """
    def _sign(
        body: bytes,
        msg_id: Optional[str] = None,
        timestamp: Optional[datetime] = None,
        secret: Optional[str] = None,
    ) -> Dict[str, str]:
        msg_id = msg_id or f"msg_{uuid.uuid4().hex}"
        timestamp = timestamp or datetime.now(timezone.utc)
        signature = Webhook(secret or webhook_secret).sign(
            msg_id, timestamp, body.decode("utf-8")
        )
        return {
            "svix-id": msg_id,
            "svix-timestamp": str(int(timestamp.timestamp())),
            "svix-signature": signature,
        }
    return _sign


# =============================================================================
# App
# =============================================================================

@pytest.fixture
def test_settings(webhook_secret) -> Settings:
    """Settings with every required value present."""
    return Settings(
        webhook_secret=webhook_secret,
        clerk_secret_key="sk_test_placeholder_key_value",
        clerk_api_timeout_seconds=2.0,
        environment="test",
    )


@pytest.fixture
def app(test_settings, clerk_client, session_factory):
    """FastAPI app wired to the test database and mocked Clerk client."""
    from main import create_app

    return create_app(
        settings=test_settings,
        clerk_client=clerk_client,
        session_factory=session_factory,
    )


@pytest.fixture
def client(app):
    """TestClient with the lifespan running."""
    from fastapi.testclient import TestClient

    with TestClient(app) as test_client:
        yield test_client


# =============================================================================
# Markers
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "e2e: mark test as end-to-end test")
    config.addinivalue_line("markers", "security: mark test as security-focused")
