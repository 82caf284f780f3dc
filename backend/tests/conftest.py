"""Core test fixtures.

Provides reusable fixtures for the Flask test client, a fresh database per
test, sync source setup and sample email loading.

CRITICAL: Tests run against an in-memory SQLite database configured through
DATABASE_URL before any application module is imported. They never touch a
PostgreSQL database.
"""

import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path

# CRITICAL: Configure the environment BEFORE importing application modules
os.environ["TESTING"] = "true"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CELERY_BROKER_URL"] = "memory://"
os.environ["CELERY_RESULT_BACKEND"] = "cache+memory://"
os.environ["LOG_DIR"] = tempfile.mkdtemp(prefix="email_alert_logs_")

import pytest  # noqa: E402
from flask import Flask  # noqa: E402

import database.models  # noqa: E402, F401
from alerts.email_parsers import EmailMessage  # noqa: E402
from config import IngestionConfig  # noqa: E402
from database import create_account, create_sync_source  # noqa: E402
from database.base import Base, SessionLocal, engine  # noqa: E402

SAMPLE_EMAILS_DIR = Path(__file__).parent / "fixtures" / "sample_emails"

USER_ID = "3f2b8c1e-6a4d-4f0e-9b7a-1c2d3e4f5a6b"
OTHER_USER_ID = "9a8b7c6d-5e4f-4a3b-8c2d-1e0f9a8b7c6d"

BMO_SENDER = "BMO Alerts <bmoalerts@bmo.com>"
RBC_SENDER = "RBC Royal Bank <rbcroyalbankalerts@alerts.rbc.com>"


# ============================================================================
# DATABASE FIXTURES
# ============================================================================


@pytest.fixture(autouse=True)
def fresh_database():
    """Create all tables before each test and drop them afterwards."""
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture
def db_session():
    """Database session for direct model assertions.

    Yields:
        Session: SQLAlchemy session bound to the test database
    """
    session = SessionLocal()
    yield session
    session.rollback()
    session.close()


# ============================================================================
# DOMAIN FIXTURES
# ============================================================================


@pytest.fixture
def config() -> IngestionConfig:
    """Default ingestion configuration."""
    return IngestionConfig()


@pytest.fixture
def bmo_source() -> dict:
    """Active BMO credit card account with a monitored mailbox.

    Returns:
        dict: {'account_id': int, 'sync_source_id': int, 'user_id': str}
    """
    account_id = create_account(
        USER_ID, "BMO Mastercard", bank="bmo", account_type="creditcard", mask="5678"
    )
    sync_source_id = create_sync_source(
        account_id,
        name="BMO Alerts",
        email_address="alerts@example.com",
        imap_host="imap.example.com",
        imap_password_encrypted="gAAAAABencrypted",
    )
    return {"account_id": account_id, "sync_source_id": sync_source_id, "user_id": USER_ID}


@pytest.fixture
def rbc_source() -> dict:
    """Active RBC chequing account with a monitored mailbox."""
    account_id = create_account(
        USER_ID, "RBC Chequing", bank="rbc", account_type="chequing", mask="1234"
    )
    sync_source_id = create_sync_source(
        account_id,
        name="RBC Alerts",
        email_address="alerts@example.com",
        imap_host="imap.example.com",
        imap_password_encrypted="gAAAAABencrypted",
    )
    return {"account_id": account_id, "sync_source_id": sync_source_id, "user_id": USER_ID}


# ============================================================================
# FLASK TEST CLIENT FIXTURES
# ============================================================================


@pytest.fixture(scope="session")
def app() -> Flask:
    """Flask app with test configuration."""
    from app import app as flask_app

    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def client(app: Flask):
    """Flask test client for making HTTP requests."""
    return app.test_client()


# ============================================================================
# CELERY TESTING FIXTURES
# ============================================================================


@pytest.fixture
def celery_eager():
    """Run Celery tasks synchronously in-process for the duration of a test."""
    from celery_app import celery_app

    celery_app.conf.task_always_eager = True
    celery_app.conf.task_eager_propagates = True
    yield celery_app
    celery_app.conf.task_always_eager = False
    celery_app.conf.task_eager_propagates = False


# ============================================================================
# TEST DATA HELPERS
# ============================================================================


def load_email_fixture(fixture_name: str) -> str:
    """Load a sample email body from the sample_emails directory.

    Args:
        fixture_name: Name of email fixture file (e.g., 'bmo_transaction.txt')

    Returns:
        str: Plain-text body of the email
    """
    file_path = SAMPLE_EMAILS_DIR / fixture_name

    if not file_path.exists():
        raise FileNotFoundError(f"Email fixture not found: {file_path}")

    with open(file_path, encoding="utf-8") as f:
        return f.read()


def make_email(
    fixture_name: str = None,
    uid: str = "1001",
    sender: str = BMO_SENDER,
    subject: str = "Alert",
    sync_source_id: int = None,
    body_text: str = None,
    body_html: str = None,
    date: datetime = None,
) -> EmailMessage:
    """Build an EmailMessage from a fixture file or explicit body."""
    if body_text is None:
        body_text = load_email_fixture(fixture_name) if fixture_name else ""

    return EmailMessage(
        message_uid=uid,
        subject=subject,
        from_address=sender,
        date=date or datetime(2026, 1, 5, 14, 30, tzinfo=UTC),
        body_text=body_text,
        body_html=body_html,
        user_id=USER_ID,
        sync_source_id=sync_source_id,
    )


@pytest.fixture
def email_factory():
    """Factory building EmailMessage objects (see make_email)."""
    return make_email


@pytest.fixture
def user_id() -> str:
    return USER_ID


@pytest.fixture
def other_user_id() -> str:
    return OTHER_USER_ID
