# backend/database/base.py
"""
SQLAlchemy Base and Engine Configuration

Provides the declarative base for all models, the engine and session factory,
and a dialect-aware INSERT for conflict-tolerant writes.

CRITICAL SAFETY: When TESTING=true, this module ONLY connects to the test
database (email_alerts_db_test) or an explicit DATABASE_URL. Production
database access is blocked during tests.
"""

import logging
import os
from contextlib import contextmanager

from dotenv import load_dotenv
from sqlalchemy import URL, create_engine, event
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import make_url
from sqlalchemy.exc import OperationalError, TimeoutError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

load_dotenv(override=False)

logger = logging.getLogger(__name__)

# ============================================================================
# CRITICAL: TEST DATABASE SAFETY CHECK
# ============================================================================
IS_TESTING = os.getenv("TESTING", "").lower() in ("true", "1", "yes")
PRODUCTION_DB_NAME = "email_alerts_db"
TEST_DB_NAME = os.getenv("POSTGRES_TEST_DB", "email_alerts_db_test")

db_name = os.getenv("POSTGRES_DB", PRODUCTION_DB_NAME)

if IS_TESTING:
    if db_name == PRODUCTION_DB_NAME:
        db_name = TEST_DB_NAME
        logger.warning(
            f"TESTING=true but POSTGRES_DB was production. Forcing test database: {db_name}"
        )
    elif db_name != TEST_DB_NAME:
        logger.warning(f"TESTING=true with custom database: {db_name}")

# An explicit DATABASE_URL wins (SQLite for tests, managed Postgres URLs in deployment)
if os.getenv("DATABASE_URL"):
    DATABASE_URL = make_url(os.environ["DATABASE_URL"])
else:
    # URL.create avoids password exposure in logs
    DATABASE_URL = URL.create(
        "postgresql",
        username=os.getenv("POSTGRES_USER", "email_alerts_user"),
        password=os.getenv("POSTGRES_PASSWORD", "email_alerts_password"),
        host=os.getenv("POSTGRES_HOST", "localhost"),
        port=int(os.getenv("POSTGRES_PORT", "5432")),
        database=db_name,
    )

Base = declarative_base()


def _engine_options(url: URL) -> dict:
    """Pool settings per backend."""
    if url.get_backend_name() == "sqlite":
        # One shared connection so in-memory databases survive across sessions
        return {
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        }
    return {
        "poolclass": QueuePool,
        "pool_size": 10,
        "max_overflow": 0,
        "pool_pre_ping": True,  # Verify connections before use
    }


engine = create_engine(
    DATABASE_URL,
    echo=False,
    hide_parameters=True,  # Redact email bodies and credentials in logs
    **_engine_options(DATABASE_URL),
)


if DATABASE_URL.get_backend_name() == "sqlite":

    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        """SQLite only honours ON DELETE CASCADE with foreign_keys enabled."""
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def get_session():
    """Get a new SQLAlchemy session (context manager)."""
    try:
        db = SessionLocal()
    except TimeoutError:
        logger.error("Connection pool exhausted (all connections in use)")
        raise
    except OperationalError as e:
        logger.error(f"Database connection failed: {e}")
        raise

    try:
        yield db
    except Exception as e:
        logger.error(f"Session error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


def conflict_insert(session, model):
    """
    Build an INSERT for the session's dialect that supports ON CONFLICT.

    Both PostgreSQL and SQLite expose on_conflict_do_nothing() and
    returning() on their dialect-specific insert constructs.
    """
    if session.get_bind().dialect.name == "sqlite":
        return sqlite_insert(model)
    return postgresql_insert(model)
