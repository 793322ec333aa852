"""
Database session management with connection pooling.

The engine and session factory are built once in the application lifespan
and stored on app.state. Routes receive the factory through the
get_session_factory dependency and open one session per request.

Usage:
    from src.database.session import get_session_factory

    @router.post("/items")
    async def create_item(session_factory=Depends(get_session_factory)):
        with session_factory() as session:
            ...
"""

import logging
from typing import Optional

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.db_base import Base

logger = logging.getLogger(__name__)


def normalize_database_url(database_url: Optional[str]) -> str:
    """
    Normalize a database URL for SQLAlchemy.

    Handles Render/Heroku's postgres:// URL format by converting to postgresql://.
    """
    if not database_url:
        raise ValueError("DATABASE_URL environment variable is not set")

    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)

    return database_url


def _enable_sqlite_transactions(engine: Engine) -> None:
    """
    Let SQLAlchemy own BEGIN on pysqlite connections.

    The sqlite3 driver delays BEGIN until the first DML statement, which
    breaks SAVEPOINT handling. The upsert path relies on savepoints.
    """

    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


def create_db_engine(database_url: Optional[str]) -> Engine:
    """
    Create the process-wide database engine.

    Uses connection pooling with sensible defaults for production:
    - pool_size: 5 connections
    - max_overflow: 10 additional connections under load
    - pool_pre_ping: Verify connections before use

    SQLite (local development and tests) gets a single shared connection.
    """
    database_url = normalize_database_url(database_url)

    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        _enable_sqlite_transactions(engine)
    else:
        engine = create_engine(
            database_url,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,  # Verify connection health
            pool_recycle=1800,   # Recycle connections after 30 minutes
        )

    logger.info("Database engine created", extra={"dialect": engine.dialect.name})
    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    """Create a session factory bound to the engine."""
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
    )


def init_db(engine: Engine) -> None:
    """Create all tables that do not exist yet."""
    # Import models so they register on Base.metadata
    from src.models import user  # noqa: F401

    Base.metadata.create_all(bind=engine)


def get_session_factory(request: Request) -> Optional[sessionmaker]:
    """
    FastAPI dependency returning the process-wide session factory.

    Returns None when the database was not configured at startup. Routes
    decide how to report that, so requests that never touch the database
    still succeed.
    """
    return getattr(request.app.state, "session_factory", None)
