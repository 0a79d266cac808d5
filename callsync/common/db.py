"""
Database Connection Management

This module provides database connection setup and session management
for the callsync service using SQLAlchemy.

Engines and session factories are built explicitly and handed to the
components that need them; nothing here caches a process-wide engine.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    All model classes inherit from this base to provide
    consistent metadata and configuration.
    """
    pass


def create_db_engine(database_url: str | None) -> Engine:
    """
    Create a database engine for the given URL.

    In-memory SQLite URLs share a single connection so every session
    sees the same database.

    Args:
        database_url: SQLAlchemy database URL

    Returns:
        sqlalchemy.Engine: The database engine instance

    Raises:
        RuntimeError: If no database URL is configured
    """
    if not database_url:
        raise RuntimeError(
            "DATABASE_URL not configured. Please set the database_url "
            "in your .env file or environment variables."
        )

    if database_url.startswith("sqlite") and ":memory:" in database_url:
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    # Create engine with connection health checks
    return create_engine(
        database_url,
        pool_pre_ping=True,
        echo=False  # Set to True for SQL logging in development
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    """
    Create a session factory bound to an engine.

    Example:
        factory = create_session_factory(engine)
        with factory() as session:
            rows = session.query(CallRecording).all()
    """
    return sessionmaker(bind=engine, expire_on_commit=False)
