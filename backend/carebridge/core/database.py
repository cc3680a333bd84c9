"""
Database connection and session management.

Provides SQLAlchemy engine, session factory, and dependency injection
for database sessions in FastAPI endpoints.
"""

from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker, declarative_base
from sqlalchemy.pool import QueuePool, StaticPool

from .config import settings


# =============================================================================
# SQLAlchemy Base
# =============================================================================

Base = declarative_base()


# =============================================================================
# Engine Configuration
# =============================================================================

def get_engine_url() -> str:
    """
    Get the configured database URL.

    Returns:
        Database connection URL string
    """
    return settings.database_url


def get_engine_options(url: str) -> dict[str, Any]:
    """
    Build engine keyword arguments for the target database.

    SQLite (used by the test suite) shares one connection across threads,
    PostgreSQL uses a bounded connection pool.
    """
    if url.startswith("sqlite"):
        return {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
            "echo": settings.debug,
        }

    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "poolclass": QueuePool,
        "pool_pre_ping": True,
        "pool_recycle": settings.db_pool_recycle,
        "pool_timeout": settings.db_pool_timeout,
        "echo": settings.debug,
    }


engine = create_engine(get_engine_url(), **get_engine_options(get_engine_url()))


# =============================================================================
# Session Factory
# =============================================================================

SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)


# =============================================================================
# Event Listeners for Connection Management
# =============================================================================

@event.listens_for(engine, "connect")
def set_connection_settings(dbapi_connection, connection_record):
    """
    Configure connection settings when a new connection is created.

    PostgreSQL: UTC timezone and a statement timeout.
    SQLite: enforce foreign keys.
    """
    cursor = dbapi_connection.cursor()
    if engine.dialect.name == "postgresql":
        cursor.execute("SET timezone='UTC'")
        cursor.execute("SET statement_timeout = '30s'")
    elif engine.dialect.name == "sqlite":
        cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# =============================================================================
# Dependency Injection
# =============================================================================

def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency for database session injection.

    Creates a new session for each request and ensures proper cleanup.

    Yields:
        SQLAlchemy Session instance

    Example:
        @router.get("/cases")
        def list_cases(db: Session = Depends(get_db)):
            return db.query(Case).all()
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# =============================================================================
# Database Utilities
# =============================================================================

def init_db() -> None:
    """
    Initialize database tables.

    Creates all tables defined in models. Should only be used
    in development, tests, or for initial setup.
    """
    from .. import models  # noqa: F401  (registers every table on Base.metadata)

    Base.metadata.create_all(bind=engine)
