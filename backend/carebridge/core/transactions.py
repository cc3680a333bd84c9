"""
Database transaction management utilities.

Provides context managers for safe database transactions
with automatic rollback on error.

Usage:
    with transaction(db):
        # Multiple database operations
        # All succeed or all roll back
        db.add(obj1)
        db.add(obj2)
        # Automatically commits on success, rolls back on error
"""

import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy.orm import Session


logger = logging.getLogger(__name__)


@contextmanager
def transaction(db: Session) -> Generator[Session, None, None]:
    """
    Context manager for database transactions with automatic rollback.

    Ensures that all database operations within the context succeed together
    or all fail together. Automatically commits on success, rolls back on error.

    Args:
        db: SQLAlchemy database session

    Yields:
        The same database session

    Raises:
        Any exception raised within the context

    Example:
        ```python
        with transaction(db):
            case.primary_therapist_id = new_primary.therapist_id
            new_primary.role = CaseTherapistRole.PRIMARY
            # Both succeed or both roll back
        ```
    """
    try:
        yield db
        db.commit()
        logger.debug("Transaction committed successfully")
    except Exception as e:
        db.rollback()
        logger.error(f"Transaction rolled back due to error: {type(e).__name__}: {e}")
        raise


def safe_rollback(db: Session) -> None:
    """
    Safely roll back a database session with error handling.

    Catches and logs any errors during rollback to prevent
    double-exception scenarios.

    Args:
        db: SQLAlchemy database session
    """
    try:
        db.rollback()
    except Exception as e:
        logger.error(f"Rollback failed: {e}")
