# pyright: reportMissingTypeStubs=false
"""
Database configuration and session management.

This module sets up the SQLAlchemy database connection and session factory
that back the SQL document store.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from core.config import DATABASE_URL

logger = logging.getLogger(__name__)

DB_POOL_RECYCLE_SECONDS = 300  # 5 minutes


def build_engine(url: str):
    """
    Create a SQLAlchemy engine for the given URL.

    SQLite connections are shared with worker threads (the document store runs
    blocking calls through asyncio.to_thread), so same-thread checking is off.
    """
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(
        url,
        pool_pre_ping=True,  # Verify connections before use
        pool_recycle=DB_POOL_RECYCLE_SECONDS,
        echo=False,
        future=True,
        connect_args=connect_args,
    )


engine = build_engine(DATABASE_URL)

# Create configured SessionLocal class
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,  # Don't expire objects after commit
)


# Create Base class for declarative models
class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@event.listens_for(Base, "before_insert", propagate=True)  # type: ignore
def receive_before_insert(mapper, connection, target):  # type: ignore
    """Set created_at and updated_at on insert."""
    now = _utc_now()
    if "created_at" in mapper.columns and getattr(target, "created_at", None) is None:  # type: ignore
        target.created_at = now
    if "updated_at" in mapper.columns and getattr(target, "updated_at", None) is None:  # type: ignore
        target.updated_at = now


@event.listens_for(Base, "before_update", propagate=True)  # type: ignore
def receive_before_update(mapper, connection, target):  # type: ignore
    """Set updated_at on update."""
    if "updated_at" in mapper.columns:  # type: ignore
        target.updated_at = _utc_now()


@contextmanager
def get_db_context(session_factory: sessionmaker = SessionLocal) -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Commits when the block exits cleanly and rolls back otherwise, so every
    block is a single database transaction.

    Yields:
        Session: SQLAlchemy database session

    Example:
        ```python
        with get_db_context() as db:
            doc = db.get(Document, doc_id)
        ```
    """
    db = session_factory()
    try:
        yield db
        db.commit()
    except (LookupError, ValueError):
        # Don't log expected business errors (missing or duplicate documents)
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception(f"Database transaction failed: {e}")
        raise
    finally:
        db.close()


def create_tables(bind=None) -> None:
    """
    Create all database tables defined in SQLAlchemy models.

    Safe to call multiple times - will not recreate existing tables.
    """
    # Import models so they are registered on Base.metadata
    import models  # noqa: F401

    try:
        Base.metadata.create_all(bind=bind or engine)
        logger.info("Database tables created successfully")
    except SQLAlchemyError as e:
        logger.exception(f"Failed to create database tables: {e}")
        raise


def drop_tables(bind=None) -> None:
    """
    Drop all database tables defined in SQLAlchemy models.

    WARNING: This will permanently delete all data in the tables!
    Only use in testing or development environments.
    """
    import models  # noqa: F401

    try:
        Base.metadata.drop_all(bind=bind or engine)
        logger.info("Database tables dropped successfully")
    except SQLAlchemyError as e:
        logger.exception(f"Failed to drop database tables: {e}")
        raise
