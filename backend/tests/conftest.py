"""
Test configuration and shared fixtures for the Chapel Booking test suite.

Service tests run against the in-memory document store; SQL store tests use
an in-memory SQLite database created fresh for every test.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Generator
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from core.database import create_tables, drop_tables
from services.document_store import InMemoryDocumentStore
from services.sql_document_store import SqlDocumentStore

TENANT_ID = "chapel-1"
JERUSALEM = ZoneInfo("Asia/Jerusalem")

# Saturday 2024-06-01, 12:00 in Jerusalem (UTC+3 in summer)
FIXED_NOW = datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def tz() -> ZoneInfo:
    return JERUSALEM


@pytest.fixture
def tenant_id() -> str:
    return TENANT_ID


@pytest.fixture
def now() -> datetime:
    """Fixed current instant shared by service tests."""
    return FIXED_NOW


@pytest.fixture
def local_time() -> Callable[..., datetime]:
    """
    Build UTC instants from Jerusalem wall-clock values.

    Example:
        local_time(2024, 6, 2, 10) -> 2024-06-02T07:00:00Z
    """
    def _local_time(year: int, month: int, day: int, hour: int, minute: int = 0) -> datetime:
        return datetime(year, month, day, hour, minute, tzinfo=JERUSALEM).astimezone(timezone.utc)
    return _local_time


@pytest.fixture
def tenant_doc() -> dict:
    return {
        "_id": TENANT_ID,
        "_type": "chapel",
        "name": "Old City Chapel",
        "timezone": "Asia/Jerusalem",
        "slug": {"_type": "slug", "current": "old-city-chapel"},
        "city": "Jerusalem",
    }


@pytest.fixture
def store(tenant_doc) -> InMemoryDocumentStore:
    """In-memory store holding one chapel."""
    return InMemoryDocumentStore([tenant_doc])


@pytest.fixture
def sql_session_factory() -> Generator[sessionmaker, None, None]:
    """
    Session factory bound to a private in-memory SQLite database.

    StaticPool keeps the single in-memory connection alive across the worker
    threads the SQL store runs in.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)
    drop_tables(bind=engine)
    engine.dispose()


@pytest.fixture
def sql_store(sql_session_factory) -> SqlDocumentStore:
    return SqlDocumentStore(sql_session_factory)


@pytest.fixture
def tomorrow_at() -> Callable[..., datetime]:
    """
    Build UTC instants for tomorrow's Jerusalem wall-clock hours.

    For tests going through the API, which reads the real clock.
    """
    def _tomorrow_at(hour: int, days_ahead: int = 1) -> datetime:
        day = (datetime.now(JERUSALEM) + timedelta(days=days_ahead)).date()
        return datetime(day.year, day.month, day.day, hour, tzinfo=JERUSALEM).astimezone(timezone.utc)
    return _tomorrow_at
