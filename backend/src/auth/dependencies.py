# pyright: reportMissingTypeStubs=false
"""
Request dependencies for FastAPI.

Provides the document store used by every endpoint and the shared-secret
check guarding admin endpoints.
"""

import hmac
import logging
from typing import Optional

from fastapi import Header, HTTPException, status

from core.config import ADMIN_API_KEY, DOCUMENT_STORE
from services.document_store import DocumentStore, InMemoryDocumentStore

logger = logging.getLogger(__name__)

_document_store: Optional[DocumentStore] = None


def build_document_store(kind: str = DOCUMENT_STORE) -> DocumentStore:
    """
    Create the document store named by configuration.

    Args:
        kind: "sql" for the SQLAlchemy store, "memory" for the in-process store

    Raises:
        ValueError: Unknown store kind
    """
    if kind == "sql":
        from services.sql_document_store import SqlDocumentStore
        return SqlDocumentStore()
    if kind == "memory":
        return InMemoryDocumentStore()
    raise ValueError(f"Unknown DOCUMENT_STORE: {kind!r}")


def get_document_store() -> DocumentStore:
    """
    FastAPI dependency providing the application's document store.

    The store is created on first use and shared by all requests. Tests
    override this dependency with their own store.
    """
    global _document_store
    if _document_store is None:
        _document_store = build_document_store()
        logger.info(f"Using {type(_document_store).__name__}")
    return _document_store


def require_admin(x_admin_key: Optional[str] = Header(default=None)) -> None:
    """
    Require the admin shared secret in the X-Admin-Key header.

    Raises:
        HTTPException: 401 if the header is missing or wrong
    """
    if not x_admin_key or not hmac.compare_digest(x_admin_key, ADMIN_API_KEY):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Admin key required",
        )
