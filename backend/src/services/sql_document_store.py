"""
SQLAlchemy-backed document store.

Each document is one row of the ``documents`` table. Blocking database work
runs in a worker thread (``asyncio.to_thread``) so the async callers never
block the event loop; every operation is its own database transaction.
"""

import asyncio
import copy
import logging
import threading
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from core.database import SessionLocal, get_db_context
from models.document import Document as DocumentRow
from services.document_store import (
    Document,
    DocumentExistsError,
    DocumentNotFoundError,
    DocumentStore,
    PatchOperation,
    apply_patch_operations,
    matches_query,
    new_document_id,
)
from shared_types.calendar import referenced_tenant_id

logger = logging.getLogger(__name__)


class SqlDocumentStore(DocumentStore):
    """
    Document store persisting JSON bodies through SQLAlchemy.

    Patches on one store instance are applied one at a time, so concurrent
    appends to the same document are never lost. Separate processes sharing
    a SQLite database are not serialized against each other; that race is
    accepted like the booking race.
    """

    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self._session_factory = session_factory
        # Serializes patch read-modify-write within this process; SQLite
        # ignores SELECT ... FOR UPDATE
        self._patch_lock = threading.Lock()

    # Sync implementations (run in worker threads)

    def _query_sync(
        self,
        doc_type: Optional[str],
        tenant_id: Optional[str],
        filters: Optional[Dict[str, Any]],
    ) -> List[Document]:
        with get_db_context(self._session_factory) as db:
            stmt = select(DocumentRow)
            if doc_type is not None:
                stmt = stmt.where(DocumentRow.doc_type == doc_type)
            if tenant_id is not None:
                stmt = stmt.where(DocumentRow.tenant_id == tenant_id)
            stmt = stmt.order_by(DocumentRow.created_at, DocumentRow.id)
            rows = db.execute(stmt).scalars().all()
            # Field filters are applied on the JSON body in Python
            return [
                copy.deepcopy(row.body) for row in rows
                if matches_query(row.body, None, None, filters)
            ]

    def _get_sync(self, doc_id: str) -> Optional[Document]:
        with get_db_context(self._session_factory) as db:
            row = db.get(DocumentRow, doc_id)
            return copy.deepcopy(row.body) if row is not None else None

    def _references_sync(self, doc_id: str) -> List[Document]:
        with get_db_context(self._session_factory) as db:
            rows = db.execute(
                select(DocumentRow).where(DocumentRow.tenant_id == doc_id)
            ).scalars().all()
            return [copy.deepcopy(row.body) for row in rows]

    def _create_sync(self, doc: Document) -> Document:
        body = copy.deepcopy(doc)
        body.setdefault("_id", new_document_id())
        with get_db_context(self._session_factory) as db:
            if db.get(DocumentRow, body["_id"]) is not None:
                raise DocumentExistsError(f"Document {body['_id']} already exists")
            db.add(DocumentRow(
                id=body["_id"],
                doc_type=body.get("_type", ""),
                tenant_id=referenced_tenant_id(body),
                body=body,
            ))
        logger.debug(f"Created document {body['_id']} ({body.get('_type')})")
        return copy.deepcopy(body)

    def _create_or_replace_sync(self, doc: Document) -> Document:
        if not doc.get("_id"):
            raise ValueError("create_or_replace requires an _id")
        body = copy.deepcopy(doc)
        with get_db_context(self._session_factory) as db:
            row = db.get(DocumentRow, body["_id"])
            if row is None:
                db.add(DocumentRow(
                    id=body["_id"],
                    doc_type=body.get("_type", ""),
                    tenant_id=referenced_tenant_id(body),
                    body=body,
                ))
            else:
                row.doc_type = body.get("_type", "")
                row.tenant_id = referenced_tenant_id(body)
                row.body = body
        return copy.deepcopy(body)

    def _delete_sync(self, doc_id: str) -> bool:
        with get_db_context(self._session_factory) as db:
            row = db.get(DocumentRow, doc_id)
            if row is None:
                logger.info(f"Delete of missing document {doc_id} ignored")
                return False
            db.delete(row)
        return True

    def _commit_patch_sync(self, doc_id: str, operations: List[PatchOperation]) -> Document:
        with self._patch_lock, get_db_context(self._session_factory) as db:
            row = db.execute(
                select(DocumentRow).where(DocumentRow.id == doc_id).with_for_update()
            ).scalar_one_or_none()
            if row is None:
                raise DocumentNotFoundError(f"Document {doc_id} not found")
            patched = apply_patch_operations(row.body, operations)
            # Reassign so the JSON column is flagged dirty
            row.body = patched
            row.tenant_id = referenced_tenant_id(patched)
        return copy.deepcopy(patched)

    def _commit_transaction_sync(self, deletes: List[str]) -> List[str]:
        deleted: List[str] = []
        with get_db_context(self._session_factory) as db:
            for doc_id in deletes:
                row = db.get(DocumentRow, doc_id)
                if row is not None:
                    db.delete(row)
                    deleted.append(doc_id)
        return deleted

    # Async interface

    async def query(
        self,
        doc_type: Optional[str],
        tenant_id: Optional[str] = None,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[Document]:
        return await asyncio.to_thread(self._query_sync, doc_type, tenant_id, filters)

    async def get(self, doc_id: str) -> Optional[Document]:
        return await asyncio.to_thread(self._get_sync, doc_id)

    async def references(self, doc_id: str) -> List[Document]:
        return await asyncio.to_thread(self._references_sync, doc_id)

    async def create(self, doc: Document) -> Document:
        return await asyncio.to_thread(self._create_sync, doc)

    async def create_or_replace(self, doc: Document) -> Document:
        return await asyncio.to_thread(self._create_or_replace_sync, doc)

    async def delete(self, doc_id: str) -> bool:
        return await asyncio.to_thread(self._delete_sync, doc_id)

    async def _commit_patch(self, doc_id: str, operations: List[PatchOperation]) -> Document:
        return await asyncio.to_thread(self._commit_patch_sync, doc_id, operations)

    async def _commit_transaction(self, deletes: List[str]) -> List[str]:
        return await asyncio.to_thread(self._commit_transaction_sync, deletes)
