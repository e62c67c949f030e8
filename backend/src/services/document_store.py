"""
Document store collaborator.

The booking engine reads and writes chapel calendar data exclusively through
this interface: fetch by query, create, patch/append, delete,
create-or-replace, and a transactional multi-delete. All calls are
asynchronous; callers await them and never cancel a write mid-flight.

``InMemoryDocumentStore`` keeps documents in process (tests and local runs);
``services.sql_document_store.SqlDocumentStore`` persists them with SQLAlchemy.
"""

import copy
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from shared_types.calendar import referenced_tenant_id

logger = logging.getLogger(__name__)

Document = Dict[str, Any]
PatchOperation = Tuple[str, str, Any]


class DocumentNotFoundError(LookupError):
    """Raised when a patch (or a required lookup) targets a missing document."""
    pass


class DocumentExistsError(ValueError):
    """Raised when create() is given an id that is already taken."""
    pass


def new_document_id() -> str:
    return uuid.uuid4().hex


def get_field(doc: Document, path: str) -> Any:
    """Read a possibly dotted field path (e.g. ``slug.current``) from a document."""
    value: Any = doc
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def matches_query(
    doc: Document,
    doc_type: Optional[str],
    tenant_id: Optional[str] = None,
    filters: Optional[Dict[str, Any]] = None,
) -> bool:
    """
    Filter predicate shared by store implementations.

    Args:
        doc: Candidate document
        doc_type: Required ``_type``, or None for any type
        tenant_id: Required chapel reference, or None for any
        filters: Field path -> required value (equality)
    """
    if doc_type is not None and doc.get("_type") != doc_type:
        return False
    if tenant_id is not None and referenced_tenant_id(doc) != tenant_id:
        return False
    for path, expected in (filters or {}).items():
        if get_field(doc, path) != expected:
            return False
    return True


def apply_patch_operations(doc: Document, operations: List[PatchOperation]) -> Document:
    """
    Apply queued patch operations to a copy of a document.

    Operations are applied in the order they were queued:
    - ``set``: overwrite the field
    - ``setIfMissing``: set the field only when absent or None
    - ``append``: extend a list field with the given items
    """
    patched = copy.deepcopy(doc)
    for op, field_name, value in operations:
        if op == "set":
            patched[field_name] = copy.deepcopy(value)
        elif op == "setIfMissing":
            if patched.get(field_name) is None:
                patched[field_name] = copy.deepcopy(value)
        elif op == "append":
            current = patched.get(field_name)
            if current is None:
                current = []
            if not isinstance(current, list):
                raise ValueError(f"Cannot append to non-list field {field_name!r}")
            patched[field_name] = current + copy.deepcopy(list(value))
        else:
            raise ValueError(f"Unknown patch operation: {op}")
    return patched


class Patch:
    """
    Chainable patch builder.

    Example:
        ```python
        await store.patch(rule_id).set_if_missing("timeExceptions", []) \\
            .append("timeExceptions", [exception]).commit()
        ```
    """

    def __init__(self, store: "DocumentStore", doc_id: str):
        self._store = store
        self.doc_id = doc_id
        self.operations: List[PatchOperation] = []

    def set(self, field_name: str, value: Any) -> "Patch":
        self.operations.append(("set", field_name, value))
        return self

    def set_if_missing(self, field_name: str, default: Any) -> "Patch":
        self.operations.append(("setIfMissing", field_name, default))
        return self

    def append(self, field_name: str, items: List[Any]) -> "Patch":
        self.operations.append(("append", field_name, list(items)))
        return self

    async def commit(self) -> Document:
        """Apply the queued operations; raises DocumentNotFoundError if the document is gone."""
        return await self._store._commit_patch(self.doc_id, self.operations)


class Transaction:
    """Multi-delete applied atomically on commit."""

    def __init__(self, store: "DocumentStore"):
        self._store = store
        self.deletes: List[str] = []

    def delete(self, doc_id: str) -> "Transaction":
        self.deletes.append(doc_id)
        return self

    async def commit(self) -> List[str]:
        """Delete every queued id (missing ids are skipped); returns the ids deleted."""
        return await self._store._commit_transaction(self.deletes)


class DocumentStore(ABC):
    """Abstract asynchronous document store."""

    @abstractmethod
    async def query(
        self,
        doc_type: Optional[str],
        tenant_id: Optional[str] = None,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[Document]:
        """Fetch documents by type, chapel reference and field equality filters."""

    @abstractmethod
    async def get(self, doc_id: str) -> Optional[Document]:
        """Fetch one document by id, or None."""

    @abstractmethod
    async def references(self, doc_id: str) -> List[Document]:
        """Fetch every document that references the given chapel id."""

    @abstractmethod
    async def create(self, doc: Document) -> Document:
        """Create a document, assigning an ``_id`` when absent."""

    @abstractmethod
    async def create_or_replace(self, doc: Document) -> Document:
        """Create the document or wholesale replace the one with the same ``_id``."""

    @abstractmethod
    async def delete(self, doc_id: str) -> bool:
        """Delete a document; deleting a missing document is a no-op returning False."""

    def patch(self, doc_id: str) -> Patch:
        return Patch(self, doc_id)

    def transaction(self) -> Transaction:
        return Transaction(self)

    @abstractmethod
    async def _commit_patch(self, doc_id: str, operations: List[PatchOperation]) -> Document:
        ...

    @abstractmethod
    async def _commit_transaction(self, deletes: List[str]) -> List[str]:
        ...


class InMemoryDocumentStore(DocumentStore):
    """
    Process-local document store.

    Documents are deep-copied on the way in and out so callers can never
    mutate stored state by accident.
    """

    def __init__(self, documents: Optional[List[Document]] = None):
        self._docs: Dict[str, Document] = {}
        for doc in documents or []:
            stored = copy.deepcopy(doc)
            stored.setdefault("_id", new_document_id())
            self._docs[stored["_id"]] = stored

    async def query(
        self,
        doc_type: Optional[str],
        tenant_id: Optional[str] = None,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[Document]:
        return [
            copy.deepcopy(doc) for doc in self._docs.values()
            if matches_query(doc, doc_type, tenant_id, filters)
        ]

    async def get(self, doc_id: str) -> Optional[Document]:
        doc = self._docs.get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def references(self, doc_id: str) -> List[Document]:
        return [copy.deepcopy(doc) for doc in self._docs.values() if referenced_tenant_id(doc) == doc_id]

    async def create(self, doc: Document) -> Document:
        stored = copy.deepcopy(doc)
        stored.setdefault("_id", new_document_id())
        if stored["_id"] in self._docs:
            raise DocumentExistsError(f"Document {stored['_id']} already exists")
        self._docs[stored["_id"]] = stored
        return copy.deepcopy(stored)

    async def create_or_replace(self, doc: Document) -> Document:
        if not doc.get("_id"):
            raise ValueError("create_or_replace requires an _id")
        stored = copy.deepcopy(doc)
        self._docs[stored["_id"]] = stored
        return copy.deepcopy(stored)

    async def delete(self, doc_id: str) -> bool:
        if self._docs.pop(doc_id, None) is None:
            logger.info(f"Delete of missing document {doc_id} ignored")
            return False
        return True

    async def _commit_patch(self, doc_id: str, operations: List[PatchOperation]) -> Document:
        current = self._docs.get(doc_id)
        if current is None:
            raise DocumentNotFoundError(f"Document {doc_id} not found")
        patched = apply_patch_operations(current, operations)
        self._docs[doc_id] = patched
        return copy.deepcopy(patched)

    async def _commit_transaction(self, deletes: List[str]) -> List[str]:
        # Validate nothing, then apply everything: there is no partial state to roll back
        deleted = [doc_id for doc_id in deletes if doc_id in self._docs]
        for doc_id in deleted:
            del self._docs[doc_id]
        return deleted
