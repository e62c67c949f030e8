"""
Document model backing the SQL document store.

Every stored entity (chapel, reservation, manual block, hour rule, day rule)
is one row: a string id, its document type, the chapel it references (if
any), and the full JSON body.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base


class Document(Base):
    """
    A single stored document.

    The ``tenant_id`` column mirrors the body's chapel reference so that
    per-chapel queries and cascade deletes don't need to scan JSON.
    """

    __tablename__ = "documents"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    """Document id (the ``_id`` field of the body)."""

    doc_type: Mapped[str] = mapped_column(String(64), index=True)
    """Document type (the ``_type`` field of the body)."""

    tenant_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    """Referenced chapel id, or None for chapel documents themselves."""

    body: Mapped[Dict[str, Any]] = mapped_column(JSON)
    """Full document body including ``_id`` and ``_type``."""

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index('idx_documents_type_tenant', 'doc_type', 'tenant_id'),
    )

    def __repr__(self) -> str:
        return f"<Document(id={self.id}, doc_type={self.doc_type}, tenant_id={self.tenant_id})>"
