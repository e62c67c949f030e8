"""
Loading of chapel calendar data from the document store.

Every availability decision is made against a freshly loaded snapshot; the
engine never works from deltas, so re-loading after a partial write is always
safe.
"""

import asyncio
import logging
from typing import List, Optional

from core.constants import (
    DAY_RULE_DOC_TYPE,
    HOUR_RULE_DOC_TYPE,
    MANUAL_BLOCK_DOC_TYPE,
    RESERVATION_DOC_TYPE,
    TENANT_DOC_TYPE,
)
from services.document_store import DocumentNotFoundError, DocumentStore
from shared_types.calendar import (
    CalendarSnapshot,
    DayRule,
    HourRule,
    ManualBlock,
    Reservation,
    Tenant,
    day_rule_id,
)

logger = logging.getLogger(__name__)


class CalendarDataService:
    """Read-side access to a chapel's calendar documents."""

    @staticmethod
    async def get_tenant(store: DocumentStore, tenant_id: str) -> Tenant:
        """
        Fetch a chapel by id.

        Raises:
            DocumentNotFoundError: If no chapel has that id
        """
        doc = await store.get(tenant_id)
        if doc is None or doc.get("_type") != TENANT_DOC_TYPE:
            raise DocumentNotFoundError(f"Chapel {tenant_id} not found")
        return Tenant.from_document(doc)

    @staticmethod
    async def get_day_rule(store: DocumentStore, tenant_id: str) -> Optional[DayRule]:
        """
        Fetch the chapel's day rule, or None when none was ever saved.

        The singleton id is preferred; a day rule document stored under any
        other id for the same chapel is used as a fallback.
        """
        docs = await store.query(DAY_RULE_DOC_TYPE, tenant_id=tenant_id)
        if not docs:
            return None
        singleton = day_rule_id(tenant_id)
        for doc in docs:
            if doc["_id"] == singleton:
                return DayRule.from_document(doc)
        if len(docs) > 1:
            logger.warning(f"Chapel {tenant_id} has {len(docs)} day rule documents; using {docs[0]['_id']}")
        return DayRule.from_document(docs[0])

    @staticmethod
    async def get_hour_rules(store: DocumentStore, tenant_id: str) -> List[HourRule]:
        docs = await store.query(HOUR_RULE_DOC_TYPE, tenant_id=tenant_id)
        return [HourRule.from_document(doc) for doc in docs]

    @staticmethod
    async def get_reservations(store: DocumentStore, tenant_id: str) -> List[Reservation]:
        docs = await store.query(RESERVATION_DOC_TYPE, tenant_id=tenant_id)
        return sorted((Reservation.from_document(doc) for doc in docs), key=lambda r: r.start)

    @staticmethod
    async def get_manual_blocks(store: DocumentStore, tenant_id: str) -> List[ManualBlock]:
        docs = await store.query(MANUAL_BLOCK_DOC_TYPE, tenant_id=tenant_id)
        return sorted((ManualBlock.from_document(doc) for doc in docs), key=lambda b: b.start)

    @staticmethod
    async def load_snapshot(store: DocumentStore, tenant_id: str) -> CalendarSnapshot:
        """
        Load everything the availability engine needs for one chapel.

        The five reads are issued concurrently.

        Args:
            store: Document store
            tenant_id: Chapel id

        Returns:
            CalendarSnapshot of the chapel's current stored state

        Raises:
            DocumentNotFoundError: If the chapel does not exist
        """
        tenant, reservations, blocks, hour_rules, day_rule = await asyncio.gather(
            CalendarDataService.get_tenant(store, tenant_id),
            CalendarDataService.get_reservations(store, tenant_id),
            CalendarDataService.get_manual_blocks(store, tenant_id),
            CalendarDataService.get_hour_rules(store, tenant_id),
            CalendarDataService.get_day_rule(store, tenant_id),
        )
        logger.debug(
            f"Loaded chapel {tenant_id}: {len(reservations)} reservations, {len(blocks)} blocks, "
            f"{len(hour_rules)} hour rules, day rule={'yes' if day_rule else 'no'}"
        )
        return CalendarSnapshot(
            tenant=tenant,
            reservations=reservations,
            manual_blocks=blocks,
            hour_rules=hour_rules,
            day_rule=day_rule,
        )
