"""
Chapel leaderboard.

Ranks chapels by the total hours of prayer already held in them, counting
only reservations that have ended.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from core.constants import RESERVATION_DOC_TYPE, TENANT_DOC_TYPE
from services.document_store import DocumentStore
from shared_types.calendar import Reservation, Tenant
from utils.datetime_utils import ONE_HOUR, ensure_utc, utc_now

logger = logging.getLogger(__name__)


@dataclass
class LeaderboardEntry:
    tenant_id: str
    name: str
    slug: Optional[str]
    hours: float


class LeaderboardService:

    @staticmethod
    async def get_leaderboard(store: DocumentStore, now: Optional[datetime] = None) -> List[LeaderboardEntry]:
        """
        Total past reservation hours per chapel, highest first.

        Chapels without past reservations are listed with 0 hours. Ties are
        ordered by name.
        """
        now = ensure_utc(now) if now is not None else utc_now()
        tenants = [Tenant.from_document(doc) for doc in await store.query(TENANT_DOC_TYPE)]
        totals: Dict[str, float] = {t.id: 0.0 for t in tenants}

        for doc in await store.query(RESERVATION_DOC_TYPE):
            reservation = Reservation.from_document(doc)
            if reservation.tenant_id not in totals:
                continue
            if reservation.end <= now:
                totals[reservation.tenant_id] += (reservation.end - reservation.start) / ONE_HOUR

        entries = [
            LeaderboardEntry(tenant_id=t.id, name=t.name, slug=t.slug, hours=totals[t.id])
            for t in tenants
        ]
        entries.sort(key=lambda e: (-e.hours, e.name.lower()))
        logger.debug(f"Leaderboard computed for {len(entries)} chapels")
        return entries
