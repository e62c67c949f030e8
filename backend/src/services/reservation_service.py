"""
Reservation creation and removal.

Creation is the booking path: it reloads the chapel's calendar and runs the
bookability check right before writing. Two bookers racing for the same slot
can still both pass the check; that window is accepted.
"""

import logging
from datetime import datetime
from typing import List, Optional

from core.constants import MAX_HOLDER_NAME_LENGTH, MAX_PHONE_LENGTH, RESERVATION_DOC_TYPE
from services.availability_service import AvailabilityResolver
from services.calendar_data_service import CalendarDataService
from services.calendar_errors import CalendarValidationError, SlotUnavailableError
from services.document_store import DocumentNotFoundError, DocumentStore
from shared_types.calendar import Reservation, referenced_tenant_id
from utils.datetime_utils import ensure_utc, format_instant

logger = logging.getLogger(__name__)


class ReservationService:
    """Service class for reservation operations."""

    @staticmethod
    def _validate_holder(name: Optional[str], phone: Optional[str]) -> tuple:
        name = (name or "").strip()
        phone = (phone or "").strip()
        if not name:
            raise CalendarValidationError("Name is required")
        if not phone:
            raise CalendarValidationError("Phone is required")
        if len(name) > MAX_HOLDER_NAME_LENGTH:
            raise CalendarValidationError(f"Name must be at most {MAX_HOLDER_NAME_LENGTH} characters")
        if len(phone) > MAX_PHONE_LENGTH:
            raise CalendarValidationError(f"Phone must be at most {MAX_PHONE_LENGTH} characters")
        return name, phone

    @staticmethod
    async def create_reservation(
        store: DocumentStore,
        tenant_id: str,
        name: str,
        phone: str,
        start: datetime,
        end: datetime,
        now: Optional[datetime] = None,
    ) -> Reservation:
        """
        Book [start, end) for a holder.

        Args:
            store: Document store
            tenant_id: Chapel id
            name: Holder name
            phone: Holder phone
            start: Reservation start (instant)
            end: Reservation end (instant)
            now: Current instant (defaults to the real clock)

        Returns:
            The created reservation

        Raises:
            CalendarValidationError: Missing holder details, empty range or
                range outside the bookable window
            SlotUnavailableError: The span is past, blocked or already reserved
            DocumentNotFoundError: Unknown chapel
        """
        name, phone = ReservationService._validate_holder(name, phone)
        start = ensure_utc(start)
        end = ensure_utc(end)
        if end <= start:
            raise CalendarValidationError("Reservation end must be after its start")

        # Fresh snapshot immediately before the write
        snapshot = await CalendarDataService.load_snapshot(store, tenant_id)
        resolver = AvailabilityResolver(snapshot, now)
        if not resolver.is_within_valid_range(start, end):
            raise CalendarValidationError("Reservation is outside the bookable window")
        if not resolver.can_reserve(start, end):
            logger.info(
                f"Rejected reservation {format_instant(start)}..{format_instant(end)} for chapel {tenant_id}"
            )
            raise SlotUnavailableError("This time is no longer available")

        reservation = Reservation(id="", tenant_id=tenant_id, name=name, phone=phone, start=start, end=end)
        created = await store.create(reservation.to_document())
        logger.info(f"Created reservation {created['_id']} for chapel {tenant_id}")
        return Reservation.from_document(created)

    @staticmethod
    async def delete_reservation(store: DocumentStore, tenant_id: str, reservation_id: str) -> None:
        """
        Raises:
            DocumentNotFoundError: No reservation with that id belongs to the chapel
        """
        doc = await store.get(reservation_id)
        if doc is None or doc.get("_type") != RESERVATION_DOC_TYPE or referenced_tenant_id(doc) != tenant_id:
            raise DocumentNotFoundError(f"Reservation {reservation_id} not found")
        await store.delete(reservation_id)
        logger.info(f"Deleted reservation {reservation_id} of chapel {tenant_id}")

    @staticmethod
    async def list_reservations(store: DocumentStore, tenant_id: str) -> List[Reservation]:
        await CalendarDataService.get_tenant(store, tenant_id)
        return await CalendarDataService.get_reservations(store, tenant_id)
