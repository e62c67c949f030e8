# pyright: reportMissingTypeStubs=false
"""
Public calendar API endpoints.

Serves the busy intervals behind a chapel's calendar, answers availability
questions for a selection, and books reservations.
"""

import logging
from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from api.responses import ReservationResponse, raise_http_error
from auth.dependencies import get_document_store
from services import AvailabilityResolver, ReservationService
from services.calendar_data_service import CalendarDataService
from services.document_store import DocumentStore
from utils.datetime_utils import ensure_utc

logger = logging.getLogger(__name__)

router = APIRouter()


# ===== Request/Response Models =====

class BackgroundIntervalResponse(BaseModel):
    """A busy interval drawn behind the calendar."""
    id: str
    source: str  # "day_rule", "hour_rule", "manual" or "past"
    start: datetime
    end: datetime
    source_id: Optional[str] = None


class TimeRangeResponse(BaseModel):
    start: datetime
    end: datetime


class CalendarResponse(BaseModel):
    """Everything the calendar needs to render one window."""
    tenant_id: str
    timezone: str
    now: datetime
    valid_range: TimeRangeResponse
    next_bookable_hour: datetime
    earliest_relevant_day: Optional[date] = None
    background: List[BackgroundIntervalResponse]
    reservations: List[ReservationResponse]


class AvailabilityCheckResponse(BaseModel):
    start: datetime
    end: datetime
    can_reserve: bool
    is_blocked: bool
    is_reserved: bool
    is_range_fully_blocked: bool


class ReservationCreateRequest(BaseModel):
    """Request model for booking a slot."""
    name: str
    phone: str
    start: datetime
    end: datetime


# ===== Endpoints =====

@router.get(
    "/tenants/{tenant_id}/calendar",
    summary="Calendar data for a window",
    response_model=CalendarResponse,
)
async def get_calendar(
    tenant_id: str,
    start: Optional[datetime] = Query(default=None, description="Window start (ISO 8601)"),
    end: Optional[datetime] = Query(default=None, description="Window end (ISO 8601)"),
    store: DocumentStore = Depends(get_document_store),
) -> CalendarResponse:
    """
    Get busy intervals and reservations for a window.

    The window defaults to, and is clipped to, the chapel's valid range.
    """
    try:
        snapshot = await CalendarDataService.load_snapshot(store, tenant_id)
        resolver = AvailabilityResolver(snapshot)
        range_start, range_end = resolver.valid_range()
        window_start = max(ensure_utc(start), range_start) if start else range_start
        window_end = min(ensure_utc(end), range_end) if end else range_end
        if window_end <= window_start:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Requested window is empty or outside the valid range",
            )

        background = resolver.expand_background_intervals(window_start, window_end)
        reservations = [
            r for r in snapshot.reservations
            if r.start < window_end and r.end > window_start
        ]
        return CalendarResponse(
            tenant_id=tenant_id,
            timezone=resolver.tz.key,
            now=resolver.now,
            valid_range=TimeRangeResponse(start=range_start, end=range_end),
            next_bookable_hour=resolver.next_bookable_hour(),
            earliest_relevant_day=resolver.find_earliest_relevant_day(),
            background=[
                BackgroundIntervalResponse(
                    id=i.id,
                    source=i.source.value,
                    start=i.start,
                    end=i.end,
                    source_id=i.source_id,
                )
                for i in background
            ],
            reservations=[ReservationResponse.from_reservation(r) for r in reservations],
        )
    except Exception as e:
        raise_http_error(e, "load calendar")


@router.get(
    "/tenants/{tenant_id}/availability",
    summary="Check a selection",
    response_model=AvailabilityCheckResponse,
)
async def check_availability(
    tenant_id: str,
    start: datetime = Query(..., description="Selection start (ISO 8601)"),
    end: datetime = Query(..., description="Selection end (ISO 8601)"),
    store: DocumentStore = Depends(get_document_store),
) -> AvailabilityCheckResponse:
    if ensure_utc(end) <= ensure_utc(start):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="end must be after start")
    try:
        snapshot = await CalendarDataService.load_snapshot(store, tenant_id)
        resolver = AvailabilityResolver(snapshot)
        return AvailabilityCheckResponse(
            start=ensure_utc(start),
            end=ensure_utc(end),
            can_reserve=resolver.can_reserve(start, end),
            is_blocked=resolver.is_blocked(start, end),
            is_reserved=resolver.is_reserved(start, end),
            is_range_fully_blocked=resolver.is_range_fully_blocked(start, end),
        )
    except Exception as e:
        raise_http_error(e, "check availability")


@router.post(
    "/tenants/{tenant_id}/reservations",
    summary="Book a slot",
    response_model=ReservationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_reservation(
    tenant_id: str,
    request: ReservationCreateRequest,
    store: DocumentStore = Depends(get_document_store),
) -> ReservationResponse:
    try:
        reservation = await ReservationService.create_reservation(
            store,
            tenant_id,
            name=request.name,
            phone=request.phone,
            start=request.start,
            end=request.end,
        )
        return ReservationResponse.from_reservation(reservation)
    except Exception as e:
        raise_http_error(e, "create reservation")
