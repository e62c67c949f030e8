"""
Shared response models and error mapping for API endpoints.

This module contains Pydantic response models that are shared across
multiple API endpoints, and the translation of service errors to HTTP
responses.
"""

import logging
from datetime import datetime
from typing import List, NoReturn, Optional

from fastapi import HTTPException, status
from pydantic import BaseModel

from services.calendar_errors import CalendarValidationError, PartialWriteError, SlotUnavailableError
from services.document_store import DocumentNotFoundError
from shared_types.calendar import HourRule, ManualBlock, Reservation, Tenant, TimeException

logger = logging.getLogger(__name__)


class TenantResponse(BaseModel):
    """Public chapel information (the password is never returned)."""
    id: str
    name: str
    slug: Optional[str] = None
    timezone: Optional[str] = None
    nickname: Optional[str] = None
    city: Optional[str] = None

    @classmethod
    def from_tenant(cls, tenant: Tenant) -> "TenantResponse":
        return cls(
            id=tenant.id,
            name=tenant.name,
            slug=tenant.slug,
            timezone=tenant.timezone,
            nickname=tenant.nickname,
            city=tenant.city,
        )


class ReservationResponse(BaseModel):
    id: str
    name: str
    start: datetime
    end: datetime

    @classmethod
    def from_reservation(cls, reservation: Reservation) -> "ReservationResponse":
        return cls(id=reservation.id, name=reservation.name, start=reservation.start, end=reservation.end)


class ManualBlockResponse(BaseModel):
    id: str
    start: datetime
    end: datetime

    @classmethod
    def from_block(cls, block: ManualBlock) -> "ManualBlockResponse":
        return cls(id=block.id, start=block.start, end=block.end)


class TimeExceptionResponse(BaseModel):
    date: str  # Format: "YYYY-MM-DD"
    start_hour: int
    end_hour: int

    @classmethod
    def from_exception(cls, exception: TimeException) -> "TimeExceptionResponse":
        return cls(date=exception.date, start_hour=exception.start_hour, end_hour=exception.end_hour)


class HourRuleResponse(BaseModel):
    id: str
    start_hour: int
    end_hour: int
    exceptions: List[TimeExceptionResponse] = []

    @classmethod
    def from_rule(cls, rule: HourRule) -> "HourRuleResponse":
        return cls(
            id=rule.id,
            start_hour=rule.start_hour,
            end_hour=rule.end_hour,
            exceptions=[TimeExceptionResponse.from_exception(ex) for ex in rule.exceptions],
        )


def raise_http_error(e: Exception, action: str) -> NoReturn:
    """
    Re-raise a service exception as the matching HTTPException.

    Unexpected exceptions are logged with their traceback and become a 500.

    Args:
        e: Exception raised by a service
        action: What the endpoint was doing, for logs and the 500 detail
    """
    if isinstance(e, HTTPException):
        raise e
    if isinstance(e, SlotUnavailableError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if isinstance(e, CalendarValidationError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if isinstance(e, DocumentNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, PartialWriteError):
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"{e} (completed {len(e.succeeded)}, failed {len(e.failures)})",
        )
    logger.exception(f"Failed to {action}: {e}")
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}",
    )
