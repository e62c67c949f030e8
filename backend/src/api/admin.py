# pyright: reportMissingTypeStubs=false
"""
Admin calendar API endpoints.

Blocking and unblocking ranges, managing hour rules and blocked weekdays,
and removing reservations. Every endpoint requires the admin key.
"""

import logging
from datetime import datetime
from typing import Dict, List

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from api.responses import (
    HourRuleResponse,
    ManualBlockResponse,
    TimeExceptionResponse,
    raise_http_error,
)
from auth.dependencies import get_document_store, require_admin
from services import AutoBlockRuleService, BlockMutationService, ReservationService
from services.calendar_data_service import CalendarDataService
from services.document_store import DocumentStore

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_admin)])


# ===== Request/Response Models =====

class RangeRequest(BaseModel):
    """A selected [start, end) range; both ends on a full local hour."""
    start: datetime
    end: datetime


class BlockResponse(BaseModel):
    outcome: str  # "created" or "noop"
    created: List[ManualBlockResponse]


class UnblockResponse(BaseModel):
    outcome: str  # "updated" or "noop"
    deleted_block_ids: List[str]
    exceptions_added: Dict[str, List[TimeExceptionResponse]]


class HourRuleCreateRequest(BaseModel):
    start_hour: int
    end_hour: int


class HourRuleListResponse(BaseModel):
    rules: List[HourRuleResponse]


class BlockedWeekdaysRequest(BaseModel):
    days: List[str]


class BlockedWeekdaysResponse(BaseModel):
    days: List[str]
    exceptions: List[TimeExceptionResponse]


# ===== Endpoints =====

@router.post("/tenants/{tenant_id}/blocks", summary="Block a range", response_model=BlockResponse)
async def block_range(
    tenant_id: str,
    request: RangeRequest,
    store: DocumentStore = Depends(get_document_store),
) -> BlockResponse:
    try:
        result = await BlockMutationService.block(store, tenant_id, request.start, request.end)
        return BlockResponse(
            outcome=result.outcome,
            created=[ManualBlockResponse.from_block(b) for b in result.created],
        )
    except Exception as e:
        raise_http_error(e, "block range")


@router.post("/tenants/{tenant_id}/unblock", summary="Unblock a range", response_model=UnblockResponse)
async def unblock_range(
    tenant_id: str,
    request: RangeRequest,
    store: DocumentStore = Depends(get_document_store),
) -> UnblockResponse:
    try:
        result = await BlockMutationService.unblock(store, tenant_id, request.start, request.end)
        return UnblockResponse(
            outcome=result.outcome,
            deleted_block_ids=result.deleted_block_ids,
            exceptions_added={
                rule_id: [TimeExceptionResponse.from_exception(ex) for ex in exceptions]
                for rule_id, exceptions in result.exceptions_added.items()
            },
        )
    except Exception as e:
        raise_http_error(e, "unblock range")


@router.get("/tenants/{tenant_id}/hour-rules", summary="List hour rules", response_model=HourRuleListResponse)
async def list_hour_rules(tenant_id: str, store: DocumentStore = Depends(get_document_store)) -> HourRuleListResponse:
    try:
        rules = await AutoBlockRuleService.list_hour_rules(store, tenant_id)
        return HourRuleListResponse(rules=[HourRuleResponse.from_rule(r) for r in rules])
    except Exception as e:
        raise_http_error(e, "list hour rules")


@router.post(
    "/tenants/{tenant_id}/hour-rules",
    summary="Add an hour rule",
    response_model=HourRuleResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_hour_rule(
    tenant_id: str,
    request: HourRuleCreateRequest,
    store: DocumentStore = Depends(get_document_store),
) -> HourRuleResponse:
    try:
        rule = await AutoBlockRuleService.add_hour_rule(store, tenant_id, request.start_hour, request.end_hour)
        return HourRuleResponse.from_rule(rule)
    except Exception as e:
        raise_http_error(e, "add hour rule")


@router.delete(
    "/tenants/{tenant_id}/hour-rules/{rule_id}",
    summary="Remove an hour rule",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def remove_hour_rule(tenant_id: str, rule_id: str, store: DocumentStore = Depends(get_document_store)) -> None:
    try:
        await AutoBlockRuleService.remove_hour_rule(store, tenant_id, rule_id)
    except Exception as e:
        raise_http_error(e, "remove hour rule")


@router.get(
    "/tenants/{tenant_id}/blocked-weekdays",
    summary="Get blocked weekdays",
    response_model=BlockedWeekdaysResponse,
)
async def get_blocked_weekdays(
    tenant_id: str,
    store: DocumentStore = Depends(get_document_store),
) -> BlockedWeekdaysResponse:
    try:
        await CalendarDataService.get_tenant(store, tenant_id)
        rule = await CalendarDataService.get_day_rule(store, tenant_id)
        if rule is None:
            return BlockedWeekdaysResponse(days=[], exceptions=[])
        return BlockedWeekdaysResponse(
            days=rule.days_of_week,
            exceptions=[TimeExceptionResponse.from_exception(ex) for ex in rule.exceptions],
        )
    except Exception as e:
        raise_http_error(e, "fetch blocked weekdays")


@router.put(
    "/tenants/{tenant_id}/blocked-weekdays",
    summary="Replace blocked weekdays",
    response_model=BlockedWeekdaysResponse,
)
async def set_blocked_weekdays(
    tenant_id: str,
    request: BlockedWeekdaysRequest,
    store: DocumentStore = Depends(get_document_store),
) -> BlockedWeekdaysResponse:
    try:
        rule = await BlockMutationService.set_blocked_weekdays(store, tenant_id, request.days)
        return BlockedWeekdaysResponse(
            days=rule.days_of_week,
            exceptions=[TimeExceptionResponse.from_exception(ex) for ex in rule.exceptions],
        )
    except Exception as e:
        raise_http_error(e, "save blocked weekdays")


@router.delete(
    "/tenants/{tenant_id}/reservations/{reservation_id}",
    summary="Remove a reservation",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_reservation(
    tenant_id: str,
    reservation_id: str,
    store: DocumentStore = Depends(get_document_store),
) -> None:
    try:
        await ReservationService.delete_reservation(store, tenant_id, reservation_id)
    except Exception as e:
        raise_http_error(e, "delete reservation")
