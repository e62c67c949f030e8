# pyright: reportMissingTypeStubs=false
"""
Chapel (tenant) API endpoints and the leaderboard.

Listing and lookup are public; creating, editing and deleting chapels
require the admin key.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from api.responses import TenantResponse, raise_http_error
from auth.dependencies import get_document_store, require_admin
from services import LeaderboardService, TenantService
from services.document_store import DocumentStore

logger = logging.getLogger(__name__)

router = APIRouter()


# ===== Request/Response Models =====

class TenantCreateRequest(BaseModel):
    """Request model for creating a chapel."""
    name: str
    timezone: Optional[str] = None
    password: Optional[str] = None
    nickname: Optional[str] = None
    city: Optional[str] = None


class TenantUpdateRequest(BaseModel):
    """Request model for editing a chapel; omitted fields are left unchanged."""
    name: Optional[str] = None
    timezone: Optional[str] = None
    password: Optional[str] = None
    nickname: Optional[str] = None
    city: Optional[str] = None


class TenantListResponse(BaseModel):
    tenants: List[TenantResponse]


class TenantDeleteResponse(BaseModel):
    deleted_ids: List[str]


class LeaderboardEntryResponse(BaseModel):
    tenant_id: str
    name: str
    slug: Optional[str] = None
    hours: float


class LeaderboardResponse(BaseModel):
    entries: List[LeaderboardEntryResponse]


# ===== Endpoints =====

@router.get("/tenants", summary="List chapels", response_model=TenantListResponse)
async def list_tenants(store: DocumentStore = Depends(get_document_store)) -> TenantListResponse:
    try:
        tenants = await TenantService.list_tenants(store)
        return TenantListResponse(tenants=[TenantResponse.from_tenant(t) for t in tenants])
    except Exception as e:
        raise_http_error(e, "list chapels")


@router.post(
    "/tenants",
    summary="Create a chapel",
    response_model=TenantResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def create_tenant(
    request: TenantCreateRequest,
    store: DocumentStore = Depends(get_document_store),
) -> TenantResponse:
    try:
        tenant = await TenantService.create_tenant(
            store,
            name=request.name,
            timezone=request.timezone,
            password=request.password,
            nickname=request.nickname,
            city=request.city,
        )
        return TenantResponse.from_tenant(tenant)
    except Exception as e:
        raise_http_error(e, "create chapel")


@router.get("/tenants/{slug}", summary="Get a chapel by slug", response_model=TenantResponse)
async def get_tenant_by_slug(slug: str, store: DocumentStore = Depends(get_document_store)) -> TenantResponse:
    try:
        return TenantResponse.from_tenant(await TenantService.get_by_slug(store, slug))
    except Exception as e:
        raise_http_error(e, "fetch chapel")


@router.patch(
    "/tenants/{tenant_id}",
    summary="Edit a chapel",
    response_model=TenantResponse,
    dependencies=[Depends(require_admin)],
)
async def update_tenant(
    tenant_id: str,
    request: TenantUpdateRequest,
    store: DocumentStore = Depends(get_document_store),
) -> TenantResponse:
    changes = request.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")
    try:
        tenant = await TenantService.update_tenant(store, tenant_id, changes)
        return TenantResponse.from_tenant(tenant)
    except Exception as e:
        raise_http_error(e, "update chapel")


@router.delete(
    "/tenants/{tenant_id}",
    summary="Delete a chapel and all of its data",
    response_model=TenantDeleteResponse,
    dependencies=[Depends(require_admin)],
)
async def delete_tenant(tenant_id: str, store: DocumentStore = Depends(get_document_store)) -> TenantDeleteResponse:
    try:
        deleted = await TenantService.delete_tenant(store, tenant_id)
        return TenantDeleteResponse(deleted_ids=deleted)
    except Exception as e:
        raise_http_error(e, "delete chapel")


@router.get("/leaderboard", summary="Chapels ranked by hours held", response_model=LeaderboardResponse)
async def get_leaderboard(store: DocumentStore = Depends(get_document_store)) -> LeaderboardResponse:
    try:
        entries = await LeaderboardService.get_leaderboard(store)
        return LeaderboardResponse(entries=[
            LeaderboardEntryResponse(tenant_id=e.tenant_id, name=e.name, slug=e.slug, hours=e.hours)
            for e in entries
        ])
    except Exception as e:
        raise_http_error(e, "compute leaderboard")
