"""
Tenant (chapel) management.

Chapels own every other document by reference; deleting a chapel removes
its reservations, blocks and rules together with it.
"""

import logging
import re
from typing import Any, Dict, List, Optional

from core.constants import MAX_SLUG_LENGTH, MAX_STRING_LENGTH, TENANT_DOC_TYPE
from services.calendar_data_service import CalendarDataService
from services.calendar_errors import CalendarValidationError
from services.document_store import DocumentNotFoundError, DocumentStore
from shared_types.calendar import Tenant
from utils.datetime_utils import is_valid_timezone

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("name", "timezone", "password", "nickname", "city")


def slugify(name: str) -> str:
    """
    Derive a URL slug from a chapel name.

    Lower-cases, turns whitespace runs into ``-`` and strips anything that is
    not a word character or ``-``.
    """
    slug = re.sub(r"\s+", "-", name.strip().lower())
    slug = re.sub(r"[^\w-]+", "", slug)
    return slug[:MAX_SLUG_LENGTH]


class TenantService:
    """Service class for chapel CRUD."""

    @staticmethod
    def _validate_name(name: Optional[str]) -> str:
        name = (name or "").strip()
        if not name:
            raise CalendarValidationError("Chapel name is required")
        if len(name) > MAX_STRING_LENGTH:
            raise CalendarValidationError(f"Chapel name must be at most {MAX_STRING_LENGTH} characters")
        if not slugify(name):
            raise CalendarValidationError("Chapel name must contain at least one letter or digit")
        return name

    @staticmethod
    def _validate_timezone(tz_name: Optional[str]) -> Optional[str]:
        if tz_name is None or tz_name == "":
            return None
        if not is_valid_timezone(tz_name):
            raise CalendarValidationError(f"Unknown timezone: {tz_name}")
        return tz_name

    @staticmethod
    async def _ensure_slug_free(store: DocumentStore, slug: str, tenant_id: Optional[str] = None) -> None:
        clashes = await store.query(TENANT_DOC_TYPE, filters={"slug.current": slug})
        if any(doc["_id"] != tenant_id for doc in clashes):
            raise CalendarValidationError(f"A chapel with slug {slug!r} already exists")

    @staticmethod
    async def create_tenant(
        store: DocumentStore,
        name: str,
        timezone: Optional[str] = None,
        password: Optional[str] = None,
        nickname: Optional[str] = None,
        city: Optional[str] = None,
    ) -> Tenant:
        """
        Create a chapel with a slug derived from its name.

        Raises:
            CalendarValidationError: Missing name, unknown timezone or slug already taken
        """
        name = TenantService._validate_name(name)
        tz_name = TenantService._validate_timezone(timezone)
        slug = slugify(name)
        await TenantService._ensure_slug_free(store, slug)

        tenant = Tenant(
            id="",
            name=name,
            timezone=tz_name,
            slug=slug,
            password=password or None,
            nickname=nickname or None,
            city=city or None,
        )
        doc = tenant.to_document()
        del doc["_id"]
        created = await store.create(doc)
        logger.info(f"Created chapel {created['_id']} ({slug})")
        return Tenant.from_document(created)

    @staticmethod
    async def update_tenant(store: DocumentStore, tenant_id: str, changes: Dict[str, Any]) -> Tenant:
        """
        Edit a chapel's fields.

        Only name, timezone, password, nickname and city can change. A new
        name also re-derives the slug.

        Raises:
            CalendarValidationError: Invalid values
            DocumentNotFoundError: Unknown chapel
        """
        await CalendarDataService.get_tenant(store, tenant_id)
        updates = {key: value for key, value in changes.items() if key in EDITABLE_FIELDS}
        if not updates:
            return await CalendarDataService.get_tenant(store, tenant_id)

        patch = store.patch(tenant_id)
        if "name" in updates:
            name = TenantService._validate_name(updates["name"])
            slug = slugify(name)
            await TenantService._ensure_slug_free(store, slug, tenant_id)
            patch.set("name", name).set("slug", {"_type": "slug", "current": slug})
        if "timezone" in updates:
            patch.set("timezone", TenantService._validate_timezone(updates["timezone"]))
        for key in ("password", "nickname", "city"):
            if key in updates:
                patch.set(key, updates[key] or None)

        updated = await patch.commit()
        logger.info(f"Updated chapel {tenant_id}: {sorted(updates)}")
        return Tenant.from_document(updated)

    @staticmethod
    async def get_by_slug(store: DocumentStore, slug: str) -> Tenant:
        """
        Raises:
            DocumentNotFoundError: No chapel has that slug
        """
        docs = await store.query(TENANT_DOC_TYPE, filters={"slug.current": slug})
        if not docs:
            raise DocumentNotFoundError(f"Chapel {slug!r} not found")
        return Tenant.from_document(docs[0])

    @staticmethod
    async def list_tenants(store: DocumentStore) -> List[Tenant]:
        """All chapels sorted by name."""
        docs = await store.query(TENANT_DOC_TYPE)
        return sorted((Tenant.from_document(doc) for doc in docs), key=lambda t: t.name.lower())

    @staticmethod
    async def delete_tenant(store: DocumentStore, tenant_id: str) -> List[str]:
        """
        Delete a chapel and every document referencing it in one transaction.

        Returns:
            Ids of all deleted documents, the chapel's last

        Raises:
            DocumentNotFoundError: Unknown chapel
        """
        await CalendarDataService.get_tenant(store, tenant_id)
        referencing = await store.references(tenant_id)

        transaction = store.transaction()
        for doc in referencing:
            transaction.delete(doc["_id"])
        transaction.delete(tenant_id)
        deleted = await transaction.commit()

        logger.info(f"Deleted chapel {tenant_id} and {len(deleted) - 1} referencing documents")
        return deleted
