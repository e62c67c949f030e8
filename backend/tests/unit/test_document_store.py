"""
Unit tests for the document store implementations.

Every test runs against both the in-memory store and the SQL store backed by
in-memory SQLite.
"""

import asyncio

import pytest

from services.document_store import (
    DocumentExistsError,
    DocumentNotFoundError,
    InMemoryDocumentStore,
    apply_patch_operations,
    get_field,
)
from shared_types.calendar import tenant_reference


@pytest.fixture(params=["memory", "sql"])
def doc_store(request):
    if request.param == "memory":
        return InMemoryDocumentStore()
    return request.getfixturevalue("sql_store")


def reservation(doc_id, tenant_id="chapel-1", name="Miriam"):
    return {
        "_id": doc_id,
        "_type": "reservation",
        "chapel": tenant_reference(tenant_id),
        "name": name,
        "phone": "050-0000000",
        "start": "2024-06-02T07:00:00Z",
        "end": "2024-06-02T08:00:00Z",
    }


class TestCreateAndRead:
    """Test create, get and query."""

    @pytest.mark.asyncio
    async def test_create_assigns_id(self, doc_store):
        created = await doc_store.create({"_type": "chapel", "name": "Chapel"})
        assert created["_id"]
        assert (await doc_store.get(created["_id"]))["name"] == "Chapel"

    @pytest.mark.asyncio
    async def test_duplicate_id_is_rejected(self, doc_store):
        await doc_store.create(reservation("r1"))
        with pytest.raises(DocumentExistsError):
            await doc_store.create(reservation("r1"))

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, doc_store):
        assert await doc_store.get("nope") is None

    @pytest.mark.asyncio
    async def test_query_by_type_tenant_and_field(self, doc_store):
        await doc_store.create({"_id": "chapel-1", "_type": "chapel", "name": "A", "slug": {"current": "a"}})
        await doc_store.create(reservation("r1"))
        await doc_store.create(reservation("r2", tenant_id="chapel-2"))
        await doc_store.create(reservation("r3", name="Sarah"))

        assert {d["_id"] for d in await doc_store.query("reservation")} == {"r1", "r2", "r3"}
        assert {d["_id"] for d in await doc_store.query("reservation", tenant_id="chapel-1")} == {"r1", "r3"}
        by_name = await doc_store.query("reservation", tenant_id="chapel-1", filters={"name": "Sarah"})
        assert [d["_id"] for d in by_name] == ["r3"]
        by_slug = await doc_store.query("chapel", filters={"slug.current": "a"})
        assert [d["_id"] for d in by_slug] == ["chapel-1"]

    @pytest.mark.asyncio
    async def test_references(self, doc_store):
        await doc_store.create({"_id": "chapel-1", "_type": "chapel", "name": "A"})
        await doc_store.create(reservation("r1"))
        await doc_store.create(reservation("r2", tenant_id="chapel-2"))
        assert [d["_id"] for d in await doc_store.references("chapel-1")] == ["r1"]

    @pytest.mark.asyncio
    async def test_returned_documents_are_copies(self, doc_store):
        await doc_store.create(reservation("r1"))
        doc = await doc_store.get("r1")
        doc["name"] = "changed"
        assert (await doc_store.get("r1"))["name"] == "Miriam"


class TestWrites:
    """Test replace, delete, patch and transactions."""

    @pytest.mark.asyncio
    async def test_create_or_replace(self, doc_store):
        await doc_store.create_or_replace({"_id": "d1", "_type": "autoBlockedDays", "daysOfWeek": ["Sunday"]})
        await doc_store.create_or_replace({"_id": "d1", "_type": "autoBlockedDays", "daysOfWeek": ["Monday"]})
        assert (await doc_store.get("d1"))["daysOfWeek"] == ["Monday"]
        assert len(await doc_store.query("autoBlockedDays")) == 1

    @pytest.mark.asyncio
    async def test_create_or_replace_requires_id(self, doc_store):
        with pytest.raises(ValueError):
            await doc_store.create_or_replace({"_type": "autoBlockedDays"})

    @pytest.mark.asyncio
    async def test_delete_missing_is_noop(self, doc_store):
        assert await doc_store.delete("nope") is False

    @pytest.mark.asyncio
    async def test_delete(self, doc_store):
        await doc_store.create(reservation("r1"))
        assert await doc_store.delete("r1") is True
        assert await doc_store.get("r1") is None

    @pytest.mark.asyncio
    async def test_patch_set_if_missing_then_append(self, doc_store):
        await doc_store.create({"_id": "h1", "_type": "autoBlockedHours", "startHour": "9", "endHour": "12"})
        exception = {"_type": "timeException", "date": "2024-06-02", "startHour": "10", "endHour": "11"}

        await doc_store.patch("h1").set_if_missing("timeExceptions", []).append("timeExceptions", [exception]).commit()
        await doc_store.patch("h1").set_if_missing("timeExceptions", []).append("timeExceptions", [exception]).commit()

        assert len((await doc_store.get("h1"))["timeExceptions"]) == 2

    @pytest.mark.asyncio
    async def test_concurrent_appends_are_all_kept(self, doc_store):
        await doc_store.create({"_id": "h1", "_type": "autoBlockedHours", "startHour": "0", "endHour": "24"})
        exceptions = [
            {"_type": "timeException", "date": "2024-06-02", "startHour": str(hour), "endHour": str(hour + 1)}
            for hour in range(8)
        ]

        await asyncio.gather(*(
            doc_store.patch("h1").set_if_missing("timeExceptions", []).append("timeExceptions", [ex]).commit()
            for ex in exceptions
        ))

        stored = (await doc_store.get("h1"))["timeExceptions"]
        assert sorted(ex["startHour"] for ex in stored) == sorted(ex["startHour"] for ex in exceptions)

    @pytest.mark.asyncio
    async def test_patch_missing_document_raises(self, doc_store):
        with pytest.raises(DocumentNotFoundError):
            await doc_store.patch("nope").set("name", "x").commit()

    @pytest.mark.asyncio
    async def test_transaction_deletes_all(self, doc_store):
        await doc_store.create(reservation("r1"))
        await doc_store.create(reservation("r2"))
        deleted = await doc_store.transaction().delete("r1").delete("r2").delete("missing").commit()
        assert sorted(deleted) == ["r1", "r2"]
        assert await doc_store.query("reservation") == []


class TestPatchOperations:
    """Test the shared patch helpers."""

    def test_set_if_missing_keeps_existing_value(self):
        patched = apply_patch_operations({"a": [1]}, [("setIfMissing", "a", [])])
        assert patched == {"a": [1]}

    def test_append_to_non_list_raises(self):
        with pytest.raises(ValueError):
            apply_patch_operations({"a": "text"}, [("append", "a", [1])])

    def test_unknown_operation_raises(self):
        with pytest.raises(ValueError):
            apply_patch_operations({}, [("unset", "a", None)])

    def test_source_document_is_untouched(self):
        doc = {"a": [1]}
        apply_patch_operations(doc, [("append", "a", [2])])
        assert doc == {"a": [1]}

    def test_get_field_follows_dotted_path(self):
        assert get_field({"slug": {"current": "x"}}, "slug.current") == "x"
        assert get_field({"slug": "x"}, "slug.current") is None
