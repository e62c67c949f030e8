"""
Unit tests for admin block/unblock mutations.

Runs against the in-memory document store; "now" is Saturday 2024-06-01
12:00 Jerusalem time.
"""

from unittest.mock import patch

import pytest

from services.availability_service import AvailabilityResolver
from services.block_mutation_service import BlockMutationService
from services.calendar_data_service import CalendarDataService
from services.calendar_errors import CalendarValidationError, PartialWriteError
from services.document_store import DocumentNotFoundError
from shared_types.calendar import TimeException, tenant_reference


@pytest.fixture
def seed(store, tenant_id, local_time):
    """Helpers writing rule and block documents into the store."""
    class Seed:
        @staticmethod
        async def hour_rule(start_hour, end_hour, rule_id="hour-rule-1"):
            return await store.create({
                "_id": rule_id,
                "_type": "autoBlockedHours",
                "chapel": tenant_reference(tenant_id),
                "startHour": str(start_hour),
                "endHour": str(end_hour),
            })

        @staticmethod
        async def day_rule(days, exceptions=()):
            return await store.create({
                "_id": f"autoBlockedDays-{tenant_id}",
                "_type": "autoBlockedDays",
                "chapel": tenant_reference(tenant_id),
                "daysOfWeek": list(days),
                "timeExceptions": [ex.to_dict() for ex in exceptions],
            })

        @staticmethod
        async def manual_block(day, hour, block_id):
            return await store.create({
                "_id": block_id,
                "_type": "blocked",
                "chapel": tenant_reference(tenant_id),
                "start": local_time(2024, 6, day, hour).isoformat(),
                "end": local_time(2024, 6, day, hour + 1).isoformat(),
            })
    return Seed


async def resolver_for(store, tenant_id, now) -> AvailabilityResolver:
    return AvailabilityResolver(await CalendarDataService.load_snapshot(store, tenant_id), now)


class TestBlock:
    """Test BlockMutationService.block."""

    @pytest.mark.asyncio
    async def test_skips_hours_already_blocked(self, store, seed, tenant_id, now, local_time):
        """A 3-hour block over a pre-blocked middle hour creates 2 blocks, then none."""
        await seed.manual_block(2, 10, "existing")
        start, end = local_time(2024, 6, 2, 9), local_time(2024, 6, 2, 12)

        first = await BlockMutationService.block(store, tenant_id, start, end, now=now)
        assert first.outcome == "created"
        assert sorted(b.start for b in first.created) == [local_time(2024, 6, 2, 9), local_time(2024, 6, 2, 11)]

        second = await BlockMutationService.block(store, tenant_id, start, end, now=now)
        assert second.outcome == "noop"
        assert second.created == []

        blocks = await CalendarDataService.get_manual_blocks(store, tenant_id)
        assert len(blocks) == 3

    @pytest.mark.asyncio
    async def test_created_blocks_are_one_hour_each(self, store, tenant_id, now, local_time):
        result = await BlockMutationService.block(
            store, tenant_id, local_time(2024, 6, 2, 22), local_time(2024, 6, 3, 1), now=now
        )
        assert len(result.created) == 3
        assert all(b.end - b.start == local_time(2024, 6, 2, 1) - local_time(2024, 6, 2, 0) for b in result.created)
        resolver = await resolver_for(store, tenant_id, now)
        assert resolver.is_range_fully_blocked(local_time(2024, 6, 2, 22), local_time(2024, 6, 3, 1))

    @pytest.mark.asyncio
    async def test_past_range_is_rejected(self, store, tenant_id, now, local_time):
        with pytest.raises(CalendarValidationError, match="past"):
            await BlockMutationService.block(
                store, tenant_id, local_time(2024, 6, 1, 10), local_time(2024, 6, 1, 14), now=now
            )
        assert await CalendarDataService.get_manual_blocks(store, tenant_id) == []

    @pytest.mark.asyncio
    async def test_empty_range_is_rejected(self, store, tenant_id, now, local_time):
        with pytest.raises(CalendarValidationError):
            await BlockMutationService.block(
                store, tenant_id, local_time(2024, 6, 2, 10), local_time(2024, 6, 2, 10), now=now
            )

    @pytest.mark.asyncio
    async def test_unaligned_range_is_rejected(self, store, tenant_id, now, local_time):
        with pytest.raises(CalendarValidationError, match="full hour"):
            await BlockMutationService.block(
                store, tenant_id, local_time(2024, 6, 2, 10, 30), local_time(2024, 6, 2, 12), now=now
            )

    @pytest.mark.asyncio
    async def test_unknown_chapel(self, store, now, local_time):
        with pytest.raises(DocumentNotFoundError):
            await BlockMutationService.block(
                store, "missing", local_time(2024, 6, 2, 10), local_time(2024, 6, 2, 11), now=now
            )

    @pytest.mark.asyncio
    async def test_partial_failure_reports_both_sides(self, store, tenant_id, now, local_time):
        original_create = store.create
        calls = []

        async def flaky_create(doc):
            calls.append(doc)
            if len(calls) == 2:
                raise RuntimeError("store unavailable")
            return await original_create(doc)

        with patch.object(store, "create", new=flaky_create):
            with pytest.raises(PartialWriteError) as exc_info:
                await BlockMutationService.block(
                    store, tenant_id, local_time(2024, 6, 2, 9), local_time(2024, 6, 2, 12), now=now
                )

        assert len(exc_info.value.succeeded) == 2
        assert len(exc_info.value.failures) == 1
        assert isinstance(exc_info.value.failures[0][1], RuntimeError)
        # Successful writes are not rolled back
        assert len(await CalendarDataService.get_manual_blocks(store, tenant_id)) == 2


class TestUnblock:
    """Test BlockMutationService.unblock."""

    @pytest.mark.asyncio
    async def test_slot_covered_by_both_rule_kinds(self, store, seed, tenant_id, now, local_time):
        """One exception is appended to each rule and nothing is deleted."""
        await seed.hour_rule(9, 12)
        await seed.day_rule(["Sunday"])

        result = await BlockMutationService.unblock(
            store, tenant_id, local_time(2024, 6, 2, 10), local_time(2024, 6, 2, 11), now=now
        )

        assert result.outcome == "updated"
        assert result.deleted_block_ids == []
        expected = [TimeException(date="2024-06-02", start_hour=10, end_hour=11)]
        assert result.exceptions_added == {
            "hour-rule-1": expected,
            f"autoBlockedDays-{tenant_id}": expected,
        }

        hour_rule_doc = await store.get("hour-rule-1")
        assert hour_rule_doc["timeExceptions"] == [
            {"_type": "timeException", "date": "2024-06-02", "startHour": "10", "endHour": "11"}
        ]
        resolver = await resolver_for(store, tenant_id, now)
        assert not resolver.is_blocked(local_time(2024, 6, 2, 10), local_time(2024, 6, 2, 11))
        assert resolver.is_blocked(local_time(2024, 6, 2, 9), local_time(2024, 6, 2, 10))

    @pytest.mark.asyncio
    async def test_block_then_unblock_round_trip(self, store, tenant_id, now, local_time):
        start, end = local_time(2024, 6, 2, 9), local_time(2024, 6, 2, 12)
        await BlockMutationService.block(store, tenant_id, start, end, now=now)

        result = await BlockMutationService.unblock(store, tenant_id, start, end, now=now)

        assert len(result.deleted_block_ids) == 3
        assert result.exceptions_added == {}
        resolver = await resolver_for(store, tenant_id, now)
        assert not resolver.is_range_fully_blocked(start, end)
        assert resolver.can_reserve(start, end)

    @pytest.mark.asyncio
    async def test_manual_block_on_top_of_rule(self, store, seed, tenant_id, now, local_time):
        """Unblocking removes the manual block and excepts the rule for the same hour."""
        await seed.hour_rule(9, 12)
        await seed.manual_block(2, 10, "manual-10")

        result = await BlockMutationService.unblock(
            store, tenant_id, local_time(2024, 6, 2, 10), local_time(2024, 6, 2, 11), now=now
        )

        assert result.deleted_block_ids == ["manual-10"]
        assert list(result.exceptions_added) == ["hour-rule-1"]
        resolver = await resolver_for(store, tenant_id, now)
        assert resolver.can_reserve(local_time(2024, 6, 2, 10), local_time(2024, 6, 2, 11))

    @pytest.mark.asyncio
    async def test_appends_are_grouped_per_rule(self, store, seed, tenant_id, now, local_time):
        await seed.hour_rule(20, 24)

        result = await BlockMutationService.unblock(
            store, tenant_id, local_time(2024, 6, 2, 22), local_time(2024, 6, 3, 0), now=now
        )

        assert result.exceptions_added["hour-rule-1"] == [
            TimeException(date="2024-06-02", start_hour=22, end_hour=23),
            TimeException(date="2024-06-02", start_hour=23, end_hour=24),
        ]
        doc = await store.get("hour-rule-1")
        assert len(doc["timeExceptions"]) == 2

    @pytest.mark.asyncio
    async def test_unblocking_free_range_is_noop(self, store, tenant_id, now, local_time):
        result = await BlockMutationService.unblock(
            store, tenant_id, local_time(2024, 6, 2, 10), local_time(2024, 6, 2, 11), now=now
        )
        assert result.outcome == "noop"

    @pytest.mark.asyncio
    async def test_past_range_is_rejected(self, store, seed, tenant_id, now, local_time):
        await seed.hour_rule(9, 12)
        with pytest.raises(CalendarValidationError):
            await BlockMutationService.unblock(
                store, tenant_id, local_time(2024, 6, 1, 9), local_time(2024, 6, 1, 10), now=now
            )
        assert "timeExceptions" not in await store.get("hour-rule-1")

    @pytest.mark.asyncio
    async def test_failed_delete_still_applies_patches(self, store, seed, tenant_id, now, local_time):
        await seed.hour_rule(9, 12)
        await seed.manual_block(2, 10, "manual-10")

        async def failing_delete(doc_id):
            raise RuntimeError("delete failed")

        with patch.object(store, "delete", new=failing_delete):
            with pytest.raises(PartialWriteError) as exc_info:
                await BlockMutationService.unblock(
                    store, tenant_id, local_time(2024, 6, 2, 10), local_time(2024, 6, 2, 11), now=now
                )

        assert exc_info.value.failures[0][0] == "delete block manual-10"
        assert len(exc_info.value.succeeded) == 1
        doc = await store.get("hour-rule-1")
        assert len(doc["timeExceptions"]) == 1
        assert await store.get("manual-10") is not None


class TestSetBlockedWeekdays:
    """Test BlockMutationService.set_blocked_weekdays."""

    @pytest.mark.asyncio
    async def test_creates_singleton_day_rule(self, store, tenant_id):
        rule = await BlockMutationService.set_blocked_weekdays(store, tenant_id, ["saturday", "Sunday", "Sunday"])
        assert rule.id == f"autoBlockedDays-{tenant_id}"
        assert rule.days_of_week == ["Saturday", "Sunday"]
        assert (await store.get(rule.id))["daysOfWeek"] == ["Saturday", "Sunday"]

    @pytest.mark.asyncio
    async def test_newly_added_weekday_drops_its_exceptions(self, store, seed, tenant_id):
        await seed.day_rule(["Sunday"], [
            TimeException(date="2024-06-02", start_hour=10, end_hour=12),  # Sunday
            TimeException(date="2024-06-03", start_hour=9, end_hour=10),  # Monday
        ])

        rule = await BlockMutationService.set_blocked_weekdays(store, tenant_id, ["Sunday", "Monday"])

        assert rule.exceptions == [TimeException(date="2024-06-02", start_hour=10, end_hour=12)]

    @pytest.mark.asyncio
    async def test_unknown_weekday_is_rejected(self, store, tenant_id):
        with pytest.raises(CalendarValidationError, match="weekday"):
            await BlockMutationService.set_blocked_weekdays(store, tenant_id, ["Sunday", "Funday"])
        assert await CalendarDataService.get_day_rule(store, tenant_id) is None

    @pytest.mark.asyncio
    async def test_empty_set_clears_blocking(self, store, seed, tenant_id, now, local_time):
        await seed.day_rule(["Sunday"])
        await BlockMutationService.set_blocked_weekdays(store, tenant_id, [])
        resolver = await resolver_for(store, tenant_id, now)
        assert not resolver.is_blocked(local_time(2024, 6, 2, 10), local_time(2024, 6, 2, 11))
