"""
Admin block/unblock and weekday-rule mutations.

Turns an admin's range selection into store writes:
- block: one ManualBlock per local hour of the range not already manually
  blocked
- unblock: delete manual blocks matching the range's hours exactly, and
  append an exception to every rule that still covers one of those hours
- set_blocked_weekdays: replace the chapel's day rule weekday set

Writes of one request run concurrently and are not atomic. A partial failure
raises PartialWriteError and the caller re-fetches; the availability engine
works from whatever state resulted.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Awaitable, Dict, List, Optional, Sequence, Tuple

from core.constants import EXCEPTIONS_FIELD, WEEKDAY_NAMES
from services.availability_service import AvailabilityResolver
from services.calendar_data_service import CalendarDataService
from services.calendar_errors import CalendarValidationError, PartialWriteError
from services.document_store import DocumentStore
from services.rule_coverage import day_rule_covers, hour_rule_covers
from shared_types.calendar import DayRule, ManualBlock, TimeException, day_rule_id
from utils.datetime_utils import (
    ensure_utc,
    exception_hours_for_step,
    format_instant,
    is_local_hour_boundary,
    iter_local_hours,
    weekday_name,
)

logger = logging.getLogger(__name__)

OUTCOME_CREATED = "created"
OUTCOME_UPDATED = "updated"
OUTCOME_NOOP = "noop"


@dataclass
class BlockResult:
    """Outcome of a block request."""
    outcome: str
    created: List[ManualBlock] = field(default_factory=list)


@dataclass
class UnblockResult:
    """Outcome of an unblock request."""
    outcome: str
    deleted_block_ids: List[str] = field(default_factory=list)
    # Rule document id -> exceptions appended to it
    exceptions_added: Dict[str, List[TimeException]] = field(default_factory=dict)


async def _run_batch(description: str, operations: Sequence[Tuple[Any, Awaitable[Any]]]) -> List[Any]:
    """
    Await a batch of store writes together.

    Every write is allowed to finish; if any failed, PartialWriteError is
    raised listing what went through and what did not.

    Args:
        description: Batch name for logs and the error message
        operations: (operation label, awaitable) pairs

    Returns:
        Results in operation order
    """
    labels = [label for label, _ in operations]
    results = await asyncio.gather(*(op for _, op in operations), return_exceptions=True)

    succeeded = []
    failures = []
    for label, result in zip(labels, results):
        if isinstance(result, BaseException):
            failures.append((label, result))
        else:
            succeeded.append(label)

    if failures:
        logger.error(
            f"{description}: {len(failures)} of {len(labels)} writes failed: "
            f"{[(label, repr(exc)) for label, exc in failures]}"
        )
        raise PartialWriteError(
            f"{description} partially failed ({len(failures)} of {len(labels)} writes); refresh and retry",
            succeeded=succeeded,
            failures=failures,
        )
    return list(results)


class BlockMutationService:
    """Service class for admin calendar mutations."""

    @staticmethod
    def _validate_range(
        resolver: AvailabilityResolver,
        range_start: datetime,
        range_end: datetime,
    ) -> Tuple[datetime, datetime]:
        start = ensure_utc(range_start)
        end = ensure_utc(range_end)
        if end <= start:
            raise CalendarValidationError("Range end must be after range start")
        if resolver.is_past(start):
            raise CalendarValidationError("Cannot change blocks in the past")
        if not is_local_hour_boundary(start, resolver.tz) or not is_local_hour_boundary(end, resolver.tz):
            raise CalendarValidationError("Range must start and end on a full hour")
        return start, end

    @staticmethod
    async def block(
        store: DocumentStore,
        tenant_id: str,
        range_start: datetime,
        range_end: datetime,
        now: Optional[datetime] = None,
    ) -> BlockResult:
        """
        Manually block every hour of a range.

        Hours that already have an exactly matching manual block are skipped,
        so blocking the same range twice creates nothing the second time.

        Args:
            store: Document store
            tenant_id: Chapel id
            range_start: Start of the selection, on a local hour boundary
            range_end: End of the selection, on a local hour boundary
            now: Current instant (defaults to the real clock)

        Returns:
            BlockResult with outcome "created" or "noop"

        Raises:
            CalendarValidationError: Empty, past or unaligned range
            DocumentNotFoundError: Unknown chapel
            PartialWriteError: Some creates failed
        """
        snapshot = await CalendarDataService.load_snapshot(store, tenant_id)
        resolver = AvailabilityResolver(snapshot, now)
        start, end = BlockMutationService._validate_range(resolver, range_start, range_end)

        staged = [
            ManualBlock(id="", tenant_id=tenant_id, start=step_start, end=step_end)
            for step_start, step_end in iter_local_hours(start, end, resolver.tz)
            if not resolver.is_manually_blocked(step_start, step_end)
        ]
        if not staged:
            logger.info(
                f"Block {format_instant(start)}..{format_instant(end)} for chapel {tenant_id}: already blocked"
            )
            return BlockResult(outcome=OUTCOME_NOOP)

        created_docs = await _run_batch(
            f"Block for chapel {tenant_id}",
            [(f"create block {format_instant(b.start)}", store.create(b.to_document())) for b in staged],
        )
        created = [ManualBlock.from_document(doc) for doc in created_docs]
        logger.info(f"Created {len(created)} manual blocks for chapel {tenant_id}")
        return BlockResult(outcome=OUTCOME_CREATED, created=created)

    @staticmethod
    async def unblock(
        store: DocumentStore,
        tenant_id: str,
        range_start: datetime,
        range_end: datetime,
        now: Optional[datetime] = None,
    ) -> UnblockResult:
        """
        Make every hour of a range unblocked.

        For each local hour of the range: manual blocks with exactly that
        hour's bounds are deleted, and each hour rule or day rule still
        covering the hour gets an exception for it. Appends to the same rule
        are sent as one patch.

        Args:
            store: Document store
            tenant_id: Chapel id
            range_start: Start of the selection, on a local hour boundary
            range_end: End of the selection, on a local hour boundary
            now: Current instant (defaults to the real clock)

        Returns:
            UnblockResult with the deleted block ids and appended exceptions

        Raises:
            CalendarValidationError: Empty, past or unaligned range
            DocumentNotFoundError: Unknown chapel
            PartialWriteError: Some deletes or patches failed
        """
        snapshot = await CalendarDataService.load_snapshot(store, tenant_id)
        resolver = AvailabilityResolver(snapshot, now)
        start, end = BlockMutationService._validate_range(resolver, range_start, range_end)
        tz = resolver.tz

        deletions: List[str] = []
        appends: Dict[str, List[TimeException]] = {}
        for step_start, step_end in iter_local_hours(start, end, tz):
            for block in snapshot.manual_blocks:
                if block.matches(step_start, step_end) and block.id not in deletions:
                    deletions.append(block.id)

            ex_date, ex_start, ex_end = exception_hours_for_step(step_start, step_end, tz)
            exception = TimeException(date=ex_date, start_hour=ex_start, end_hour=ex_end)
            for rule in snapshot.hour_rules:
                if hour_rule_covers(rule, step_start, step_end, tz):
                    appends.setdefault(rule.id, []).append(exception)
            if day_rule_covers(snapshot.day_rule, step_start, step_end, tz):
                appends.setdefault(snapshot.day_rule.id, []).append(exception)

        if not deletions and not appends:
            logger.info(
                f"Unblock {format_instant(start)}..{format_instant(end)} for chapel {tenant_id}: nothing blocked"
            )
            return UnblockResult(outcome=OUTCOME_NOOP)

        operations: List[Tuple[Any, Awaitable[Any]]] = [
            (f"delete block {block_id}", store.delete(block_id)) for block_id in deletions
        ]
        for rule_id, exceptions in appends.items():
            patch = store.patch(rule_id) \
                .set_if_missing(EXCEPTIONS_FIELD, []) \
                .append(EXCEPTIONS_FIELD, [ex.to_dict() for ex in exceptions])
            operations.append((f"append {len(exceptions)} exceptions to {rule_id}", patch.commit()))

        await _run_batch(f"Unblock for chapel {tenant_id}", operations)
        logger.info(
            f"Unblocked chapel {tenant_id}: deleted {len(deletions)} blocks, "
            f"added exceptions to {len(appends)} rules"
        )
        return UnblockResult(outcome=OUTCOME_UPDATED, deleted_block_ids=deletions, exceptions_added=appends)

    @staticmethod
    def normalize_weekdays(days: Sequence[str]) -> List[str]:
        """
        Validate weekday names and return them capitalized and de-duplicated.

        Raises:
            CalendarValidationError: If any name is not an English weekday
        """
        normalized: List[str] = []
        for day in days:
            name = str(day).strip().capitalize()
            if name not in WEEKDAY_NAMES:
                raise CalendarValidationError(f"Unknown weekday: {day!r}")
            if name not in normalized:
                normalized.append(name)
        return normalized

    @staticmethod
    async def set_blocked_weekdays(store: DocumentStore, tenant_id: str, days: Sequence[str]) -> DayRule:
        """
        Replace the set of weekdays the chapel is closed on.

        Exceptions dated on a weekday that is being newly added are dropped,
        so re-closing a weekday closes it completely. Exceptions on weekdays
        that stay blocked are kept.

        Args:
            store: Document store
            tenant_id: Chapel id
            days: English weekday names

        Returns:
            The saved day rule

        Raises:
            CalendarValidationError: Unknown weekday name
            DocumentNotFoundError: Unknown chapel
        """
        weekdays = BlockMutationService.normalize_weekdays(days)
        await CalendarDataService.get_tenant(store, tenant_id)
        existing = await CalendarDataService.get_day_rule(store, tenant_id)

        previous_days = set(existing.days_of_week) if existing else set()
        newly_added = set(weekdays) - previous_days

        kept: List[TimeException] = []
        for ex in (existing.exceptions if existing else []):
            try:
                ex_weekday = weekday_name(date.fromisoformat(ex.date_key))
            except ValueError:
                kept.append(ex)
                continue
            if ex_weekday not in newly_added:
                kept.append(ex)

        rule = DayRule(
            id=day_rule_id(tenant_id),
            tenant_id=tenant_id,
            days_of_week=weekdays,
            exceptions=kept,
        )
        saved = await store.create_or_replace(rule.to_document())

        if existing is not None and existing.id != rule.id:
            logger.warning(f"Replacing day rule {existing.id} of chapel {tenant_id} with {rule.id}")
            await store.delete(existing.id)

        dropped = len(existing.exceptions) - len(kept) if existing else 0
        logger.info(f"Chapel {tenant_id} blocked weekdays set to {weekdays} ({dropped} exceptions pruned)")
        return DayRule.from_document(saved)
