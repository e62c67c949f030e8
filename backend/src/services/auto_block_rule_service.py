"""Hour rule management for admins."""

import logging
from typing import Any, List

from core.constants import HOUR_RULE_DOC_TYPE, MAX_END_HOUR, MAX_START_HOUR, MIN_END_HOUR, MIN_START_HOUR
from services.calendar_data_service import CalendarDataService
from services.calendar_errors import CalendarValidationError
from services.document_store import DocumentNotFoundError, DocumentStore
from shared_types.calendar import HourRule, referenced_tenant_id

logger = logging.getLogger(__name__)


class AutoBlockRuleService:
    """Service class for recurring hour rules."""

    @staticmethod
    def validate_hours(start_hour: Any, end_hour: Any) -> tuple:
        """
        Validate and coerce hour rule bounds.

        Returns:
            (start_hour, end_hour) as ints

        Raises:
            CalendarValidationError: Non-integer or out-of-range bounds, or
                start not before end
        """
        try:
            start = int(start_hour)
            end = int(end_hour)
        except (TypeError, ValueError):
            raise CalendarValidationError("Hours must be whole numbers")
        if not MIN_START_HOUR <= start <= MAX_START_HOUR:
            raise CalendarValidationError(f"Start hour must be between {MIN_START_HOUR} and {MAX_START_HOUR}")
        if not MIN_END_HOUR <= end <= MAX_END_HOUR:
            raise CalendarValidationError(f"End hour must be between {MIN_END_HOUR} and {MAX_END_HOUR}")
        if start >= end:
            raise CalendarValidationError("Start hour must be before end hour")
        return start, end

    @staticmethod
    async def add_hour_rule(store: DocumentStore, tenant_id: str, start_hour: Any, end_hour: Any) -> HourRule:
        """
        Block local hours [start_hour, end_hour) every day.

        Raises:
            CalendarValidationError: Invalid bounds
            DocumentNotFoundError: Unknown chapel
        """
        start, end = AutoBlockRuleService.validate_hours(start_hour, end_hour)
        await CalendarDataService.get_tenant(store, tenant_id)
        rule = HourRule(id="", tenant_id=tenant_id, start_hour=start, end_hour=end)
        created = await store.create(rule.to_document())
        logger.info(f"Added hour rule {created['_id']} ({start}-{end}) to chapel {tenant_id}")
        return HourRule.from_document(created)

    @staticmethod
    async def remove_hour_rule(store: DocumentStore, tenant_id: str, rule_id: str) -> None:
        doc = await store.get(rule_id)
        if doc is None or doc.get("_type") != HOUR_RULE_DOC_TYPE or referenced_tenant_id(doc) != tenant_id:
            raise DocumentNotFoundError(f"Hour rule {rule_id} not found")
        await store.delete(rule_id)
        logger.info(f"Removed hour rule {rule_id} from chapel {tenant_id}")

    @staticmethod
    async def list_hour_rules(store: DocumentStore, tenant_id: str) -> List[HourRule]:
        await CalendarDataService.get_tenant(store, tenant_id)
        rules = await CalendarDataService.get_hour_rules(store, tenant_id)
        return sorted(rules, key=lambda r: (r.start_hour, r.end_hour))
