"""
Services package for shared business logic.

This package contains the availability-resolution engine and the services
that read and write chapel calendar documents through the document store.
"""

from .availability_service import AvailabilityResolver
from .block_mutation_service import BlockMutationService
from .reservation_service import ReservationService
from .tenant_service import TenantService
from .auto_block_rule_service import AutoBlockRuleService
from .leaderboard_service import LeaderboardService

__all__ = [
    "AvailabilityResolver",
    "BlockMutationService",
    "ReservationService",
    "TenantService",
    "AutoBlockRuleService",
    "LeaderboardService",
]
