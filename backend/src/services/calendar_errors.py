"""Errors raised by the calendar services."""

from typing import Any, List, Tuple


class CalendarValidationError(ValueError):
    """
    Raised when a request is rejected before any write happens.

    Covers malformed rule bounds, unknown weekdays, empty or past ranges,
    unknown timezones and missing reservation details. The message is meant
    to be shown to the user as-is.
    """
    pass


class SlotUnavailableError(CalendarValidationError):
    """Raised when a reservation's slot is past, blocked or already reserved at create time."""
    pass


class PartialWriteError(Exception):
    """
    Raised when some operations of a write batch failed while others succeeded.

    The batch is not rolled back. Callers should re-fetch the calendar and
    reconcile; the availability engine is safe to re-run on whatever state
    resulted.

    Attributes:
        succeeded: Descriptions of the operations that went through
        failures: (operation description, exception) pairs
    """

    def __init__(self, message: str, succeeded: List[Any], failures: List[Tuple[Any, BaseException]]):
        super().__init__(message)
        self.succeeded = succeeded
        self.failures = failures
