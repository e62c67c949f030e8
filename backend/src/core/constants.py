"""Application constants and configuration values."""

from core.config import FRONTEND_URL

# Document types stored in the document store
TENANT_DOC_TYPE = "chapel"
RESERVATION_DOC_TYPE = "reservation"
MANUAL_BLOCK_DOC_TYPE = "blocked"
HOUR_RULE_DOC_TYPE = "autoBlockedHours"
DAY_RULE_DOC_TYPE = "autoBlockedDays"
EXCEPTION_ITEM_TYPE = "timeException"

# Field on every tenant-owned document that references the chapel
TENANT_REF_FIELD = "chapel"

# Field holding the exception list on hour/day rule documents
EXCEPTIONS_FIELD = "timeExceptions"

# Day rule documents are singletons per chapel, keyed by this prefix + chapel id
DAY_RULE_ID_PREFIX = "autoBlockedDays-"

# Locale-independent weekday identifiers, indexed like datetime.weekday() (0=Monday)
WEEKDAY_NAMES = [
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
]

# Hour rule bounds (local hours)
MIN_START_HOUR = 0
MAX_START_HOUR = 23
MIN_END_HOUR = 1
MAX_END_HOUR = 24

# Rolling window (tenant local days) addressable by the calendar
PAST_WINDOW_DAYS = 7
FUTURE_WINDOW_DAYS = 30

# How far ahead the calendar looks for the first day worth showing
EARLIEST_DAY_LOOKAHEAD_DAYS = 14

# Field lengths
MAX_STRING_LENGTH = 255
MAX_HOLDER_NAME_LENGTH = 100
MAX_PHONE_LENGTH = 50
MAX_SLUG_LENGTH = 96

# CORS origins for development and production
_CORS_ORIGINS_RAW = [
    "http://localhost:3000",      # React dev server
    FRONTEND_URL,
]

# Filter out None values and empty strings to avoid CORS errors
CORS_ORIGINS = [origin for origin in _CORS_ORIGINS_RAW if origin and origin.strip()]
