"""
Application configuration using python-dotenv.

Settings come from environment variables. Outside of test runs a .env file
is loaded first, from backend/, the repository root or the working
directory (first one found wins).
"""

import os
import pathlib
import sys
from typing import Optional

from dotenv import load_dotenv

_BACKEND_DIR = pathlib.Path(__file__).resolve().parent.parent.parent


def _running_under_pytest() -> bool:
    return "PYTEST_VERSION" in os.environ or "pytest" in sys.modules


def _find_env_file() -> Optional[pathlib.Path]:
    for candidate in (_BACKEND_DIR / ".env", _BACKEND_DIR.parent / ".env", pathlib.Path.cwd() / ".env"):
        if candidate.exists():
            return candidate
    return None


# Tests must not pick up a developer's .env
if not _running_under_pytest():
    env_file = _find_env_file()
    if env_file is not None:
        load_dotenv(env_file)


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./chapel_booking.db")

# "sql" (SQLAlchemy documents table) or "memory" (in-process, lost on restart)
DOCUMENT_STORE = os.getenv("DOCUMENT_STORE", "sql").lower()

# Zone for chapels with no timezone or an unknown one
DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "Asia/Jerusalem")

# Shared secret expected in the X-Admin-Key header
ADMIN_API_KEY = os.getenv("ADMIN_API_KEY", "dev-admin-key-change-in-production")

FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
