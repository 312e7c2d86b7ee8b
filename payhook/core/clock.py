"""
Time helpers.

Timestamps are stored as naive UTC so the same values compare correctly on
PostgreSQL `timestamp` columns and on SQLite in tests.
"""
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current UTC time without tzinfo."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
