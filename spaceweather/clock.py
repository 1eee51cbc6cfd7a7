"""Timezone-aware clock utilities.

All timestamps in spaceweather are UTC-aware. Components take a `clock`
callable defaulting to utc_now so tests can substitute a fixed time.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)
