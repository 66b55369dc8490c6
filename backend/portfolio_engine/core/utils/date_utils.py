"""
UTC time helpers. Every timestamp the engine stores is timezone-aware UTC.
"""

from datetime import UTC, datetime, timedelta


def utcnow() -> datetime:
    """Timezone-aware current UTC time (datetime.utcnow() is deprecated)."""
    return datetime.now(UTC)


def minutes_ago(minutes: int) -> datetime:
    """UTC cutoff `minutes` before now, for age-based queries."""
    return utcnow() - timedelta(minutes=minutes)
