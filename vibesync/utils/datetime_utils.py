"""Timezone-aware datetimes. Every timestamp stored or published is UTC."""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Current time, UTC-aware."""
    return datetime.now(UTC)


def from_unix(timestamp: int) -> datetime:
    """
    Contract timestamp (unix seconds) to UTC datetime.

    Raises:
        OverflowError, OSError, ValueError: Value outside the datetime range
    """
    return datetime.fromtimestamp(timestamp, UTC)
