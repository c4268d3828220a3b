"""
Timestamp utilities for consistent time handling across the system.

All timestamps are timezone-aware UTC. Stored values always carry
microseconds so ISO strings compare in chronological order.
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def to_iso(value: datetime) -> str:
    """Convert datetime to a fixed-width ISO string.

    Args:
        value: Datetime (naive values are assumed to be UTC)

    Returns:
        ISO 8601 string with microseconds and +00:00 offset
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def from_iso(value: str | None) -> datetime | None:
    """Parse an ISO string written by to_iso."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
