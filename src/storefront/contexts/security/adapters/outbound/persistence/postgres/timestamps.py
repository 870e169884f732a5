from __future__ import annotations

from datetime import datetime, timezone


def as_utc(value: datetime) -> datetime:
    """
    Convert driver `timestamptz` value to UTC.

    Args:
        value: Timezone-aware datetime returned by psycopg in the session time zone.
    Returns:
        datetime: Same instant with UTC tzinfo.
    Assumptions:
        All security timestamp columns are `TIMESTAMPTZ`.
    Raises:
        ValueError: If value is naive.
    Side Effects:
        None.
    """
    if value.tzinfo is None:
        raise ValueError("timestamptz column returned naive datetime")
    return value.astimezone(timezone.utc)


def as_utc_or_none(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return as_utc(value)
