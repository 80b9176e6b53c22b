"""
Date/time helpers — UTC clock and ISO-8601 formatting shared by models and services.
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union


def utcnow() -> datetime:
    """Naive UTC timestamp (SQLite DateTime columns carry no tzinfo)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def isoformat_z(moment: datetime) -> str:
    """Render a UTC datetime as ISO-8601 with millisecond precision and a Z suffix."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment.isoformat(timespec="milliseconds") + "Z"


def to_utc_bound(value: Union[date, datetime, None], end: bool = False) -> Optional[datetime]:
    """Turn a filter value into a naive UTC datetime.

    A bare date becomes the start of that day, or its last instant when ``end`` is set.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    return datetime.combine(value, time.max if end else time.min)


def ceil_to_millisecond(moment: datetime) -> datetime:
    """Round up to the next whole millisecond, the precision of audit timestamps."""
    remainder = moment.microsecond % 1000
    if remainder:
        moment += timedelta(microseconds=1000 - remainder)
    return moment
