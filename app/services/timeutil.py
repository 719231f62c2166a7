"""Small datetime helpers shared by the materializer, checker and heatmap."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil.relativedelta import relativedelta

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def plus_minutes(dt: datetime, minutes: int) -> datetime:
    return dt + timedelta(minutes=minutes)


def plus_years(dt: datetime, years: int) -> datetime:
    """Add calendar years; Feb 29 falls back to Feb 28."""
    return dt + relativedelta(years=years)


def floor_by_minutes(dt: datetime, minutes: int) -> datetime:
    """Round *dt* down to the nearest multiple of *minutes* since the epoch."""
    step = timedelta(minutes=minutes)
    return dt - (dt - _EPOCH) % step


def ceil_by_minutes(dt: datetime, minutes: int) -> datetime:
    """Round *dt* up to the nearest multiple of *minutes* since the epoch."""
    floored = floor_by_minutes(dt, minutes)
    if floored == dt:
        return dt
    return floored + timedelta(minutes=minutes)


def sunday_based_weekday(dt: datetime) -> int:
    """Day of week with 0 = Sunday .. 6 = Saturday."""
    return (dt.weekday() + 1) % 7


def get_zone(name: str) -> ZoneInfo:
    """Resolve an IANA timezone name. Raises ``KeyError`` for unknown names."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise KeyError(name) from exc


def ensure_aware(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt
