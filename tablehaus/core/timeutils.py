"""Civil-time conversion and half-open interval helpers"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Tuple, Union
from zoneinfo import ZoneInfo


def _zone(tz: Union[str, ZoneInfo]) -> ZoneInfo:
    return tz if isinstance(tz, ZoneInfo) else ZoneInfo(tz)


def parse_date(date_iso: Union[str, date]) -> date:
    """Parse a YYYY-MM-DD string"""
    if isinstance(date_iso, date):
        return date_iso
    return date.fromisoformat(date_iso)


def parse_time(time_hhmm: Union[str, time]) -> time:
    """Parse an HH:MM string"""
    if isinstance(time_hhmm, time):
        return time_hhmm
    return datetime.strptime(time_hhmm, "%H:%M").time()


def to_instant(date_iso: Union[str, date], time_hhmm: Union[str, time], tz: Union[str, ZoneInfo]) -> datetime:
    """
    Combine a civil date and time in the restaurant's zone into an aware UTC instant.

    The caller's local offset never enters the computation.
    """
    local = datetime.combine(parse_date(date_iso), parse_time(time_hhmm), tzinfo=_zone(tz))
    return local.astimezone(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive values read back from storage, convert aware ones"""
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def day_bounds(date_iso: Union[str, date], tz: Union[str, ZoneInfo]) -> Tuple[datetime, datetime]:
    """UTC [start, end) of a civil day in the restaurant's zone"""
    day = parse_date(date_iso)
    start = to_instant(day, time(0, 0), tz)
    end = to_instant(day + timedelta(days=1), time(0, 0), tz)
    return start, end


def civil_date(instant: datetime, tz: Union[str, ZoneInfo]) -> date:
    """Calendar date of an instant as seen in the restaurant"""
    return ensure_utc(instant).astimezone(_zone(tz)).date()


def overlaps(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """
    Half-open interval overlap.

    Intervals that only share an endpoint do not overlap, and a zero-length
    interval overlaps nothing.
    """
    if start_a >= end_a or start_b >= end_b:
        return False
    return start_a < end_b and end_a > start_b
