"""Time Utilities - UTC instants, ISO strings and local wall-clock time

All stored and compared instants are timezone-aware UTC. Naive datetimes
coming from payloads or stored records are taken to be UTC.
"""
from datetime import datetime, timezone
from typing import Optional
from dateutil import parser as date_parser
from dateutil import tz


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


def format_iso(dt: datetime) -> str:
    """ISO 8601 with a `Z` suffix for UTC (e.g. 2024-03-01T08:30:00Z)"""
    return _as_utc(dt).isoformat().replace("+00:00", "Z")


def parse_iso(value: str) -> datetime:
    """Parse an ISO 8601 string; a missing offset means UTC"""
    return _as_utc(date_parser.isoparse(value))


def to_local(dt: datetime, timezone_name: Optional[str]) -> datetime:
    """
    Convert an instant to an IANA timezone

    Unknown or empty timezone names leave the instant in UTC.
    """
    zone = tz.gettz(timezone_name) if timezone_name else None
    return _as_utc(dt).astimezone(zone or timezone.utc)


def clock_minutes(value: str) -> int:
    """
    Minutes since midnight of an "HH:MM" (or "HH") wall-clock string

    Raises:
        ValueError: If the string is not a valid time of day
    """
    hours, _, minutes = value.strip().partition(":")
    h, m = int(hours), int(minutes or 0)
    if not (0 <= h < 24 and 0 <= m < 60):
        raise ValueError(f"Invalid time of day: {value}")
    return h * 60 + m


def elapsed_ms(start: datetime, end: Optional[datetime] = None) -> float:
    return ((end or utc_now()) - start).total_seconds() * 1000
