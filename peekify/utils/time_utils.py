from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

# Microsecond precision keeps stored timestamps sortable in creation order.
UTC_ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    return utc_now().strftime(UTC_ISO_FORMAT)


def _parse_iso_datetime(s: str) -> datetime:
    # Accept both "...Z" and "...+00:00"
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    return datetime.fromisoformat(s)


def dt_to_utc_iso(dt: Optional[datetime]) -> Optional[str]:
    """Convert a datetime to the stored UTC string. Naive datetimes are taken as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime(UTC_ISO_FORMAT)


def dt_from_utc_iso(s: Optional[str]) -> Optional[datetime]:
    if not s:
        return None
    try:
        dt = _parse_iso_datetime(s)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def normalize_utc_iso(s: Optional[str]) -> Optional[str]:
    """Re-render any ISO timestamp (e.g. Spotify's "2024-05-01T10:00:00.123Z") in the stored format."""
    return dt_to_utc_iso(dt_from_utc_iso(s))


def is_valid_timezone(tz_name: Optional[str]) -> bool:
    if not tz_name:
        return False
    try:
        ZoneInfo(tz_name)
        return True
    except (ZoneInfoNotFoundError, ValueError):
        return False


def get_zone(tz_name: Optional[str]) -> ZoneInfo:
    """ZoneInfo for tz_name, falling back to UTC for unknown names."""
    if is_valid_timezone(tz_name):
        return ZoneInfo(tz_name)
    return ZoneInfo("UTC")


def local_date_bounds(start: date, end: date, tz_name: Optional[str]) -> Tuple[str, str]:
    """UTC [start, end) strings covering the local calendar days start..end inclusive."""
    zone = get_zone(tz_name)
    start_local = datetime.combine(start, time.min, tzinfo=zone)
    end_local = datetime.combine(end + timedelta(days=1), time.min, tzinfo=zone)
    return dt_to_utc_iso(start_local), dt_to_utc_iso(end_local)


def local_day_bounds(tz_name: Optional[str], now: Optional[datetime] = None) -> Tuple[str, str, date]:
    """
    UTC bounds of the current calendar day in the given timezone.

    Returns (start_utc_iso, end_utc_iso, local_date).
    """
    zone = get_zone(tz_name)
    now = now or utc_now()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local_today = now.astimezone(zone).date()
    start_iso, end_iso = local_date_bounds(local_today, local_today, tz_name)
    return start_iso, end_iso, local_today


def parse_hh_mm(value: str) -> Tuple[int, int]:
    hh, mm = value.split(":", 1)
    return int(hh), int(mm)


def has_local_time_passed(hh_mm: str, tz_name: Optional[str], now: Optional[datetime] = None) -> bool:
    """True once the local wall clock in tz_name is at or after HH:MM today."""
    zone = get_zone(tz_name)
    now = now or utc_now()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local_now = now.astimezone(zone)
    hh, mm = parse_hh_mm(hh_mm)
    return (local_now.hour, local_now.minute) >= (hh, mm)
