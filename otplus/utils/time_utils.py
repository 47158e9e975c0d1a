"""Time and number utilities for the overtime engine.

This module provides low-level helpers for:
- Converting loosely typed API numbers into Decimal
- Parsing ISO-8601 timestamps and durations
- Deriving calendar date keys (YYYY-MM-DD) in a report time zone
- Weekday names, ISO week keys and date ranges
- Presentation rounding of hours and currency

None of these helpers raise on malformed input; they return None (or 0 for
durations) so the engine can degrade gracefully.
"""

import datetime as dt
import math
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

ZERO = Decimal("0")
SECONDS_PER_HOUR = Decimal("3600")

WEEKDAY_KEYS = (
    "MONDAY",
    "TUESDAY",
    "WEDNESDAY",
    "THURSDAY",
    "FRIDAY",
    "SATURDAY",
    "SUNDAY",
)

_ISO_DURATION_RE = re.compile(
    r"^PT(?:(\d+(?:\.\d+)?)H)?(?:(\d+(?:\.\d+)?)M)?(?:(\d+(?:\.\d+)?)S)?$"
)
_DATE_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def to_decimal(value: Any) -> Optional[Decimal]:
    """Convert a loosely typed number into a finite Decimal.

    Args:
        value: int, float, Decimal or numeric string

    Returns:
        Decimal value, or None when the value is missing, boolean,
        non-numeric, NaN or infinite

    Example:
        >>> to_decimal(7.5)
        Decimal('7.5')
        >>> to_decimal("8")
        Decimal('8')
        >>> to_decimal(float("nan")) is None
        True
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return Decimal(str(value))
    if isinstance(value, str):
        try:
            parsed = Decimal(value.strip())
        except InvalidOperation:
            return None
        return parsed if parsed.is_finite() else None
    return None


def parse_iso_duration(value: Optional[str]) -> Optional[Decimal]:
    """Parse an ISO-8601 time duration (``PT8H30M``) into decimal hours.

    Fractional components are supported (``PT8.5H``).

    Args:
        value: Duration string

    Returns:
        Decimal hours, or None when the string is missing or malformed

    Example:
        >>> parse_iso_duration("PT8H30M")
        Decimal('8.5')
        >>> parse_iso_duration("PT45M")
        Decimal('0.75')
        >>> parse_iso_duration("eight hours") is None
        True
    """
    if not value or not isinstance(value, str):
        return None
    match = _ISO_DURATION_RE.match(value.strip())
    if not match or not any(match.groups()):
        return None
    hours = Decimal(match.group(1) or "0")
    minutes = Decimal(match.group(2) or "0")
    seconds = Decimal(match.group(3) or "0")
    return hours + minutes / Decimal("60") + seconds / SECONDS_PER_HOUR


def parse_timestamp(value: Optional[str]) -> Optional[dt.datetime]:
    """Parse an ISO-8601 timestamp into a timezone-aware datetime.

    A trailing ``Z`` is accepted. Naive timestamps are interpreted as UTC.

    Args:
        value: Timestamp string

    Returns:
        Aware datetime, or None when missing or unparseable

    Example:
        >>> parse_timestamp("2025-01-13T09:00:00Z").isoformat()
        '2025-01-13T09:00:00+00:00'
        >>> parse_timestamp("not a date") is None
        True
    """
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = dt.datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed


def resolve_time_zone(name: Optional[str]) -> Optional[dt.tzinfo]:
    """Resolve an IANA time zone name.

    Args:
        name: Zone name such as ``Europe/Berlin``

    Returns:
        tzinfo instance, or None when the name is empty or unknown
    """
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return None


def extract_date_key(
    value: Optional[str], tz: Optional[dt.tzinfo] = None
) -> Optional[str]:
    """Derive the calendar date key (YYYY-MM-DD) of a timestamp.

    Bare date strings are returned unchanged. Full timestamps are converted
    to ``tz`` (UTC when None) before taking the date, so entries that start
    late in the evening land on the local calendar day.

    Args:
        value: ISO-8601 timestamp or date string
        tz: Report time zone

    Returns:
        Date key, or None when the value cannot be parsed

    Example:
        >>> extract_date_key("2025-01-13T23:30:00Z")
        '2025-01-13'
        >>> extract_date_key("2025-01-13T23:30:00Z", ZoneInfo("Europe/Berlin"))
        '2025-01-14'
        >>> extract_date_key("2025-01-13")
        '2025-01-13'
    """
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if _DATE_KEY_RE.match(text):
        try:
            return dt.date.fromisoformat(text).isoformat()
        except ValueError:
            return None
    parsed = parse_timestamp(text)
    if parsed is None:
        return None
    return parsed.astimezone(tz or dt.timezone.utc).date().isoformat()


def hours_between(start: Optional[str], end: Optional[str]) -> Optional[Decimal]:
    """Calculate the number of hours between two timestamps.

    Args:
        start: ISO-8601 start timestamp
        end: ISO-8601 end timestamp

    Returns:
        Decimal hours (may be negative when end precedes start), or None
        when either timestamp cannot be parsed

    Example:
        >>> hours_between("2025-01-13T09:00:00Z", "2025-01-13T17:30:00Z")
        Decimal('8.5')
    """
    start_dt = parse_timestamp(start)
    end_dt = parse_timestamp(end)
    if start_dt is None or end_dt is None:
        return None
    seconds = Decimal(str((end_dt - start_dt).total_seconds()))
    return seconds / SECONDS_PER_HOUR


def parse_date_key(date_key: str) -> Optional[dt.date]:
    """Parse a YYYY-MM-DD date key, returning None when invalid."""
    try:
        return dt.date.fromisoformat(date_key)
    except (TypeError, ValueError):
        return None


def weekday_key(date_key: str) -> str:
    """Get the uppercase English weekday name of a date key.

    Example:
        >>> weekday_key("2025-01-13")
        'MONDAY'
    """
    date = parse_date_key(date_key)
    if date is None:
        return ""
    return WEEKDAY_KEYS[date.weekday()]


def iso_week_key(date_key: str) -> str:
    """Get the ISO week label (``YYYY-W##``) of a date key.

    Weeks start on Monday; year boundaries follow ISO-8601 rules.

    Example:
        >>> iso_week_key("2025-01-13")
        '2025-W03'
        >>> iso_week_key("2024-12-30")
        '2025-W01'
    """
    date = parse_date_key(date_key)
    if date is None:
        return ""
    iso_year, iso_week, _ = date.isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def generate_date_range(start_key: str, end_key: str) -> List[str]:
    """Generate every date key between start and end (inclusive).

    Returns an empty list when either key is invalid or end precedes start.

    Example:
        >>> generate_date_range("2025-01-30", "2025-02-02")
        ['2025-01-30', '2025-01-31', '2025-02-01', '2025-02-02']
    """
    start = parse_date_key(start_key)
    end = parse_date_key(end_key)
    if start is None or end is None or end < start:
        return []
    days = (end - start).days
    return [(start + dt.timedelta(days=offset)).isoformat() for offset in range(days + 1)]


def expand_date_span(start_key: str, end_key: Optional[str] = None) -> List[str]:
    """Expand a (start, end) span into the date keys it covers.

    A span whose end is missing, equal to, or before its start covers
    exactly the start date.

    Example:
        >>> expand_date_span("2025-01-13", "2025-01-13")
        ['2025-01-13']
        >>> expand_date_span("2025-01-13", "2025-01-15")
        ['2025-01-13', '2025-01-14', '2025-01-15']
    """
    if not end_key or end_key == start_key:
        return [start_key]
    return generate_date_range(start_key, end_key) or [start_key]


def round_hours(hours: Decimal) -> Decimal:
    """Round hours for presentation (4 decimal places, ROUND_HALF_UP)."""
    return hours.quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP)


def round_currency(amount: Decimal) -> Decimal:
    """Round a money amount for presentation (2 decimal places, ROUND_HALF_UP)."""
    return amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
