"""Entry classification for overtime accounting.

Maps each time entry to an accounting category:
- BREAK entries count as regular time and never consume capacity
- HOLIDAY / TIME_OFF entries (PTO) behave like breaks
- Everything else, including missing or unknown types, is WORK

Type matching is exact and case-sensitive.
"""

import logging
from decimal import Decimal

from otplus.models.analysis import EntryCategory, EntryClassification
from otplus.models.entry import TimeEntry
from otplus.utils.time_utils import ZERO, hours_between

logger = logging.getLogger(__name__)

BREAK_TYPE = "BREAK"
HOLIDAY_TYPE = "HOLIDAY"
TIME_OFF_TYPE = "TIME_OFF"
PTO_TYPES = frozenset({HOLIDAY_TYPE, TIME_OFF_TYPE})


def classify_entry(entry: TimeEntry) -> EntryClassification:
    """Classify an entry into a category and billability flag.

    Args:
        entry: Time entry

    Returns:
        EntryClassification; only an explicit ``billable=False`` makes an
        entry non-billable

    Example:
        >>> classify_entry(TimeEntry(type="BREAK")).category
        <EntryCategory.BREAK: 'break'>
        >>> classify_entry(TimeEntry(type="break")).category
        <EntryCategory.WORK: 'work'>
        >>> classify_entry(TimeEntry(billable=None)).billable
        True
    """
    entry_type = entry.entry_type
    if entry_type == BREAK_TYPE:
        category = EntryCategory.BREAK
    elif entry_type in PTO_TYPES:
        category = EntryCategory.PTO
    else:
        category = EntryCategory.WORK

    return EntryClassification(category=category, billable=entry.billable is not False)


def entry_duration_hours(entry: TimeEntry) -> Decimal:
    """Resolve the classified duration of an entry in hours.

    Uses ``duration_hours`` when present; otherwise falls back to
    ``end - start``. Missing, invalid or negative durations become 0.

    Args:
        entry: Time entry

    Returns:
        Non-negative Decimal hours

    Example:
        >>> entry_duration_hours(TimeEntry.model_validate(
        ...     {"timeInterval": {"start": "2025-01-13T09:00:00Z",
        ...                       "end": "2025-01-13T11:30:00Z"}}))
        Decimal('2.5')
    """
    duration = entry.time_interval.duration_hours
    if duration is None:
        duration = hours_between(entry.time_interval.start, entry.time_interval.end)

    if duration is None:
        logger.debug(f"Entry {entry.id!r} has no usable duration, counting 0h")
        return ZERO
    if duration < ZERO:
        logger.warning(f"Entry {entry.id!r} has negative duration {duration}, counting 0h")
        return ZERO
    return duration
