"""Grouping of time entries into per-user, per-day records.

Each entry is classified and assigned to the calendar date of its start
timestamp in the report time zone. Entries whose start cannot be parsed
are kept under a sentinel date key so that no hours are ever lost.
"""

import datetime as dt
import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from otplus.calculators.entry_classifier import classify_entry, entry_duration_hours
from otplus.models.analysis import ClassifiedEntry, DayRecord
from otplus.models.entry import TimeEntry
from otplus.utils.time_utils import extract_date_key, parse_timestamp

logger = logging.getLogger(__name__)

UNDATED_DATE_KEY = "undated"

UserDays = Dict[str, Dict[str, DayRecord]]


def _chronological_key(classified: ClassifiedEntry) -> dt.datetime:
    start = parse_timestamp(classified.entry.time_interval.start)
    if start is None:
        # Missing timestamps sort first; the stable sort keeps their fetch order
        return dt.datetime.min.replace(tzinfo=dt.timezone.utc)
    return start


def build_day_buckets(
    entries: Iterable[Optional[TimeEntry]],
    time_zone: Optional[dt.tzinfo] = None,
) -> UserDays:
    """Group entries by user and calendar date.

    Args:
        entries: Normalized time entries in fetch order; None items are
            skipped
        time_zone: Report time zone for date keys (UTC when None)

    Returns:
        user_id -> date_key -> DayRecord, with entries sorted by start
        timestamp (ties and missing timestamps keep fetch order). Records
        have no meta yet.

    Example:
        >>> days = build_day_buckets([entry_monday_9am, entry_monday_2pm])
        >>> [e.entry.id for e in days["user-1"]["2025-01-13"].entries]
        ['e1', 'e2']
    """
    grouped: Dict[str, Dict[str, List[ClassifiedEntry]]] = defaultdict(
        lambda: defaultdict(list)
    )
    undated = 0

    for sequence, entry in enumerate(entries):
        if entry is None:
            continue

        date_key = extract_date_key(entry.time_interval.start, time_zone)
        if date_key is None:
            date_key = UNDATED_DATE_KEY
            undated += 1
            logger.warning(
                f"Entry {entry.id!r} of user {entry.user_id!r} has no parseable "
                f"start timestamp ({entry.time_interval.start!r}); "
                f"keeping it under '{UNDATED_DATE_KEY}'"
            )

        grouped[entry.user_id][date_key].append(
            ClassifiedEntry(
                entry=entry,
                classification=classify_entry(entry),
                duration_hours=entry_duration_hours(entry),
                sequence=sequence,
            )
        )

    result: UserDays = {}
    for user_id, by_date in grouped.items():
        result[user_id] = {
            date_key: DayRecord(
                user_id=user_id,
                date_key=date_key,
                # sorted() is stable, so equal timestamps keep fetch order
                entries=sorted(day_entries, key=_chronological_key),
            )
            for date_key, day_entries in by_date.items()
        }

    logger.debug(
        f"Grouped entries into {sum(len(d) for d in result.values())} user-days "
        f"for {len(result)} users ({undated} undated)"
    )
    return result
