"""Overtime allocation using tail attribution.

Overtime is attributed to the chronologically last work of a day (or ISO
week). Entries are folded in order with an explicit ``consumed`` counter:

- BREAK and PTO entries are always regular and do not advance the counter
- WORK entries fill the remaining capacity first; the overflow is overtime
- With tiered overtime, overflow up to ``tier2_threshold`` hours beyond the
  capacity is tier 1, anything beyond that is tier 2
- The full work duration, overtime included, advances the counter

Example (capacity 8h, tier-2 threshold 4h, tiered):
    09:00 work 6h  -> regular 6
    15:00 work 8h  -> regular 2, tier1 4, tier2 2
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Mapping, Sequence, Tuple

from otplus.models.analysis import (
    AllocationBucket,
    ClassifiedEntry,
    DayRecord,
    EntryCategory,
)
from otplus.utils.time_utils import ZERO

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HourSplit:
    """Hours of one entry per allocation bucket.

    Attributes:
        regular: Regular hours
        tier1: Overtime hours at the tier-1 multiplier
        tier2: Overtime hours at the tier-2 multiplier
    """

    regular: Decimal = ZERO
    tier1: Decimal = ZERO
    tier2: Decimal = ZERO

    @property
    def overtime(self) -> Decimal:
        return self.tier1 + self.tier2

    @property
    def total(self) -> Decimal:
        return self.regular + self.tier1 + self.tier2

    def as_buckets(self) -> Dict[AllocationBucket, Decimal]:
        """Get hours keyed by bucket."""
        return {
            AllocationBucket.REGULAR: self.regular,
            AllocationBucket.OVERTIME_TIER1: self.tier1,
            AllocationBucket.OVERTIME_TIER2: self.tier2,
        }


def _usable_duration(duration: Decimal) -> Decimal:
    if duration is None or not duration.is_finite() or duration <= ZERO:
        return ZERO
    return duration


def split_entry(
    entry: ClassifiedEntry,
    consumed: Decimal,
    capacity: Decimal,
    tier2_threshold: Decimal,
    tiered: bool,
) -> Tuple[HourSplit, Decimal]:
    """Split one entry's hours against the capacity boundary.

    This is one step of the allocation fold.

    Args:
        entry: Classified entry
        consumed: Work hours consumed before this entry
        capacity: Regular capacity of the day (or week)
        tier2_threshold: Overtime hours allowed at tier 1 before tier 2
        tiered: Whether tier 2 applies at all

    Returns:
        Tuple of (HourSplit, consumed after this entry)

    Example:
        >>> split, consumed = split_entry(entry_14h, ZERO, Decimal("8"),
        ...                               Decimal("4"), tiered=True)
        >>> split.regular, split.tier1, split.tier2, consumed
        (Decimal('8'), Decimal('4'), Decimal('2'), Decimal('14'))
    """
    duration = _usable_duration(entry.duration_hours)

    if entry.category is not EntryCategory.WORK:
        return HourSplit(regular=duration), consumed

    remaining = max(ZERO, capacity - consumed)
    regular = min(duration, remaining)
    overflow = duration - regular

    if tiered:
        tier1_room = max(ZERO, capacity + tier2_threshold - max(consumed, capacity))
        tier1 = min(overflow, tier1_room)
        tier2 = overflow - tier1
    else:
        tier1 = overflow
        tier2 = ZERO

    return HourSplit(regular=regular, tier1=tier1, tier2=tier2), consumed + duration


def allocate_day(
    day: DayRecord,
    tier2_threshold: Decimal,
    tiered: bool,
) -> List[HourSplit]:
    """Allocate the hours of one day against its effective capacity.

    Args:
        day: Day record with resolved meta and chronologically ordered
            entries
        tier2_threshold: Tier-2 threshold in effect for the day
        tiered: Whether tiered overtime is enabled

    Returns:
        One HourSplit per entry, in entry order
    """
    capacity = day.meta.effective_capacity_hours if day.meta else ZERO
    consumed = ZERO
    splits: List[HourSplit] = []

    for entry in day.entries:
        split, consumed = split_entry(entry, consumed, capacity, tier2_threshold, tiered)
        splits.append(split)

    logger.debug(
        f"Allocated {len(splits)} entries for {day.user_id} on {day.date_key}: "
        f"{consumed}h work against {capacity}h capacity"
    )
    return splits


def allocate_week(
    days: Sequence[DayRecord],
    weekly_threshold: Decimal,
    tier2_thresholds: Mapping[str, Decimal],
    tiered: bool,
) -> Dict[str, List[HourSplit]]:
    """Allocate the hours of one user's ISO week against the weekly threshold.

    The counter runs across all days of the week in chronological order.
    Per-day capacities are ignored for the split.

    Args:
        days: Day records of one user and one ISO week
        weekly_threshold: Regular hours allowed in the week
        tier2_thresholds: date_key -> tier-2 threshold in effect that day
        tiered: Whether tiered overtime is enabled

    Returns:
        date_key -> one HourSplit per entry of that day
    """
    consumed = ZERO
    result: Dict[str, List[HourSplit]] = {}

    for day in sorted(days, key=lambda d: d.date_key):
        tier2_threshold = tier2_thresholds.get(day.date_key, ZERO)
        splits: List[HourSplit] = []
        for entry in day.entries:
            split, consumed = split_entry(
                entry, consumed, weekly_threshold, tier2_threshold, tiered
            )
            splits.append(split)
        result[day.date_key] = splits

    logger.debug(
        f"Allocated week of {len(days)} days: {consumed}h work against "
        f"{weekly_threshold}h weekly threshold"
    )
    return result


def allocate_uncounted(day: DayRecord) -> List[HourSplit]:
    """Allocate every entry of a day as regular time.

    Used for entries whose date could not be determined: their hours are
    kept but never interact with capacity.
    """
    return [HourSplit(regular=_usable_duration(entry.duration_hours)) for entry in day.entries]
