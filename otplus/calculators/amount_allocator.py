"""Money proration across hour buckets.

This module implements the financial side of an entry's allocation:
- Rate resolution (earned, cost, profit) from direct rate fields, with a
  fallback to the Reports API ``amounts`` totals
- Base amounts per bucket (rate x hours, multiplier 1)
- Overtime premiums per bucket, tracked separately from the base

Nothing is rounded here. Rounding to currency precision happens at
presentation time so errors never compound across buckets.
"""

from decimal import Decimal
from typing import Dict, Optional, Tuple

from otplus.models.analysis import (
    AllocationBucket,
    BucketAllocation,
    ClassifiedEntry,
    EntryRates,
    Multipliers,
)
from otplus.models.entry import HourlyRate, TimeEntry
from otplus.utils.time_utils import ZERO

ONE = Decimal("1")
DEFAULT_CURRENCY = "USD"


def _positive(value: Optional[Decimal]) -> Optional[Decimal]:
    if value is None or not value.is_finite() or value <= ZERO:
        return None
    return value


def _hourly_rate(entry: TimeEntry) -> Tuple[Optional[Decimal], str]:
    """Get (amount, currency) of the entry's hourly rate."""
    rate = entry.hourly_rate
    if isinstance(rate, HourlyRate):
        return rate.amount, rate.currency
    return rate, DEFAULT_CURRENCY


def rate_from_amounts(entry: TimeEntry, amount_type: str, duration: Decimal) -> Decimal:
    """Derive an hourly rate from the entry's amount totals.

    Args:
        entry: Time entry with an ``amounts`` list
        amount_type: ``EARNED`` or ``COST``
        duration: Entry duration in hours

    Returns:
        Total of the matching amounts divided by the duration, or 0 when
        there is no duration or no matching amount

    Example:
        >>> entry = TimeEntry.model_validate(
        ...     {"amounts": [{"type": "EARNED", "value": 120}]})
        >>> rate_from_amounts(entry, "EARNED", Decimal("8"))
        Decimal('15')
    """
    if duration <= ZERO:
        return ZERO
    total = sum(
        (a.value for a in entry.amounts if a.type == amount_type and a.value is not None),
        ZERO,
    )
    if total == ZERO:
        return ZERO
    return total / duration


def resolve_rates(classified: ClassifiedEntry) -> EntryRates:
    """Resolve earned, cost and profit rates of an entry.

    Non-billable entries get zero rates throughout. For billable entries:
    - earned: ``earned_rate`` if positive, else ``hourly_rate.amount``,
      else derived from EARNED amounts
    - cost: ``cost_rate`` if positive, else derived from COST amounts
    - profit: earned minus cost

    Args:
        classified: Classified entry

    Returns:
        EntryRates in currency units per hour
    """
    entry = classified.entry
    hourly_amount, currency = _hourly_rate(entry)

    if not classified.billable:
        return EntryRates(earned=ZERO, cost=ZERO, currency=currency)

    duration = classified.duration_hours
    earned = (
        _positive(entry.earned_rate)
        or _positive(hourly_amount)
        or rate_from_amounts(entry, "EARNED", duration)
    )
    cost = _positive(entry.cost_rate) or rate_from_amounts(entry, "COST", duration)

    return EntryRates(earned=earned, cost=cost, currency=currency)


def bucket_multiplier(bucket: AllocationBucket, multipliers: Multipliers) -> Decimal:
    """Get the pay multiplier of a bucket (1 for regular time)."""
    if bucket is AllocationBucket.OVERTIME_TIER1:
        return multipliers.overtime
    if bucket is AllocationBucket.OVERTIME_TIER2:
        return multipliers.tier2
    return ONE


def allocate_amounts(
    hours_by_bucket: Dict[AllocationBucket, Decimal],
    rates: EntryRates,
    multipliers: Multipliers,
) -> Dict[AllocationBucket, BucketAllocation]:
    """Prorate an entry's money across its hour buckets.

    For every bucket the base amount is ``rate x hours``; the premium is
    ``base x (multiplier - 1)`` for earned, cost and profit alike.

    Tier-2 hours are priced at the tier-2 multiplier as configured. When it
    is lower than the tier-1 multiplier, the period totals report a negative
    tier-2 premium (the tier-2 rate minus the tier-1 rate).

    Args:
        hours_by_bucket: Hours per bucket from the overtime allocator
        rates: Resolved rates of the entry
        multipliers: Multipliers in effect for the entry

    Returns:
        BucketAllocation per bucket (every bucket present, possibly zero)

    Example:
        >>> buckets = allocate_amounts(
        ...     {AllocationBucket.REGULAR: Decimal("8"),
        ...      AllocationBucket.OVERTIME_TIER1: Decimal("2")},
        ...     EntryRates(earned=Decimal("50"), cost=Decimal("30")),
        ...     Multipliers(Decimal("1.5"), Decimal("2"), Decimal("0")),
        ... )
        >>> buckets[AllocationBucket.OVERTIME_TIER1].earned_premium
        Decimal('50.0')
    """
    allocations: Dict[AllocationBucket, BucketAllocation] = {}

    for bucket in AllocationBucket:
        hours = hours_by_bucket.get(bucket, ZERO)
        if hours == ZERO:
            allocations[bucket] = BucketAllocation()
            continue

        premium_factor = bucket_multiplier(bucket, multipliers) - ONE
        earned = rates.earned * hours
        cost = rates.cost * hours
        profit = rates.profit * hours

        allocations[bucket] = BucketAllocation(
            hours=hours,
            earned=earned,
            cost=cost,
            profit=profit,
            earned_premium=earned * premium_factor,
            cost_premium=cost * premium_factor,
            profit_premium=profit * premium_factor,
        )

    return allocations
