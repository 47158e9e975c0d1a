"""Calculator modules for the overtime engine."""

from otplus.calculators.amount_allocator import (
    allocate_amounts,
    bucket_multiplier,
    rate_from_amounts,
    resolve_rates,
)
from otplus.calculators.capacity_resolver import CapacityResolver
from otplus.calculators.entry_classifier import classify_entry, entry_duration_hours
from otplus.calculators.overtime_allocator import (
    HourSplit,
    allocate_day,
    allocate_uncounted,
    allocate_week,
    split_entry,
)

__all__ = [
    # amount_allocator
    "allocate_amounts",
    "bucket_multiplier",
    "rate_from_amounts",
    "resolve_rates",
    # capacity_resolver
    "CapacityResolver",
    # entry_classifier
    "classify_entry",
    "entry_duration_hours",
    # overtime_allocator
    "HourSplit",
    "allocate_day",
    "allocate_uncounted",
    "allocate_week",
    "split_entry",
]
