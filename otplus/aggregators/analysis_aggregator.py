"""Overtime analysis aggregation.

This module is the entry point of the engine. It combines the building
blocks into a full report run:

1. Group entries into per-user, per-day records
2. Resolve each day's capacity
3. Allocate hours to regular / overtime buckets (per day or per ISO week)
4. Prorate money across the buckets
5. Fold everything into additive per-user totals

The run is a pure function of its inputs: identical inputs always produce
identical results, and nothing is kept between runs.
"""

import logging
from collections import defaultdict
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from otplus.aggregators.day_bucket_builder import UNDATED_DATE_KEY, build_day_buckets
from otplus.calculators.amount_allocator import allocate_amounts, resolve_rates
from otplus.calculators.capacity_resolver import CapacityResolver
from otplus.calculators.overtime_allocator import (
    HourSplit,
    allocate_day,
    allocate_uncounted,
    allocate_week,
)
from otplus.config.settings import CalculationConfig
from otplus.models.analysis import (
    AllocationBucket,
    AnalysisResult,
    CapacitySource,
    DayMeta,
    DayRecord,
    EntryAllocation,
    EntryCategory,
    UserAnalysis,
    UserPeriodTotals,
)
from otplus.models.entry import TimeEntry
from otplus.models.profile import Holiday, TimeOffInfo, UserOverride, UserProfile
from otplus.utils.logging_utils import LogContext, log_function_call
from otplus.utils.time_utils import ZERO, generate_date_range, iso_week_key

logger = logging.getLogger(__name__)

AMOUNT_MODES = ("earned", "cost", "profit")

EntryInput = Union[TimeEntry, Mapping[str, Any]]


# ----------------------------------------------------------------------
# Input normalization
# ----------------------------------------------------------------------


def _as_entry(raw: Optional[EntryInput]) -> Optional[TimeEntry]:
    if raw is None or isinstance(raw, TimeEntry):
        return raw
    try:
        return TimeEntry.model_validate(raw)
    except ValidationError as e:
        logger.warning(f"Skipping malformed time entry: {e}")
        return None


def _as_model_map(raw: Optional[Mapping[str, Any]], model) -> Dict[str, Any]:
    if not raw or not isinstance(raw, Mapping):
        return {}
    result: Dict[str, Any] = {}
    for key, value in raw.items():
        if value is None:
            continue
        if isinstance(value, model):
            result[key] = value
            continue
        try:
            result[key] = model.model_validate(value)
        except ValidationError as e:
            logger.warning(f"Skipping malformed {model.__name__} for {key}: {e}")
    return result


def _as_nested_map(
    raw: Optional[Mapping[str, Mapping[str, Any]]], model
) -> Dict[str, Dict[str, Any]]:
    if not raw or not isinstance(raw, Mapping):
        return {}
    return {user_id: _as_model_map(by_date, model) for user_id, by_date in raw.items()}


def _report_dates(
    user_days: Mapping[str, Mapping[str, DayRecord]],
    date_range: Optional[Tuple[str, str]],
) -> List[str]:
    """Collect the report dates: the requested range plus any entry dates."""
    entry_dates = {
        date_key
        for by_date in user_days.values()
        for date_key in by_date
        if date_key != UNDATED_DATE_KEY
    }

    if date_range is not None:
        start_key, end_key = date_range
    elif entry_dates:
        start_key, end_key = min(entry_dates), max(entry_dates)
    else:
        return []

    extra = entry_dates - set(generate_date_range(start_key, end_key))
    if extra:
        logger.info(
            f"{len(extra)} entry dates fall outside {start_key}..{end_key}; "
            f"including them in the report"
        )
    return sorted(set(generate_date_range(start_key, end_key)) | entry_dates)


# ----------------------------------------------------------------------
# Totals
# ----------------------------------------------------------------------


def _premiums(allocation: EntryAllocation, mode: str) -> Tuple[Decimal, Decimal, Decimal]:
    """Get (base, tier-1 premium, tier-2 extra premium) of one amount mode.

    The tier-1 premium covers every overtime hour at the tier-1 multiplier;
    the tier-2 premium is the extra on top of it for tier-2 hours.
    """
    base = ZERO
    premium = ZERO
    for bucket in allocation.buckets.values():
        base += getattr(bucket, mode)
        premium += getattr(bucket, f"{mode}_premium")

    tier2_extra = ZERO
    tier2 = allocation.bucket(AllocationBucket.OVERTIME_TIER2)
    if allocation.multipliers is not None and tier2.hours != ZERO:
        tier2_extra = getattr(tier2, mode) * (
            allocation.multipliers.tier2 - allocation.multipliers.overtime
        )
    return base, premium - tier2_extra, tier2_extra


def _accumulate(
    totals: UserPeriodTotals, day: DayRecord, amount_display: str, sign: int
) -> None:
    """Add (sign=1) or remove (sign=-1) one day's contributions."""
    meta = day.meta
    if meta is not None and day.date_key != UNDATED_DATE_KEY:
        totals.expected_capacity += sign * meta.effective_capacity_hours
        if meta.is_holiday:
            totals.holiday_count += sign
            totals.holiday_hours += sign * meta.base_capacity_hours
        if meta.is_time_off:
            totals.time_off_count += sign
            totals.time_off_hours += sign * meta.time_off_hours

    for allocation in day.allocations:
        regular = allocation.regular_hours
        tier1 = allocation.bucket(AllocationBucket.OVERTIME_TIER1).hours
        tier2 = allocation.bucket(AllocationBucket.OVERTIME_TIER2).hours
        overtime = tier1 + tier2

        totals.total += sign * allocation.duration_hours
        totals.regular += sign * regular
        totals.overtime += sign * overtime
        totals.overtime_tier1 += sign * tier1
        totals.overtime_tier2 += sign * tier2

        if allocation.category is EntryCategory.BREAK:
            totals.breaks += sign * allocation.duration_hours
        elif allocation.category is EntryCategory.PTO:
            totals.vacation_entry_hours += sign * allocation.duration_hours

        if allocation.billable:
            totals.billable_worked += sign * regular
            totals.billable_ot += sign * overtime
        else:
            totals.non_billable_worked += sign * regular
            totals.non_billable_ot += sign * overtime

        for mode in AMOUNT_MODES:
            base, tier1_premium, tier2_premium = _premiums(allocation, mode)
            setattr(
                totals,
                f"amount_{mode}",
                getattr(totals, f"amount_{mode}")
                + sign * (base + tier1_premium + tier2_premium),
            )
            setattr(
                totals,
                f"amount_{mode}_base",
                getattr(totals, f"amount_{mode}_base") + sign * base,
            )
            setattr(
                totals,
                f"ot_premium_{mode}",
                getattr(totals, f"ot_premium_{mode}") + sign * tier1_premium,
            )
            setattr(
                totals,
                f"ot_premium_tier2_{mode}",
                getattr(totals, f"ot_premium_tier2_{mode}") + sign * tier2_premium,
            )

    totals.amount = getattr(totals, f"amount_{amount_display}")
    totals.amount_base = getattr(totals, f"amount_{amount_display}_base")
    totals.ot_premium = getattr(totals, f"ot_premium_{amount_display}")
    totals.ot_premium_tier2 = getattr(totals, f"ot_premium_tier2_{amount_display}")


def aggregate_totals(
    days: Iterable[DayRecord], amount_display: str = "earned"
) -> UserPeriodTotals:
    """Fold allocated day records into fresh period totals.

    Summation is pure addition, so the order of days does not matter.

    Args:
        days: Allocated day records of one user
        amount_display: ``earned``, ``cost`` or ``profit``

    Returns:
        New UserPeriodTotals
    """
    totals = UserPeriodTotals()
    for day in days:
        _accumulate(totals, day, amount_display, sign=1)
    return totals


def subtract_day(
    totals: UserPeriodTotals, day: DayRecord, amount_display: str = "earned"
) -> UserPeriodTotals:
    """Remove one day's contributions from period totals.

    Returns a new UserPeriodTotals; the input is left untouched.
    """
    result = UserPeriodTotals(**vars(totals))
    _accumulate(result, day, amount_display, sign=-1)
    return result


def add_day(
    totals: UserPeriodTotals, day: DayRecord, amount_display: str = "earned"
) -> UserPeriodTotals:
    """Add one day's contributions to period totals (returns a new object)."""
    result = UserPeriodTotals(**vars(totals))
    _accumulate(result, day, amount_display, sign=1)
    return result


# ----------------------------------------------------------------------
# Allocation
# ----------------------------------------------------------------------


def _day_tags(day: DayRecord, category: EntryCategory) -> List[str]:
    tags = []
    if day.meta is not None:
        if day.meta.is_holiday:
            tags.append("HOLIDAY")
        if day.meta.is_non_working_day:
            tags.append("OFF-DAY")
        if day.meta.is_time_off:
            tags.append("TIME-OFF")
    if category is EntryCategory.BREAK:
        tags.append("BREAK")
    return tags


def _attach_allocations(
    user_id: str,
    day: DayRecord,
    splits: List[HourSplit],
    resolver: CapacityResolver,
) -> None:
    multipliers = resolver.resolve_multipliers(user_id, day.date_key)
    day.allocations = []
    for classified, split in zip(day.entries, splits):
        rates = resolve_rates(classified)
        day.allocations.append(
            EntryAllocation(
                entry_id=classified.entry.id,
                category=classified.category,
                billable=classified.billable,
                duration_hours=split.total,
                rates=rates,
                multipliers=multipliers,
                buckets=allocate_amounts(split.as_buckets(), rates, multipliers),
                tags=_day_tags(day, classified.category),
            )
        )


def _allocate_user(
    user_id: str,
    days: Dict[str, DayRecord],
    resolver: CapacityResolver,
    config: CalculationConfig,
) -> None:
    tiered = config.enable_tiered_ot
    dated = {k: d for k, d in days.items() if k != UNDATED_DATE_KEY}

    if UNDATED_DATE_KEY in days:
        undated = days[UNDATED_DATE_KEY]
        _attach_allocations(user_id, undated, allocate_uncounted(undated), resolver)

    if config.is_weekly_basis:
        weeks: Dict[str, List[DayRecord]] = defaultdict(list)
        for date_key, day in dated.items():
            weeks[iso_week_key(date_key)].append(day)
        for week_key, week_days in sorted(weeks.items()):
            thresholds = {
                d.date_key: resolver.resolve_multipliers(user_id, d.date_key).tier2_threshold
                for d in week_days
            }
            splits_by_date = allocate_week(
                week_days, config.weekly_threshold, thresholds, tiered
            )
            for day in week_days:
                _attach_allocations(user_id, day, splits_by_date[day.date_key], resolver)
    else:
        for date_key, day in sorted(dated.items()):
            tier2_threshold = resolver.resolve_multipliers(user_id, date_key).tier2_threshold
            _attach_allocations(
                user_id, day, allocate_day(day, tier2_threshold, tiered), resolver
            )


@log_function_call(level="INFO", timed=True)
def compute_analysis(
    entries: Optional[Iterable[Optional[EntryInput]]],
    config: CalculationConfig,
    profiles: Optional[Mapping[str, Any]] = None,
    holidays: Optional[Mapping[str, Mapping[str, Any]]] = None,
    time_off: Optional[Mapping[str, Mapping[str, Any]]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    users: Optional[Mapping[str, str]] = None,
    date_range: Optional[Tuple[str, str]] = None,
) -> AnalysisResult:
    """Run the overtime analysis for a report period.

    Args:
        entries: Normalized time entries (TimeEntry or camelCase dicts)
        config: Calculation configuration
        profiles: user_id -> UserProfile (or dict)
        holidays: user_id -> date_key -> Holiday (pre-expanded)
        time_off: user_id -> date_key -> TimeOffInfo (pre-expanded)
        overrides: user_id -> UserOverride (or dict)
        users: Roster of user_id -> display name; rostered users without
            entries still get capacity-only results
        date_range: Inclusive (start_key, end_key); defaults to the span
            of the entries' dates

    Returns:
        AnalysisResult with users sorted by name

    Example:
        >>> result = compute_analysis(entries, CalculationConfig())
        >>> result.get_user("user-1").totals.overtime
        Decimal('2')
    """
    timed_entries = [_as_entry(raw) for raw in (entries or [])]
    user_days = build_day_buckets(timed_entries, config.get_time_zone())
    date_keys = _report_dates(user_days, date_range)

    resolver = CapacityResolver(
        config,
        profiles=_as_model_map(profiles, UserProfile),
        holidays=_as_nested_map(holidays, Holiday),
        time_off=_as_nested_map(time_off, TimeOffInfo),
        overrides=_as_model_map(overrides, UserOverride),
    )

    names: Dict[str, str] = dict(users or {})
    for entry in timed_entries:
        if entry is not None and entry.user_id not in names:
            names[entry.user_id] = entry.user_name or "Unknown"

    logger.info(
        f"Analysing {sum(e is not None for e in timed_entries)} entries for "
        f"{len(names)} users over {len(date_keys)} days "
        f"({config.overtime_basis} basis)"
    )

    analyses: List[UserAnalysis] = []
    for user_id, user_name in names.items():
        with LogContext(user_id=user_id):
            entry_days = user_days.get(user_id, {})
            days: Dict[str, DayRecord] = {}

            for date_key in date_keys:
                day = entry_days.get(date_key) or DayRecord(user_id=user_id, date_key=date_key)
                day.meta = resolver.resolve(user_id, date_key, day.entries)
                days[date_key] = day

            if UNDATED_DATE_KEY in entry_days:
                undated = entry_days[UNDATED_DATE_KEY]
                undated.meta = DayMeta(
                    effective_capacity_hours=ZERO,
                    capacity_source=CapacitySource.NO_DATA,
                )
                days[UNDATED_DATE_KEY] = undated

            _allocate_user(user_id, days, resolver, config)
            totals = aggregate_totals(days.values(), config.amount_display)

            logger.debug(
                f"Totals for {user_id}: regular={totals.regular}h "
                f"overtime={totals.overtime}h total={totals.total}h"
            )
            analyses.append(
                UserAnalysis(user_id=user_id, user_name=user_name, days=days, totals=totals)
            )

    analyses.sort(key=lambda a: (a.user_name, a.user_id))

    logger.info(f"Analysis complete for {len(analyses)} users")
    return AnalysisResult(
        users=analyses,
        date_keys=date_keys,
        overtime_basis=config.overtime_basis,
        amount_display=config.amount_display,
        show_billable_breakdown=config.show_billable_breakdown,
    )
