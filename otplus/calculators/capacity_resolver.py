"""Effective capacity resolution per user and day.

The effective capacity of a day is the number of hours that count as
regular time before overtime accrues. Several sources can decide it; they
are evaluated as an ordered chain and the first source that applies wins:

1. Manual override (per-day, weekday or global value)
2. API holiday (when holidays are applied) -> 0h
3. API time-off (when time-off is applied) -> base minus time-off hours
4. Holiday entry on the day (only when API holidays are off) -> 0h
5. Time-off entries on the day (only when API time-off is off)
   -> base minus their hours
6. Base capacity: profile capacity, or the configured daily threshold;
   0h on non-working days when profile working days are used

Resolved days are cached for the lifetime of the resolver, which is a
single engine run.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Dict, Mapping, Optional, Sequence, Tuple

from otplus.calculators.entry_classifier import HOLIDAY_TYPE, TIME_OFF_TYPE
from otplus.config.settings import CalculationConfig
from otplus.models.analysis import (
    CapacitySource,
    ClassifiedEntry,
    DayMeta,
    EntryCategory,
    Multipliers,
)
from otplus.models.profile import Holiday, TimeOffInfo, UserOverride, UserProfile
from otplus.utils.time_utils import ZERO, weekday_key

logger = logging.getLogger(__name__)

HolidayMap = Mapping[str, Mapping[str, Holiday]]
TimeOffMap = Mapping[str, Mapping[str, TimeOffInfo]]


@dataclass(frozen=True)
class _DayContext:
    """Inputs shared by every strategy while resolving one day."""

    user_id: str
    date_key: str
    weekday: str
    entries: Sequence[ClassifiedEntry]
    base_capacity: Decimal
    base_source: CapacitySource
    is_non_working_day: bool


CapacityStrategy = Callable[[_DayContext], Optional[DayMeta]]


class CapacityResolver:
    """Resolves the effective capacity of each (user, date).

    Attributes:
        config: Calculation configuration
        profiles: user_id -> UserProfile
        holidays: user_id -> date_key -> Holiday (pre-expanded)
        time_off: user_id -> date_key -> TimeOffInfo (pre-expanded)
        overrides: user_id -> UserOverride

    Example:
        >>> resolver = CapacityResolver(CalculationConfig(daily_threshold=8))
        >>> meta = resolver.resolve("user-1", "2025-01-13")
        >>> meta.effective_capacity_hours, meta.capacity_source.value
        (Decimal('8'), 'no_data')
    """

    def __init__(
        self,
        config: CalculationConfig,
        profiles: Optional[Mapping[str, UserProfile]] = None,
        holidays: Optional[HolidayMap] = None,
        time_off: Optional[TimeOffMap] = None,
        overrides: Optional[Mapping[str, UserOverride]] = None,
    ):
        self.config = config
        self.profiles = profiles or {}
        self.holidays = holidays or {}
        self.time_off = time_off or {}
        self.overrides = overrides or {}
        self._cache: Dict[Tuple[str, str], DayMeta] = {}
        self._strategies: Tuple[CapacityStrategy, ...] = (
            self._manual_override,
            self._api_holiday,
            self._api_time_off,
            self._entry_detected_holiday,
            self._entry_detected_time_off,
            self._base_capacity,
        )

    def resolve(
        self,
        user_id: str,
        date_key: str,
        day_entries: Sequence[ClassifiedEntry] = (),
    ) -> DayMeta:
        """Resolve the capacity meta of a user's day.

        Args:
            user_id: User identifier
            date_key: Date key (YYYY-MM-DD)
            day_entries: Classified entries of that day, used for
                entry-detected holidays and time-off

        Returns:
            DayMeta; identical for repeated calls with the same key
        """
        cache_key = (user_id, date_key)
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        base_capacity, base_source, is_non_working_day = self.base_capacity(
            user_id, date_key
        )
        context = _DayContext(
            user_id=user_id,
            date_key=date_key,
            weekday=weekday_key(date_key),
            entries=day_entries,
            base_capacity=base_capacity,
            base_source=base_source,
            is_non_working_day=is_non_working_day,
        )

        # The last strategy (base capacity) always applies
        meta = next(
            result
            for result in (strategy(context) for strategy in self._strategies)
            if result is not None
        )

        logger.debug(
            f"Capacity for {user_id} on {date_key}: "
            f"{meta.effective_capacity_hours}h ({meta.capacity_source.value})"
        )
        self._cache[cache_key] = meta
        return meta

    def base_capacity(
        self, user_id: str, date_key: str
    ) -> Tuple[Decimal, CapacitySource, bool]:
        """Get the capacity of a day before holiday and time-off reductions.

        Returns:
            Tuple of (hours, source, is_non_working_day)
        """
        if not self.is_working_day(user_id, date_key):
            return ZERO, CapacitySource.PROFILE_WORKING_DAYS_OVERRIDE, True

        if self.config.use_profile_capacity:
            profile = self.profiles.get(user_id)
            if profile is not None and profile.work_capacity_hours is not None:
                return profile.work_capacity_hours, CapacitySource.PROFILE_DEFAULT, False

        return self.config.daily_threshold, CapacitySource.NO_DATA, False

    def is_working_day(self, user_id: str, date_key: str) -> bool:
        """Check the profile's working days (always True when not used)."""
        if not self.config.use_profile_working_days:
            return True
        profile = self.profiles.get(user_id)
        if profile is None or profile.working_days is None:
            return True
        return weekday_key(date_key) in profile.working_days

    def resolve_multipliers(self, user_id: str, date_key: str) -> Multipliers:
        """Resolve overtime multipliers and the tier-2 threshold for a day.

        Override values (per-day, weekday, global) win over configuration.
        """
        override = self.overrides.get(user_id)
        weekday = weekday_key(date_key)

        def pick(field: str, default: Decimal) -> Decimal:
            if override is not None:
                value = override.lookup(field, date_key, weekday)
                if value is not None:
                    return value
            return default

        return Multipliers(
            overtime=pick("multiplier", self.config.overtime_multiplier),
            tier2=pick("tier2_multiplier", self.config.tier2_multiplier),
            tier2_threshold=pick("tier2_threshold", self.config.tier2_threshold_hours),
        )

    # ------------------------------------------------------------------
    # Strategies, in precedence order
    # ------------------------------------------------------------------

    def _manual_override(self, ctx: _DayContext) -> Optional[DayMeta]:
        override = self.overrides.get(ctx.user_id)
        if override is None:
            return None
        capacity = override.lookup("capacity", ctx.date_key, ctx.weekday)
        if capacity is None:
            return None
        return DayMeta(
            effective_capacity_hours=capacity,
            capacity_source=CapacitySource.MANUAL_OVERRIDE,
            base_capacity_hours=capacity,
            is_non_working_day=ctx.is_non_working_day,
        )

    def _api_holiday(self, ctx: _DayContext) -> Optional[DayMeta]:
        if not self.config.apply_holidays:
            return None
        holiday = self.holidays.get(ctx.user_id, {}).get(ctx.date_key)
        if holiday is None:
            return None
        return DayMeta(
            effective_capacity_hours=ZERO,
            capacity_source=CapacitySource.API_HOLIDAY,
            base_capacity_hours=ctx.base_capacity,
            is_holiday=True,
            holiday_name=holiday.name,
            holiday_project_id=holiday.project_id,
            is_non_working_day=ctx.is_non_working_day,
        )

    def _api_time_off(self, ctx: _DayContext) -> Optional[DayMeta]:
        if not self.config.apply_time_off:
            return None
        time_off = self.time_off.get(ctx.user_id, {}).get(ctx.date_key)
        if time_off is None:
            return None
        time_off_hours = ctx.base_capacity if time_off.is_full_day else time_off.hours
        reduction = min(ctx.base_capacity, time_off_hours)
        return DayMeta(
            effective_capacity_hours=ctx.base_capacity - reduction,
            capacity_source=CapacitySource.API_TIME_OFF,
            base_capacity_hours=ctx.base_capacity,
            is_non_working_day=ctx.is_non_working_day,
            is_time_off=True,
            time_off_hours=time_off_hours,
        )

    def _entry_detected_holiday(self, ctx: _DayContext) -> Optional[DayMeta]:
        # API presence, not API content, suppresses detection from entries
        if self.config.apply_holidays:
            return None
        holiday_entries = [
            e
            for e in ctx.entries
            if e.category is EntryCategory.PTO and e.entry.entry_type == HOLIDAY_TYPE
        ]
        if not holiday_entries:
            return None
        return DayMeta(
            effective_capacity_hours=ZERO,
            capacity_source=CapacitySource.ENTRY_DETECTED_HOLIDAY,
            base_capacity_hours=ctx.base_capacity,
            is_holiday=True,
            holiday_name=holiday_entries[0].entry.description or "",
            holiday_project_id=holiday_entries[0].entry.project_id,
            is_non_working_day=ctx.is_non_working_day,
        )

    def _entry_detected_time_off(self, ctx: _DayContext) -> Optional[DayMeta]:
        if self.config.apply_time_off:
            return None
        time_off_entries = [
            e
            for e in ctx.entries
            if e.category is EntryCategory.PTO and e.entry.entry_type == TIME_OFF_TYPE
        ]
        if not time_off_entries:
            return None
        time_off_hours = sum((e.duration_hours for e in time_off_entries), ZERO)
        return DayMeta(
            effective_capacity_hours=max(ZERO, ctx.base_capacity - time_off_hours),
            capacity_source=CapacitySource.ENTRY_DETECTED_TIME_OFF,
            base_capacity_hours=ctx.base_capacity,
            is_non_working_day=ctx.is_non_working_day,
            is_time_off=True,
            time_off_hours=time_off_hours,
        )

    def _base_capacity(self, ctx: _DayContext) -> Optional[DayMeta]:
        return DayMeta(
            effective_capacity_hours=ctx.base_capacity,
            capacity_source=ctx.base_source,
            base_capacity_hours=ctx.base_capacity,
            is_non_working_day=ctx.is_non_working_day,
        )
