"""Per-user external data consumed by the overtime engine.

This module defines the records the caller resolves before running the
engine: user profiles (capacity and working days), holidays, time-off and
manual capacity/multiplier overrides.
"""

from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field, field_validator

from otplus.models.base import ApiRecordModel
from otplus.utils.time_utils import WEEKDAY_KEYS, to_decimal


class UserProfile(ApiRecordModel):
    """Workspace profile of a user.

    Attributes:
        work_capacity_hours: Regular hours per working day
        working_days: Uppercase weekday names (``MONDAY`` ... ``SUNDAY``);
            None means every day is a working day
    """

    work_capacity_hours: Optional[Decimal] = None
    working_days: Optional[List[str]] = None

    @field_validator("work_capacity_hours", mode="before")
    @classmethod
    def coerce_capacity(cls, v: Any) -> Optional[Decimal]:
        return to_decimal(v)

    @field_validator("working_days", mode="before")
    @classmethod
    def normalize_working_days(cls, v: Any) -> Optional[List[str]]:
        if v is None or not isinstance(v, (list, tuple, set, frozenset)):
            return None
        return [str(day).upper() for day in v if str(day).upper() in WEEKDAY_KEYS]


class Holiday(ApiRecordModel):
    """A holiday covering one date for one user."""

    name: str = ""
    project_id: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def coerce_name(cls, v: Any) -> str:
        return "" if v is None else str(v)


class TimeOffInfo(ApiRecordModel):
    """An approved time-off record covering one date for one user.

    Attributes:
        is_full_day: Whole working day is off
        hours: Hours off for partial days
    """

    is_full_day: bool = True
    hours: Decimal = Decimal("0")

    @field_validator("is_full_day", mode="before")
    @classmethod
    def coerce_full_day(cls, v: Any) -> bool:
        return v if isinstance(v, bool) else True

    @field_validator("hours", mode="before")
    @classmethod
    def coerce_hours(cls, v: Any) -> Decimal:
        parsed = to_decimal(v)
        return parsed if parsed is not None and parsed > 0 else Decimal("0")


class OverrideValues(ApiRecordModel):
    """Override values for a single date, weekday or the whole period.

    Values arrive from the settings UI as numbers or numeric strings;
    anything unparseable is treated as not set.
    """

    capacity: Optional[Decimal] = None
    multiplier: Optional[Decimal] = None
    tier2_threshold: Optional[Decimal] = None
    tier2_multiplier: Optional[Decimal] = None

    @field_validator(
        "capacity", "multiplier", "tier2_threshold", "tier2_multiplier", mode="before"
    )
    @classmethod
    def coerce_value(cls, v: Any) -> Optional[Decimal]:
        if isinstance(v, str) and not v.strip():
            return None
        return to_decimal(v)


class UserOverride(OverrideValues):
    """Manual overrides configured for a user.

    Lookups go from the most specific to the least specific value: the
    per-day value (``perDay`` mode), then the weekday value (``weekly``
    mode), then the global value on the override itself.

    Example:
        >>> override = UserOverride.model_validate({
        ...     "mode": "weekly",
        ...     "weeklyOverrides": {"FRIDAY": {"capacity": "6"}},
        ... })
        >>> override.lookup("capacity", "2025-01-17", "FRIDAY")
        Decimal('6')
    """

    mode: Literal["global", "weekly", "perDay"] = "global"
    per_day_overrides: Dict[str, OverrideValues] = Field(default_factory=dict)
    weekly_overrides: Dict[str, OverrideValues] = Field(default_factory=dict)

    @field_validator("mode", mode="before")
    @classmethod
    def coerce_mode(cls, v: Any) -> str:
        return v if v in ("global", "weekly", "perDay") else "global"

    @field_validator("weekly_overrides", mode="before")
    @classmethod
    def normalize_weekday_keys(cls, v: Any) -> Dict[str, Any]:
        if not isinstance(v, dict):
            return {}
        return {str(key).upper(): value for key, value in v.items()}

    @field_validator("per_day_overrides", mode="before")
    @classmethod
    def coerce_per_day(cls, v: Any) -> Dict[str, Any]:
        return v if isinstance(v, dict) else {}

    def lookup(self, field: str, date_key: str, weekday: str) -> Optional[Decimal]:
        """Find the most specific override value for a date.

        Args:
            field: One of capacity, multiplier, tier2_threshold,
                tier2_multiplier
            date_key: Date key (YYYY-MM-DD)
            weekday: Uppercase weekday name of the date

        Returns:
            The override value, or None when no override applies
        """
        if self.mode == "perDay":
            day_values = self.per_day_overrides.get(date_key)
            if day_values is not None and getattr(day_values, field) is not None:
                return getattr(day_values, field)
        if self.mode == "weekly":
            weekday_values = self.weekly_overrides.get(weekday)
            if weekday_values is not None and getattr(weekday_values, field) is not None:
                return getattr(weekday_values, field)
        return getattr(self, field)
