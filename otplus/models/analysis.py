"""Result models produced by the overtime engine.

This module defines the tagged enumerations shared by the classifier,
allocators and aggregator, the per-day records, per-entry allocations and
the additive per-user totals returned to rendering and export
collaborators. All hours and money are unrounded Decimals.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from otplus.models.entry import TimeEntry

ZERO = Decimal("0")


class EntryCategory(str, Enum):
    """Accounting category of a time entry."""

    WORK = "work"
    BREAK = "break"
    PTO = "pto"


class AllocationBucket(str, Enum):
    """Hour bucket an entry slice is assigned to."""

    REGULAR = "regular"
    OVERTIME_TIER1 = "overtime_tier1"
    OVERTIME_TIER2 = "overtime_tier2"


class CapacitySource(str, Enum):
    """Source that decided a day's effective capacity."""

    PROFILE_DEFAULT = "profile_default"
    PROFILE_WORKING_DAYS_OVERRIDE = "profile_working_days_override"
    MANUAL_OVERRIDE = "manual_override"
    API_HOLIDAY = "api_holiday"
    API_TIME_OFF = "api_time_off"
    ENTRY_DETECTED_HOLIDAY = "entry_detected_holiday"
    ENTRY_DETECTED_TIME_OFF = "entry_detected_time_off"
    NO_DATA = "no_data"


@dataclass(frozen=True)
class EntryClassification:
    """Category and billability of an entry."""

    category: EntryCategory
    billable: bool


@dataclass(frozen=True)
class ClassifiedEntry:
    """A time entry together with its classification and resolved duration.

    Attributes:
        entry: The original entry
        classification: Category and billable flag
        duration_hours: Classified duration (never negative, never NaN)
        sequence: Original fetch position, used as the sort tie-breaker
    """

    entry: TimeEntry
    classification: EntryClassification
    duration_hours: Decimal
    sequence: int

    @property
    def category(self) -> EntryCategory:
        return self.classification.category

    @property
    def billable(self) -> bool:
        return self.classification.billable


@dataclass(frozen=True)
class DayMeta:
    """Capacity context of one user on one day.

    Produced once per day by the capacity resolver and never changed.
    """

    effective_capacity_hours: Decimal
    capacity_source: CapacitySource
    base_capacity_hours: Decimal = ZERO
    is_holiday: bool = False
    holiday_name: str = ""
    holiday_project_id: Optional[str] = None
    is_non_working_day: bool = False
    is_time_off: bool = False
    time_off_hours: Decimal = ZERO


@dataclass(frozen=True)
class EntryRates:
    """Hourly rates resolved for one entry (currency units per hour)."""

    earned: Decimal = ZERO
    cost: Decimal = ZERO
    currency: str = "USD"

    @property
    def profit(self) -> Decimal:
        return self.earned - self.cost


@dataclass
class BucketAllocation:
    """Hours and money assigned to one bucket of one entry.

    ``earned``, ``cost`` and ``profit`` are base amounts at multiplier 1;
    the ``*_premium`` fields hold the overtime premium on top of them.
    """

    hours: Decimal = ZERO
    earned: Decimal = ZERO
    cost: Decimal = ZERO
    profit: Decimal = ZERO
    earned_premium: Decimal = ZERO
    cost_premium: Decimal = ZERO
    profit_premium: Decimal = ZERO


@dataclass(frozen=True)
class Multipliers:
    """Overtime multipliers and tier-2 threshold effective for one entry."""

    overtime: Decimal
    tier2: Decimal
    tier2_threshold: Decimal


@dataclass
class EntryAllocation:
    """Allocation result for one entry.

    Attributes:
        entry_id: Id of the allocated entry
        category: Accounting category
        billable: Billable flag
        duration_hours: Classified duration
        rates: Resolved hourly rates
        multipliers: Multipliers applied to overtime buckets
        buckets: Per-bucket hours and amounts
        tags: Day context tags (HOLIDAY, OFF-DAY, TIME-OFF, BREAK)
    """

    entry_id: str
    category: EntryCategory
    billable: bool
    duration_hours: Decimal
    rates: EntryRates = field(default_factory=EntryRates)
    multipliers: Optional[Multipliers] = None
    buckets: Dict[AllocationBucket, BucketAllocation] = field(default_factory=dict)
    tags: List[str] = field(default_factory=list)

    def bucket(self, bucket: AllocationBucket) -> BucketAllocation:
        """Get a bucket, returning an empty allocation when absent."""
        return self.buckets.get(bucket) or BucketAllocation()

    @property
    def regular_hours(self) -> Decimal:
        return self.bucket(AllocationBucket.REGULAR).hours

    @property
    def overtime_hours(self) -> Decimal:
        return (
            self.bucket(AllocationBucket.OVERTIME_TIER1).hours
            + self.bucket(AllocationBucket.OVERTIME_TIER2).hours
        )

    @property
    def total_hours(self) -> Decimal:
        return sum((b.hours for b in self.buckets.values()), ZERO)


@dataclass
class DayRecord:
    """Entries and capacity context of one user on one day.

    ``allocations`` is parallel to ``entries`` once the day has been
    allocated.
    """

    user_id: str
    date_key: str
    meta: Optional[DayMeta] = None
    entries: List[ClassifiedEntry] = field(default_factory=list)
    allocations: List[EntryAllocation] = field(default_factory=list)

    @property
    def regular_hours(self) -> Decimal:
        return sum((a.regular_hours for a in self.allocations), ZERO)

    @property
    def overtime_hours(self) -> Decimal:
        return sum((a.overtime_hours for a in self.allocations), ZERO)

    @property
    def total_hours(self) -> Decimal:
        return sum((a.total_hours for a in self.allocations), ZERO)


@dataclass
class UserPeriodTotals:
    """Additive per-user totals for the report period.

    ``amount``, ``amount_base``, ``ot_premium`` and ``ot_premium_tier2``
    follow the configured display mode (earned, cost or profit); the
    per-mode fields are always filled.
    """

    regular: Decimal = ZERO
    overtime: Decimal = ZERO
    overtime_tier1: Decimal = ZERO
    overtime_tier2: Decimal = ZERO
    total: Decimal = ZERO
    breaks: Decimal = ZERO
    vacation_entry_hours: Decimal = ZERO
    billable_worked: Decimal = ZERO
    non_billable_worked: Decimal = ZERO
    billable_ot: Decimal = ZERO
    non_billable_ot: Decimal = ZERO
    expected_capacity: Decimal = ZERO
    holiday_count: int = 0
    time_off_count: int = 0
    holiday_hours: Decimal = ZERO
    time_off_hours: Decimal = ZERO
    amount: Decimal = ZERO
    amount_base: Decimal = ZERO
    ot_premium: Decimal = ZERO
    ot_premium_tier2: Decimal = ZERO
    amount_earned: Decimal = ZERO
    amount_cost: Decimal = ZERO
    amount_profit: Decimal = ZERO
    amount_earned_base: Decimal = ZERO
    amount_cost_base: Decimal = ZERO
    amount_profit_base: Decimal = ZERO
    ot_premium_earned: Decimal = ZERO
    ot_premium_cost: Decimal = ZERO
    ot_premium_profit: Decimal = ZERO
    ot_premium_tier2_earned: Decimal = ZERO
    ot_premium_tier2_cost: Decimal = ZERO
    ot_premium_tier2_profit: Decimal = ZERO

    @property
    def profit(self) -> Decimal:
        return self.amount_profit


@dataclass
class UserAnalysis:
    """Full analysis of one user: day records and period totals."""

    user_id: str
    user_name: str
    days: Dict[str, DayRecord] = field(default_factory=dict)
    totals: UserPeriodTotals = field(default_factory=UserPeriodTotals)


@dataclass
class AnalysisResult:
    """Result of one engine run.

    Attributes:
        users: Per-user analyses sorted by user name
        date_keys: Report dates in ascending order
        overtime_basis: ``daily`` or ``weekly``
        amount_display: ``earned``, ``cost`` or ``profit``
        show_billable_breakdown: Report billable / non-billable hour columns
    """

    users: List[UserAnalysis]
    date_keys: List[str]
    overtime_basis: str = "daily"
    amount_display: str = "earned"
    show_billable_breakdown: bool = True

    def get_user(self, user_id: str) -> Optional[UserAnalysis]:
        """Find a user's analysis by id."""
        for user in self.users:
            if user.user_id == user_id:
                return user
        return None
