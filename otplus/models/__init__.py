"""Data models for the overtime engine.

This package contains Pydantic models for the records handed to the engine
and dataclasses for the results it produces:
- TimeEntry: Normalized Clockify time entry
- UserProfile, Holiday, TimeOffInfo, UserOverride: Per-user external data
- DayRecord, DayMeta, EntryAllocation, UserPeriodTotals: Engine results
"""

from otplus.models.analysis import (
    AllocationBucket,
    AnalysisResult,
    BucketAllocation,
    CapacitySource,
    ClassifiedEntry,
    DayMeta,
    DayRecord,
    EntryAllocation,
    EntryCategory,
    EntryClassification,
    EntryRates,
    Multipliers,
    UserAnalysis,
    UserPeriodTotals,
)
from otplus.models.base import ApiRecordModel
from otplus.models.entry import AmountTotal, HourlyRate, TimeEntry, TimeInterval
from otplus.models.profile import (
    Holiday,
    OverrideValues,
    TimeOffInfo,
    UserOverride,
    UserProfile,
)

__all__ = [
    "AllocationBucket",
    "AmountTotal",
    "AnalysisResult",
    "ApiRecordModel",
    "BucketAllocation",
    "CapacitySource",
    "ClassifiedEntry",
    "DayMeta",
    "DayRecord",
    "EntryAllocation",
    "EntryCategory",
    "EntryClassification",
    "EntryRates",
    "Holiday",
    "HourlyRate",
    "Multipliers",
    "OverrideValues",
    "TimeEntry",
    "TimeInterval",
    "TimeOffInfo",
    "UserAnalysis",
    "UserOverride",
    "UserPeriodTotals",
    "UserProfile",
]
