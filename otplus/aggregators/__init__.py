"""Aggregators module for grouping entries and combining allocation results.

This module provides the day grouping, the analysis entry point and the
tabular report views built on top of it.
"""

from otplus.aggregators.analysis_aggregator import (
    add_day,
    aggregate_totals,
    compute_analysis,
    subtract_day,
)
from otplus.aggregators.day_bucket_builder import UNDATED_DATE_KEY, build_day_buckets
from otplus.aggregators.report_frames import (
    days_frame,
    totals_frame,
    weekly_overtime_matrix,
)

__all__ = [
    "UNDATED_DATE_KEY",
    "add_day",
    "aggregate_totals",
    "build_day_buckets",
    "compute_analysis",
    "days_frame",
    "subtract_day",
    "totals_frame",
    "weekly_overtime_matrix",
]
