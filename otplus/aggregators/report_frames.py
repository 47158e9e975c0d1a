"""Tabular report views of an analysis result.

This module turns an AnalysisResult into pandas DataFrames for rendering
and export collaborators:

- One row per user with period totals
- One row per user and day with capacity context and hours
- A user x ISO-week overtime matrix

This is the only place where hours and money are rounded.
"""

import logging
from collections import defaultdict
from decimal import Decimal
from typing import Dict, List, Optional

import pandas as pd

from otplus.aggregators.day_bucket_builder import UNDATED_DATE_KEY
from otplus.models.analysis import AnalysisResult
from otplus.utils.time_utils import iso_week_key, round_currency, round_hours

logger = logging.getLogger(__name__)

HOUR_COLUMNS = (
    "regular",
    "overtime",
    "overtime_tier1",
    "overtime_tier2",
    "total",
    "breaks",
    "vacation_entry_hours",
    "expected_capacity",
    "holiday_hours",
    "time_off_hours",
)
BILLABLE_COLUMNS = (
    "billable_worked",
    "non_billable_worked",
    "billable_ot",
    "non_billable_ot",
)
AMOUNT_COLUMNS = ("amount", "amount_base", "ot_premium", "ot_premium_tier2")


def totals_frame(
    result: AnalysisResult, show_billable_breakdown: Optional[bool] = None
) -> pd.DataFrame:
    """Build the per-user summary table.

    Args:
        result: Engine result
        show_billable_breakdown: Include billable / non-billable hour columns;
            None follows the setting the result was computed with

    Returns:
        DataFrame indexed by user_id, in the result's user order. Amount
        columns follow the result's display mode.

    Example:
        >>> frame = totals_frame(result)
        >>> frame.loc["user-1", "overtime"]
        Decimal('2.0000')
    """
    if show_billable_breakdown is None:
        show_billable_breakdown = result.show_billable_breakdown

    columns: List[str] = ["user_name", *HOUR_COLUMNS]
    if show_billable_breakdown:
        columns.extend(BILLABLE_COLUMNS)
    columns.extend(["holiday_count", "time_off_count", *AMOUNT_COLUMNS])

    rows = []
    for user in result.users:
        totals = user.totals
        row = {"user_id": user.user_id, "user_name": user.user_name}
        for name in HOUR_COLUMNS:
            row[name] = round_hours(getattr(totals, name))
        if show_billable_breakdown:
            for name in BILLABLE_COLUMNS:
                row[name] = round_hours(getattr(totals, name))
        row["holiday_count"] = totals.holiday_count
        row["time_off_count"] = totals.time_off_count
        for name in AMOUNT_COLUMNS:
            row[name] = round_currency(getattr(totals, name))
        rows.append(row)

    if not rows:
        return pd.DataFrame(columns=columns)

    df = pd.DataFrame(rows).set_index("user_id")
    return df[columns]


def days_frame(result: AnalysisResult) -> pd.DataFrame:
    """Build the per-user, per-day table.

    Days without entries are included so capacity context stays visible.
    The undated bucket, when present, appears with an empty capacity
    source.
    """
    rows = []
    for user in result.users:
        for date_key in sorted(user.days):
            day = user.days[date_key]
            meta = day.meta
            rows.append(
                {
                    "user_id": user.user_id,
                    "user_name": user.user_name,
                    "date": date_key,
                    "capacity": round_hours(meta.effective_capacity_hours) if meta else None,
                    "capacity_source": (
                        meta.capacity_source.value
                        if meta and date_key != UNDATED_DATE_KEY
                        else ""
                    ),
                    "is_holiday": bool(meta and meta.is_holiday),
                    "holiday_name": meta.holiday_name if meta else "",
                    "is_non_working_day": bool(meta and meta.is_non_working_day),
                    "is_time_off": bool(meta and meta.is_time_off),
                    "entries": len(day.entries),
                    "regular": round_hours(day.regular_hours),
                    "overtime": round_hours(day.overtime_hours),
                    "total": round_hours(day.total_hours),
                }
            )

    logger.debug(f"Built day table with {len(rows)} rows")
    return pd.DataFrame(rows)


def weekly_overtime_matrix(result: AnalysisResult) -> pd.DataFrame:
    """Generate a user x ISO-week matrix of overtime hours.

    Args:
        result: Engine result

    Returns:
        DataFrame with user names as index and ``YYYY-W##`` labels as
        columns (sorted); weeks without overtime for a user are 0

    Example:
        >>> matrix = weekly_overtime_matrix(result)
        >>> matrix.loc["Ada", "2025-W03"]
        Decimal('2.0000')
    """
    logger.info(f"Generating weekly overtime matrix for {len(result.users)} users")

    if not result.users:
        logger.info("No users, returning empty DataFrame")
        return pd.DataFrame()

    weekly: Dict[str, Dict[str, Decimal]] = {}
    for user in result.users:
        user_weeks: Dict[str, Decimal] = defaultdict(Decimal)
        for date_key, day in user.days.items():
            if date_key == UNDATED_DATE_KEY:
                continue
            user_weeks[iso_week_key(date_key)] += day.overtime_hours
        weekly[user.user_name] = user_weeks

    week_labels = sorted({label for user_weeks in weekly.values() for label in user_weeks})
    if not week_labels:
        return pd.DataFrame(index=list(weekly))

    # Structure: {user_name: {week_label: hours}}, every week on every row
    matrix_data: Dict[str, Dict[str, Decimal]] = {
        user_name: {
            label: round_hours(user_weeks.get(label, Decimal("0"))) for label in week_labels
        }
        for user_name, user_weeks in weekly.items()
    }

    df = pd.DataFrame.from_dict(matrix_data, orient="index", columns=week_labels)

    logger.info(
        f"Generated matrix with {len(df)} users and {len(df.columns)} weeks"
    )
    return df
