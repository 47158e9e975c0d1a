"""
Readers that turn raw absence records into engine inputs.
"""

from .absence_reader import (
    HolidayRecord,
    TimeOffRequest,
    build_holiday_map,
    build_time_off_map,
    extract_time_off_requests,
)

__all__ = [
    "HolidayRecord",
    "TimeOffRequest",
    "build_holiday_map",
    "build_time_off_map",
    "extract_time_off_requests",
]
