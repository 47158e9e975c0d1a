"""Absence reader for expanding holiday and time-off spans into per-date maps.

The Clockify holiday and time-off endpoints return date spans. The engine
expects pre-expanded maps keyed by user and date, so this module converts
the raw span records into:

- user_id -> date_key -> Holiday
- user_id -> date_key -> TimeOffInfo

Only approved time-off requests are kept. The first record seen for a date
wins; later records never overwrite it.
"""

import datetime as dt
import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import Field, ValidationError, field_validator

from otplus.models.base import ApiRecordModel
from otplus.models.profile import Holiday, TimeOffInfo
from otplus.utils.time_utils import expand_date_span, extract_date_key, to_decimal

logger = logging.getLogger(__name__)

APPROVED_STATUS = "APPROVED"
DAYS_TIME_UNIT = "DAYS"

HolidayMap = Dict[str, Dict[str, Holiday]]
TimeOffMap = Dict[str, Dict[str, TimeOffInfo]]


class DatePeriod(ApiRecordModel):
    """Start and end of a holiday span."""

    start_date: Optional[str] = None
    end_date: Optional[str] = None


class HolidayRecord(ApiRecordModel):
    """A holiday as returned by the holidays endpoint.

    Example:
        >>> record = HolidayRecord.model_validate({
        ...     "name": "New Year",
        ...     "datePeriod": {"startDate": "2025-01-01T00:00:00Z"},
        ... })
        >>> record.date_period.start_date
        '2025-01-01T00:00:00Z'
    """

    name: str = ""
    project_id: Optional[str] = None
    date_period: DatePeriod = Field(default_factory=DatePeriod)

    @field_validator("name", mode="before")
    @classmethod
    def coerce_name(cls, v: Any) -> str:
        return "" if v is None else str(v)


class Period(ApiRecordModel):
    start: Optional[str] = None
    end: Optional[str] = None


class TimeOffPeriod(ApiRecordModel):
    """Span of a time-off request.

    Dates may be nested under ``period`` or given directly as
    ``start``/``end`` or ``startDate``/``endDate``.
    """

    period: Period = Field(default_factory=Period)
    start: Optional[str] = None
    end: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    half_day: bool = False
    half_day_hours: Optional[Decimal] = None

    @field_validator("half_day", mode="before")
    @classmethod
    def coerce_half_day(cls, v: Any) -> bool:
        return bool(v)

    @field_validator("half_day_hours", mode="before")
    @classmethod
    def coerce_half_day_hours(cls, v: Any) -> Optional[Decimal]:
        return to_decimal(v)

    @property
    def start_value(self) -> Optional[str]:
        return self.period.start or self.start or self.start_date

    @property
    def end_value(self) -> Optional[str]:
        return self.period.end or self.end or self.end_date


class TimeOffRequest(ApiRecordModel):
    """A time-off request as returned by the time-off endpoint.

    ``status`` may arrive as a plain string or as ``{"statusType": ...}``.
    """

    user_id: Optional[str] = None
    requester_user_id: Optional[str] = None
    status: Optional[str] = None
    time_unit: Optional[str] = None
    time_off_period: TimeOffPeriod = Field(default_factory=TimeOffPeriod)

    @field_validator("status", mode="before")
    @classmethod
    def coerce_status(cls, v: Any) -> Optional[str]:
        if isinstance(v, dict):
            v = v.get("statusType")
        return v if isinstance(v, str) else None

    @field_validator("time_off_period", mode="before")
    @classmethod
    def coerce_period(cls, v: Any) -> Any:
        return v if isinstance(v, (dict, TimeOffPeriod)) else {}

    @property
    def owner_id(self) -> Optional[str]:
        return self.user_id or self.requester_user_id

    @property
    def is_approved(self) -> bool:
        return self.status == APPROVED_STATUS

    @property
    def is_full_day(self) -> bool:
        """Full day unless flagged half-day or given in hours."""
        period = self.time_off_period
        return not period.half_day and (
            self.time_unit == DAYS_TIME_UNIT or not period.half_day_hours
        )


def extract_time_off_requests(payload: Any) -> List[Any]:
    """Get the list of requests from a time-off response payload.

    The endpoint has returned a bare list, ``{"requests": [...]}`` and
    ``{"timeOffRequests": [...]}``; anything else yields no requests.
    """
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ("requests", "timeOffRequests"):
            if isinstance(payload.get(key), list):
                return payload[key]
    return []


def build_holiday_map(
    holidays_by_user: Mapping[str, Iterable[Union[HolidayRecord, Mapping[str, Any]]]],
    time_zone: Optional[dt.tzinfo] = None,
) -> HolidayMap:
    """Expand holiday spans into a per-user, per-date map.

    Args:
        holidays_by_user: user_id -> raw holiday records
        time_zone: Report time zone used for date keys

    Returns:
        user_id -> date_key -> Holiday

    Example:
        >>> holidays = build_holiday_map({"u1": [{
        ...     "name": "Winter break",
        ...     "datePeriod": {"startDate": "2025-12-24", "endDate": "2025-12-26"},
        ... }]})
        >>> sorted(holidays["u1"])
        ['2025-12-24', '2025-12-25', '2025-12-26']
    """
    result: HolidayMap = {}

    for user_id, raw_records in holidays_by_user.items():
        user_map = result.setdefault(user_id, {})
        for raw in raw_records or []:
            try:
                record = (
                    raw if isinstance(raw, HolidayRecord) else HolidayRecord.model_validate(raw)
                )
            except ValidationError as e:
                logger.warning(f"Skipping malformed holiday for {user_id}: {e}")
                continue

            start_key = extract_date_key(record.date_period.start_date, time_zone)
            if start_key is None:
                logger.warning(
                    f"Skipping holiday {record.name!r} for {user_id}: no start date"
                )
                continue
            end_key = extract_date_key(record.date_period.end_date, time_zone)

            holiday = Holiday(name=record.name, project_id=record.project_id)
            for date_key in expand_date_span(start_key, end_key):
                user_map.setdefault(date_key, holiday)

    logger.debug(
        f"Expanded holidays for {len(result)} users into "
        f"{sum(len(m) for m in result.values())} user-dates"
    )
    return result


def build_time_off_map(
    requests: Iterable[Union[TimeOffRequest, Mapping[str, Any]]],
    time_zone: Optional[dt.tzinfo] = None,
) -> TimeOffMap:
    """Expand approved time-off requests into a per-user, per-date map.

    Partial-day requests keep their ``halfDayHours`` as the hours off.

    Args:
        requests: Raw time-off requests (see extract_time_off_requests)
        time_zone: Report time zone used for date keys

    Returns:
        user_id -> date_key -> TimeOffInfo

    Example:
        >>> time_off = build_time_off_map([{
        ...     "userId": "u1",
        ...     "status": {"statusType": "APPROVED"},
        ...     "timeOffPeriod": {"period": {"start": "2025-01-13T00:00:00Z",
        ...                                  "end": "2025-01-13T00:00:00Z"}},
        ... }])
        >>> list(time_off["u1"])
        ['2025-01-13']
    """
    result: TimeOffMap = {}
    skipped = 0

    for raw in requests or []:
        try:
            request = (
                raw if isinstance(raw, TimeOffRequest) else TimeOffRequest.model_validate(raw)
            )
        except ValidationError as e:
            logger.warning(f"Skipping malformed time-off request: {e}")
            continue

        if not request.is_approved or not request.owner_id:
            skipped += 1
            continue

        period = request.time_off_period
        start_key = extract_date_key(period.start_value, time_zone)
        if start_key is None:
            logger.warning(f"Skipping time-off for {request.owner_id}: no start date")
            continue
        end_key = extract_date_key(period.end_value, time_zone)

        is_full_day = request.is_full_day
        info = TimeOffInfo(
            is_full_day=is_full_day,
            hours=Decimal("0") if is_full_day else period.half_day_hours,
        )

        user_map = result.setdefault(request.owner_id, {})
        for date_key in expand_date_span(start_key, end_key):
            user_map.setdefault(date_key, info)

    logger.debug(
        f"Expanded time-off for {len(result)} users "
        f"({skipped} requests not approved or without user)"
    )
    return result
