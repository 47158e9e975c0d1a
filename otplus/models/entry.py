"""Time entry model for the overtime engine.

This module defines the TimeEntry model which represents a single,
already-normalized Clockify time entry handed to the engine by the API
collaborator, together with its nested interval and rate records.
"""

from decimal import Decimal
from typing import Any, List, Optional, Union

from pydantic import Field, field_validator

from otplus.models.base import ApiRecordModel
from otplus.utils.time_utils import parse_iso_duration, to_decimal


class TimeInterval(ApiRecordModel):
    """Start/end timestamps and duration of a time entry.

    Attributes:
        start: ISO-8601 start timestamp (may be missing or malformed)
        end: ISO-8601 end timestamp
        duration_hours: Duration in decimal hours; accepts numbers, numeric
            strings or an ISO-8601 duration (``PT8H30M``). Invalid values
            become None.
    """

    start: Optional[str] = None
    end: Optional[str] = None
    duration_hours: Optional[Decimal] = None

    @field_validator("start", "end", mode="before")
    @classmethod
    def coerce_timestamp(cls, v: Any) -> Optional[str]:
        """Keep only string timestamps; anything else is treated as missing."""
        return v if isinstance(v, str) else None

    @field_validator("duration_hours", mode="before")
    @classmethod
    def coerce_duration(cls, v: Any) -> Optional[Decimal]:
        """Normalize the duration into Decimal hours or None."""
        if isinstance(v, str) and v.strip().upper().startswith("PT"):
            return parse_iso_duration(v.strip().upper())
        return to_decimal(v)


class HourlyRate(ApiRecordModel):
    """Hourly rate with currency code."""

    amount: Optional[Decimal] = None
    currency: str = "USD"

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v: Any) -> Optional[Decimal]:
        return to_decimal(v)

    @field_validator("currency", mode="before")
    @classmethod
    def coerce_currency(cls, v: Any) -> str:
        return v if isinstance(v, str) and v else "USD"


class AmountTotal(ApiRecordModel):
    """A total amount of one type (EARNED, COST) from the Reports API."""

    type: Optional[str] = None
    value: Optional[Decimal] = None

    @field_validator("type", mode="before")
    @classmethod
    def coerce_type(cls, v: Any) -> Optional[str]:
        return str(v).upper() if v else None

    @field_validator("value", mode="before")
    @classmethod
    def coerce_value(cls, v: Any) -> Optional[Decimal]:
        return to_decimal(v)


class TimeEntry(ApiRecordModel):
    """Represents a single normalized time entry.

    Attributes:
        id: Entry identifier
        user_id: Owner of the entry
        user_name: Display name of the owner
        entry_type: Clockify entry type (``REGULAR``, ``BREAK``,
            ``HOLIDAY``, ``TIME_OFF`` or anything else)
        billable: Billable flag; None means billable
        time_interval: Start/end/duration
        hourly_rate: Hourly rate object or bare number
        earned_rate: Earned (billable) rate per hour
        cost_rate: Cost rate per hour
        amounts: Totals by type, used when no direct rate is present
        project_id, project_name, client_id, client_name, task_id,
        task_name, description: Pass-through dimensions

    Example:
        >>> entry = TimeEntry.model_validate({
        ...     "id": "e1",
        ...     "userId": "u1",
        ...     "userName": "Ada",
        ...     "type": "REGULAR",
        ...     "timeInterval": {
        ...         "start": "2025-01-13T09:00:00Z",
        ...         "end": "2025-01-13T17:00:00Z",
        ...         "duration": "PT8H",
        ...     },
        ...     "hourlyRate": {"amount": 50, "currency": "EUR"},
        ... })
        >>> entry.time_interval.duration_hours
        Decimal('8')
    """

    id: str = ""
    user_id: str = "unknown"
    user_name: str = ""
    entry_type: Optional[str] = Field(None, alias="type")
    billable: Optional[bool] = None
    time_interval: TimeInterval = Field(default_factory=TimeInterval)
    hourly_rate: Optional[Union[HourlyRate, Decimal]] = None
    earned_rate: Optional[Decimal] = None
    cost_rate: Optional[Decimal] = None
    amounts: List[AmountTotal] = Field(default_factory=list)
    description: Optional[str] = None
    project_id: Optional[str] = None
    project_name: Optional[str] = None
    client_id: Optional[str] = None
    client_name: Optional[str] = None
    task_id: Optional[str] = None
    task_name: Optional[str] = None

    @field_validator("id", "user_id", "user_name", mode="before")
    @classmethod
    def coerce_identifier(cls, v: Any, info) -> str:
        """Convert identifiers to strings, substituting defaults when missing."""
        if v is None or v == "":
            return "unknown" if info.field_name == "user_id" else ""
        return str(v)

    @field_validator("entry_type", mode="before")
    @classmethod
    def coerce_entry_type(cls, v: Any) -> Optional[str]:
        """Non-string types degrade to None (classified as work)."""
        return v if isinstance(v, str) else None

    @field_validator("billable", mode="before")
    @classmethod
    def coerce_billable(cls, v: Any) -> Optional[bool]:
        """Only an explicit False marks an entry as non-billable."""
        if v is False:
            return False
        return None if v is None else True

    @field_validator("time_interval", mode="before")
    @classmethod
    def coerce_interval(cls, v: Any) -> Any:
        """Accept the API's ``duration`` key and tolerate missing intervals."""
        if isinstance(v, dict) and "duration" in v and "durationHours" not in v:
            v = {**v, "durationHours": v["duration"]}
        if v is None or not isinstance(v, (dict, TimeInterval)):
            return {}
        return v

    @field_validator("hourly_rate", mode="before")
    @classmethod
    def coerce_hourly_rate(cls, v: Any) -> Any:
        """Accept an ``{amount, currency}`` object or a bare number."""
        if isinstance(v, (dict, HourlyRate)):
            return v
        return to_decimal(v)

    @field_validator("earned_rate", "cost_rate", mode="before")
    @classmethod
    def coerce_rate(cls, v: Any) -> Optional[Decimal]:
        """Accept a bare number or an ``{amount}`` object."""
        if isinstance(v, dict):
            v = v.get("amount")
        return to_decimal(v)

    @field_validator("amounts", mode="before")
    @classmethod
    def coerce_amounts(cls, v: Any) -> list:
        """Drop anything that is not a list of mappings."""
        if not isinstance(v, list):
            return []
        normalized = []
        for item in v:
            if isinstance(item, dict):
                normalized.append(
                    {
                        "type": item.get("type") or item.get("amountType"),
                        "value": item.get("value", item.get("amount")),
                    }
                )
            elif isinstance(item, AmountTotal):
                normalized.append(item)
        return normalized

    @field_validator(
        "description",
        "project_id",
        "project_name",
        "client_id",
        "client_name",
        "task_id",
        "task_name",
        mode="before",
    )
    @classmethod
    def coerce_dimension(cls, v: Any) -> Optional[str]:
        return None if v is None else str(v)
