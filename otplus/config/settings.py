"""
Configuration management for the overtime engine.
"""

import logging
from decimal import Decimal
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from otplus.utils.time_utils import resolve_time_zone

logger = logging.getLogger(__name__)

VALID_OVERTIME_BASES = ("daily", "weekly")
VALID_AMOUNT_DISPLAYS = ("earned", "cost", "profit")


class CalculationConfig(BaseSettings):
    """Feature flags and calculation parameters for one report.

    Every option can be set from the environment with the ``OTPLUS_``
    prefix (e.g. ``OTPLUS_DAILY_THRESHOLD=7.5``) or passed explicitly.
    Thresholds are not range-checked; negative values are the caller's
    responsibility.
    """

    # Capacity sources
    use_profile_capacity: bool = Field(default=True)
    use_profile_working_days: bool = Field(default=True)
    apply_holidays: bool = Field(default=True)
    apply_time_off: bool = Field(default=True)

    # Overtime policy
    overtime_basis: str = Field(default="daily")
    enable_tiered_ot: bool = Field(default=False)
    daily_threshold: Decimal = Field(default=Decimal("8"))
    weekly_threshold: Decimal = Field(default=Decimal("40"))
    tier2_threshold_hours: Decimal = Field(default=Decimal("0"))
    overtime_multiplier: Decimal = Field(default=Decimal("1.5"))
    tier2_multiplier: Decimal = Field(default=Decimal("2.0"))

    # Presentation
    amount_display: str = Field(default="earned")
    show_billable_breakdown: bool = Field(default=True)
    time_zone: Optional[str] = Field(default=None)

    model_config = SettingsConfigDict(
        env_prefix="OTPLUS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
    )

    @field_validator("overtime_basis")
    @classmethod
    def validate_overtime_basis(cls, v):
        """Normalize the overtime basis, falling back to daily."""
        normalized = str(v or "").strip().lower()
        if normalized not in VALID_OVERTIME_BASES:
            logger.warning(f"Unknown overtime basis '{v}', using 'daily'")
            return "daily"
        return normalized

    @field_validator("amount_display")
    @classmethod
    def validate_amount_display(cls, v):
        """Normalize the amount display mode, falling back to earned."""
        normalized = str(v or "").strip().lower()
        if normalized not in VALID_AMOUNT_DISPLAYS:
            logger.warning(f"Unknown amount display '{v}', using 'earned'")
            return "earned"
        return normalized

    @field_validator("time_zone")
    @classmethod
    def validate_time_zone(cls, v):
        """Drop unknown time zones so date keys fall back to UTC."""
        if not v:
            return None
        if resolve_time_zone(v) is None:
            logger.warning(f"Unknown time zone '{v}', using UTC")
            return None
        return v

    @property
    def is_weekly_basis(self) -> bool:
        return self.overtime_basis == "weekly"

    def get_time_zone(self):
        """Get the report time zone as tzinfo (None means UTC)."""
        return resolve_time_zone(self.time_zone)


def load_config(env_file: Optional[str] = None) -> CalculationConfig:
    """Load configuration from environment variables and .env file."""
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    return CalculationConfig()


# Global configuration instance
_config: Optional[CalculationConfig] = None


def get_config() -> CalculationConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config(env_file: Optional[str] = None) -> CalculationConfig:
    """Reload configuration (useful for testing)."""
    global _config
    _config = load_config(env_file)
    return _config
