"""
Global pytest configuration and fixtures.
"""
import os
from typing import Any, Dict, Optional

import pytest

from otplus.config import CalculationConfig, reset_logging
from otplus.models import TimeEntry


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep OTPLUS_* variables and any local .env file out of the tests."""
    for key in list(os.environ):
        if key.startswith("OTPLUS_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)

    # Clear the global config to force reload with test values
    import otplus.config.settings
    otplus.config.settings._config = None

    yield

    otplus.config.settings._config = None
    reset_logging()


@pytest.fixture
def config() -> CalculationConfig:
    """Default calculation configuration."""
    return CalculationConfig()


@pytest.fixture
def make_entry():
    """Factory for TimeEntry objects from the API's camelCase shape.

    Example:
        entry = make_entry("e1", start="2025-01-13T09:00:00Z", hours=8)
    """

    def _make_entry(
        entry_id: str = "e1",
        start: Optional[str] = "2025-01-13T09:00:00Z",
        hours: Any = 8,
        user_id: str = "user-1",
        user_name: str = "Ada Lovelace",
        entry_type: Optional[str] = "REGULAR",
        billable: Optional[bool] = True,
        rate: Any = 50,
        **extra: Any,
    ) -> TimeEntry:
        data: Dict[str, Any] = {
            "id": entry_id,
            "userId": user_id,
            "userName": user_name,
            "type": entry_type,
            "billable": billable,
            "timeInterval": {"start": start, "durationHours": hours},
            "hourlyRate": {"amount": rate, "currency": "USD"} if rate is not None else None,
        }
        data.update(extra)
        return TimeEntry.model_validate(data)

    return _make_entry


# Pytest configuration for different test types
def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "scenario: mark test as an end-to-end worked example"
    )


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers based on location."""
    for item in items:
        # Add unit marker for tests in tests/unit/
        if "tests/unit/" in str(item.fspath):
            item.add_marker(pytest.mark.unit)

        if "scenario" in item.name.lower():
            item.add_marker(pytest.mark.scenario)
