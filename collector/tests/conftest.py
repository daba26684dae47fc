"""
Shared test fixtures for collector daemon tests.

Provides environment variable fixtures for CollectorSettings configuration
tests and a sample meter document.  All collector env vars are cleaned before
each test to ensure isolation.

CHANGELOG:
- 2026-10-12: Initial creation (STORY-001)

TODO:
- None
"""

from __future__ import annotations

import json

import pytest

# All CollectorSettings environment variable names, used for cleanup.
_ALL_COLLECTOR_ENV_VARS = (
    "METER_HOST",
    "CSV_PATH",
    "SUCCESS_INTERVAL_S",
    "FAILURE_INTERVAL_S",
    "HTTP_TIMEOUT_S",
    "DISCOVERY_SERVICE_TYPE",
    "DISCOVERY_MAX_ATTEMPTS",
    "DISCOVERY_SEARCH_INTERVAL_S",
    "CSV_TIMESTAMP_HEADER",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_collector_env(monkeypatch: pytest.MonkeyPatch, tmp_path: str) -> None:
    """Remove all collector env vars and isolate from .env files before each test.

    Changes working directory to tmp_path so no .env file is accidentally
    loaded by Pydantic BaseSettings and no measurement.csv lands in the repo.
    """
    for var in _ALL_COLLECTOR_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def env_vars_full(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set every CollectorSettings environment variable.

    Returns the dict of env var names to values for assertion convenience.
    """
    env = {
        "METER_HOST": "192.168.1.50",
        "CSV_PATH": "/data/measurement.csv",
        "SUCCESS_INTERVAL_S": "120",
        "FAILURE_INTERVAL_S": "10",
        "HTTP_TIMEOUT_S": "3",
        "DISCOVERY_SERVICE_TYPE": "_p1meter._tcp.local.",
        "DISCOVERY_MAX_ATTEMPTS": "3",
        "DISCOVERY_SEARCH_INTERVAL_S": "1.5",
        "CSV_TIMESTAMP_HEADER": "true",
        "LOG_LEVEL": "debug",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env


@pytest.fixture()
def meter_document() -> dict[str, object]:
    """A realistic ``/api/v1/data`` document, including keys we ignore."""
    return {
        "wifi_ssid": "home",
        "wifi_strength": 84,
        "smr_version": 50,
        "meter_model": "ISKRA 2M550T-101",
        "total_power_import_t1_kwh": 100.1,
        "total_power_import_t2_kwh": 200.2,
        "total_power_export_t1_kwh": 10.0,
        "total_power_export_t2_kwh": 5.0,
        "active_power_w": 543,
        "total_gas_m3": 50.3,
        "gas_timestamp": 230101120000,
    }


@pytest.fixture()
def meter_body(meter_document: dict[str, object]) -> bytes:
    """The meter document serialized as a raw response body."""
    return json.dumps(meter_document).encode("utf-8")
