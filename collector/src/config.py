"""
Collector daemon configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
Every value has a default, so the daemon starts with no configuration at all
and falls back to mDNS discovery of the meter.  CLI flags override the
environment (see cli.py).

CHANGELOG:
- 2026-10-15: Add CSV_TIMESTAMP_HEADER (STORY-009)
- 2026-10-12: Initial creation (STORY-001)

TODO:
- None
"""

import logging

from pydantic import field_validator
from pydantic_settings import BaseSettings

from collector.src.discovery import (
    DEFAULT_SEARCH_INTERVAL_S,
    MAX_SEARCH_ATTEMPTS,
    SERVICE_TYPE,
)


class CollectorSettings(BaseSettings):
    """Collector daemon configuration for the P1 meter logger.

    Attributes:
        meter_host: Meter IP address on the local LAN. When empty the meter
            is located via mDNS discovery at startup.
        csv_path: Path of the append-only measurement log.
        success_interval_s: Seconds to wait after a successful reading
            (default 300, the meter's reporting cadence).
        failure_interval_s: Seconds to wait after a failed fetch or parse
            (default 5).
        http_timeout_s: Connect/read/write timeout for the meter API.
        discovery_service_type: DNS-SD service type announced by the meter.
        discovery_max_attempts: Search rounds before discovery gives up.
        discovery_search_interval_s: Length of one search round.
        csv_timestamp_header: Prefix the header of a new log file with a
            ``timestamp`` column.
        log_level: Root log level name.
    """

    meter_host: str | None = None
    csv_path: str = "measurement.csv"
    success_interval_s: float = 300.0
    failure_interval_s: float = 5.0
    http_timeout_s: float = 5.0
    discovery_service_type: str = SERVICE_TYPE
    discovery_max_attempts: int = MAX_SEARCH_ATTEMPTS
    discovery_search_interval_s: float = DEFAULT_SEARCH_INTERVAL_S
    csv_timestamp_header: bool = False
    log_level: str = "INFO"

    @field_validator("meter_host")
    @classmethod
    def blank_meter_host_means_discovery(cls, v: str | None) -> str | None:
        """Treat an empty METER_HOST as unset."""
        if v is None:
            return None
        return v.strip() or None

    @field_validator("success_interval_s", "failure_interval_s", "http_timeout_s")
    @classmethod
    def durations_must_be_positive(cls, v: float) -> float:
        """Reject zero or negative durations (the loop must never busy-spin)."""
        if v <= 0:
            raise ValueError("intervals and timeouts must be > 0 seconds")
        return v

    @field_validator("discovery_search_interval_s")
    @classmethod
    def search_interval_must_be_positive(cls, v: float) -> float:
        """Validate the discovery round length."""
        if v <= 0:
            raise ValueError("DISCOVERY_SEARCH_INTERVAL_S must be > 0")
        return v

    @field_validator("discovery_max_attempts")
    @classmethod
    def max_attempts_must_be_positive(cls, v: int) -> int:
        """Validate discovery attempts is at least 1."""
        if v < 1:
            raise ValueError("DISCOVERY_MAX_ATTEMPTS must be >= 1")
        return v

    @field_validator("discovery_service_type")
    @classmethod
    def service_type_must_be_fully_qualified(cls, v: str) -> str:
        """mDNS service types end in ``.local.``."""
        if not v.endswith(".local."):
            raise ValueError(
                "DISCOVERY_SERVICE_TYPE must end with '.local.' "
                f"(got: '{v}')"
            )
        return v

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        """Validate log level against the stdlib level names."""
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"LOG_LEVEL must be a logging level name (got: '{v}')")
        return level

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}
