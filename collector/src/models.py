"""
Pydantic models and value types for P1 meter telemetry.

Defines the MeasurementRecord model that represents a single snapshot of the
meter's cumulative counters as reported by ``/api/v1/data``, plus the
PollOutcome classification used by the poll loop to pick its next delay.

CHANGELOG:
- 2026-10-14: Add PERSIST_FAILURE outcome so write errors are surfaced (STORY-006)
- 2026-10-12: Initial creation (STORY-002)

TODO:
- None
"""

from __future__ import annotations

import enum

from pydantic import BaseModel, ConfigDict

DeviceAddress = str
"""Numeric network address of the meter, resolved once at startup."""


class MeasurementRecord(BaseModel):
    """A single decoded measurement snapshot from a P1 meter.

    All counters are cumulative over the meter's lifetime. The meter reports
    many more keys (power per phase, wifi strength, ...); those are ignored.
    Numeric fields are strict: JSON numbers are accepted, strings, booleans
    and nulls are rejected so a garbled document never yields a record.

    Attributes:
        total_power_import_t1_kwh: Imported energy, tariff 1 ("dal").
        total_power_import_t2_kwh: Imported energy, tariff 2 ("normaal").
        total_power_export_t1_kwh: Exported energy, tariff 1 ("terug dal").
        total_power_export_t2_kwh: Exported energy, tariff 2 ("terug normaal").
        total_gas_m3: Cumulative gas volume in cubic metres.
    """

    model_config = ConfigDict(frozen=True, strict=True)

    total_power_import_t1_kwh: float
    total_power_import_t2_kwh: float
    total_power_export_t1_kwh: float
    total_power_export_t2_kwh: float
    total_gas_m3: float

    def values(self) -> tuple[float, float, float, float, float]:
        """Return the five counters in log column order."""
        return (
            self.total_power_import_t1_kwh,
            self.total_power_import_t2_kwh,
            self.total_power_export_t1_kwh,
            self.total_power_export_t2_kwh,
            self.total_gas_m3,
        )


class PollOutcome(enum.Enum):
    """Classification of one poll iteration."""

    SUCCESS = "success"
    FETCH_FAILURE = "fetch_failure"
    PARSE_FAILURE = "parse_failure"
    PERSIST_FAILURE = "persist_failure"
