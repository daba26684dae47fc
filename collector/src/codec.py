"""
Pure codec between raw meter responses, MeasurementRecord, and CSV rows.

``decode`` turns the body returned by ``/api/v1/data`` into a validated
MeasurementRecord.  Decoding is all-or-nothing: a missing key, a value of the
wrong type, or a malformed JSON document raises ParseError and no partial
record is ever produced.

``format_row`` renders a record as one line of the measurement log.  The
header row is kept as the legacy five-column header for compatibility with
existing log files, even though every data row starts with a timestamp.

This module is pure: no I/O, no clock.  The timestamp of a row is passed in
by the caller.

CHANGELOG:
- 2026-10-15: Add optional timestamp column in header (STORY-009)
- 2026-10-12: Initial creation (STORY-002)

TODO:
- None
"""

from __future__ import annotations

import logging
from datetime import datetime

from pydantic import ValidationError

from collector.src.models import MeasurementRecord

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Log format constants
# ---------------------------------------------------------------------------

COLUMNS: tuple[str, ...] = ("dal", "normaal", "terug dal", "terug normaal", "gas")
"""Column names of the five counters, in MeasurementRecord.values() order."""

TIMESTAMP_COLUMN = "timestamp"

HEADER = ",".join(COLUMNS)
"""Legacy header row (no timestamp column)."""


class ParseError(Exception):
    """Raised when a response body cannot be decoded into a MeasurementRecord."""


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def decode(body: bytes | str) -> MeasurementRecord:
    """Decode a raw ``/api/v1/data`` response body.

    Args:
        body: Raw JSON document as returned by the meter.

    Returns:
        The decoded, immutable MeasurementRecord.

    Raises:
        ParseError: If the document is malformed or any of the five
            counters is missing or not a number.
    """
    try:
        return MeasurementRecord.model_validate_json(body)
    except ValidationError as exc:
        logger.debug("Measurement document rejected: %s", exc)
        raise ParseError(
            f"invalid measurement document ({exc.error_count()} error(s))"
        ) from exc


def header(*, include_timestamp: bool = False) -> str:
    """Return the header row, optionally prefixed with a timestamp column."""
    if include_timestamp:
        return f"{TIMESTAMP_COLUMN},{HEADER}"
    return HEADER


def format_timestamp(ts: datetime) -> str:
    """Render *ts* as ISO-8601 with its UTC offset.

    Naive datetimes are interpreted as local time.
    """
    if ts.tzinfo is None:
        ts = ts.astimezone()
    return ts.isoformat()


def format_row(record: MeasurementRecord, ts: datetime) -> str:
    """Render one data row: timestamp followed by the five counters.

    Floats use ``repr`` so the written value round-trips exactly.
    """
    fields = [format_timestamp(ts)]
    fields.extend(repr(value) for value in record.values())
    return ",".join(fields)
