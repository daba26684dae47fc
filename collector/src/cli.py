"""
Command-line interface for the collector daemon.

Flags override the matching environment settings:

- ``--ip`` / ``-i``: meter address; skips mDNS discovery (METER_HOST).
- ``--output`` / ``-o``: measurement log path (CSV_PATH).
- ``--log-level``: root log level (LOG_LEVEL).

CHANGELOG:
- 2026-10-14: Initial creation (STORY-007)

TODO:
- None
"""

from __future__ import annotations

import argparse
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collector.src.config import CollectorSettings

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the ``p1-collector`` command."""
    parser = argparse.ArgumentParser(
        prog="p1-collector",
        description="Log P1 energy meter readings to a CSV file",
    )

    parser.add_argument(
        "-i",
        "--ip",
        help="IP address of the energy meter. If not given, the meter is "
        "located via mDNS discovery",
    )

    parser.add_argument(
        "-o",
        "--output",
        help="Path of the measurement CSV file",
    )

    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=_LOG_LEVELS,
        help="Log level (default INFO)",
    )

    return parser


def apply_overrides(
    settings: CollectorSettings, args: argparse.Namespace
) -> CollectorSettings:
    """Return a copy of *settings* with the CLI flags that were given applied."""
    updates: dict[str, object] = {}
    if args.ip:
        updates["meter_host"] = args.ip.strip()
    if args.output:
        updates["csv_path"] = args.output
    if args.log_level:
        updates["log_level"] = args.log_level
    return settings.model_copy(update=updates)
