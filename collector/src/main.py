"""
Collector daemon main loop for the P1 meter telemetry logger.

Startup resolves the meter address exactly once: either it is supplied via
``--ip`` / METER_HOST, or the meter is located via mDNS discovery.  If
discovery gives up, the daemon logs a fatal error and exits with status 3.

The resolved address is then handed to a single asyncio poll loop that runs
until the process is stopped:

1. fetch ``/api/v1/data`` from the meter (TelemetryClient),
2. decode the body into a MeasurementRecord (codec),
3. append a row to the CSV measurement log (MeasurementLog),
4. sleep for a delay chosen from the outcome: 300 s after a successful
   reading, 5 s after a failed fetch, parse or write.

The loop is resilient: fetch, parse and write errors are logged and turned
into the next delay; any unexpected exception in one iteration is logged and
retried on the short delay.  SIGTERM/SIGINT set a shared asyncio.Event that
wakes the loop from its sleep and stops it.

Structured JSON logging is used for all events.

CHANGELOG:
- 2026-10-16: Retry failed writes after 5 s, exit 3 on discovery failure (STORY-010)
- 2026-10-14: Surface log write failures as PERSIST_FAILURE (STORY-006)
- 2026-10-14: Add CLI overrides (STORY-007)
- 2026-10-13: Initial creation (STORY-005)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import signal
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from collector.src.client import FetchError, url_for
from collector.src.codec import ParseError, decode
from collector.src.discovery import DiscoveryExhausted, discover_meter
from collector.src.models import DeviceAddress, PollOutcome
from collector.src.writer import PersistError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from collector.src.client import TelemetryClient
    from collector.src.config import CollectorSettings
    from collector.src.writer import MeasurementLog

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_DISCOVERY_FAILED = 3
"""Distinct from argparse usage errors (2)."""

SUCCESS_INTERVAL_S: float = 300.0
"""Delay after a successful reading (the meter's reporting cadence)."""

FAILURE_INTERVAL_S: float = 5.0
"""Delay after a failed fetch, parse or write."""


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


def configure_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging for the collector daemon.

    Sets up the root logger with a JSON-formatted handler writing to stderr.

    Args:
        level: Root log level name.
    """

    class _JsonFormatter(logging.Formatter):
        """Minimal JSON log formatter."""

        def format(self, record: logging.LogRecord) -> str:
            log_entry = {
                "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
            }
            if record.exc_info and record.exc_info[1] is not None:
                log_entry["exception"] = self.formatException(record.exc_info)
            return json.dumps(log_entry)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------


def log_config_summary(settings: object) -> None:
    """Log a config summary at startup.

    Args:
        settings: A CollectorSettings instance (or any object with the same attrs).
    """
    logger.info(
        "Collector starting with config: "
        "meter_host=%s, csv_path=%s, "
        "success_interval_s=%s, failure_interval_s=%s, http_timeout_s=%s, "
        "discovery_service_type=%s, discovery_max_attempts=%s, "
        "csv_timestamp_header=%s",
        settings.meter_host or "<discover>",  # type: ignore[attr-defined]
        settings.csv_path,  # type: ignore[attr-defined]
        settings.success_interval_s,  # type: ignore[attr-defined]
        settings.failure_interval_s,  # type: ignore[attr-defined]
        settings.http_timeout_s,  # type: ignore[attr-defined]
        settings.discovery_service_type,  # type: ignore[attr-defined]
        settings.discovery_max_attempts,  # type: ignore[attr-defined]
        settings.csv_timestamp_header,  # type: ignore[attr-defined]
    )


async def resolve_address(settings: CollectorSettings) -> DeviceAddress:
    """Return the meter address, discovering it when none is configured.

    Raises:
        DiscoveryExhausted: If discovery could not find the meter.
    """
    if settings.meter_host:
        logger.info("Using configured meter address %s", settings.meter_host)
        return settings.meter_host

    address = await discover_meter(
        service_type=settings.discovery_service_type,
        max_attempts=settings.discovery_max_attempts,
        search_interval_s=settings.discovery_search_interval_s,
    )
    logger.info("Found meter at %s", address)
    return address


# ---------------------------------------------------------------------------
# Single-iteration functions (easily testable)
# ---------------------------------------------------------------------------


def select_delay(
    outcome: PollOutcome,
    *,
    success_interval_s: float = SUCCESS_INTERVAL_S,
    failure_interval_s: float = FAILURE_INTERVAL_S,
) -> float:
    """Return the delay before the next poll for *outcome*.

    Only a reading that reached the log earns the long delay; any failure,
    including a failed write, is retried on the short one.
    """
    if outcome is PollOutcome.SUCCESS:
        return success_interval_s
    return failure_interval_s


async def poll_once(
    *,
    client: TelemetryClient,
    log: MeasurementLog,
    address: DeviceAddress,
) -> PollOutcome:
    """Execute a single fetch-decode-append cycle.

    Fetch, parse and write errors are logged and reported through the
    returned outcome; they never propagate.

    Args:
        client: The meter HTTP client.
        log: The CSV measurement log.
        address: Resolved meter address.

    Returns:
        The PollOutcome of this iteration.
    """
    try:
        body = await client.fetch(address)
    except FetchError as exc:
        logger.error("Could not fetch results: %s", exc)
        return PollOutcome.FETCH_FAILURE

    try:
        record = decode(body)
    except ParseError as exc:
        logger.error("Could not parse data: %s", exc)
        return PollOutcome.PARSE_FAILURE

    logger.info(
        "dal=%s kWh, normaal=%s kWh, terug dal=%s kWh, "
        "terug normaal=%s kWh, gas=%s m3",
        *record.values(),
    )

    try:
        log.append(record)
    except PersistError:
        logger.error("Could not write measurement to log", exc_info=True)
        return PollOutcome.PERSIST_FAILURE

    logger.info("Data appended successfully")
    return PollOutcome.SUCCESS


# ---------------------------------------------------------------------------
# Loop runner
# ---------------------------------------------------------------------------


async def poll_loop(
    *,
    client: TelemetryClient,
    log: MeasurementLog,
    address: DeviceAddress,
    success_interval_s: float = SUCCESS_INTERVAL_S,
    failure_interval_s: float = FAILURE_INTERVAL_S,
    shutdown_event: asyncio.Event | None = None,
) -> None:
    """Run the poll loop until shutdown_event is set.

    Executes poll_once, then sleeps for the delay selected from its outcome,
    waking early if the shutdown event is set.  Without a shutdown event the
    loop runs until the task is cancelled.

    Args:
        client: The meter HTTP client.
        log: The CSV measurement log.
        address: Resolved meter address; never re-resolved.
        success_interval_s: Seconds to sleep after a successful reading.
        failure_interval_s: Seconds to sleep after any failed iteration.
        shutdown_event: Event to signal graceful shutdown.
    """
    if shutdown_event is None:
        shutdown_event = asyncio.Event()

    logger.info("Poll loop started (url=%s)", url_for(address))
    while not shutdown_event.is_set():
        try:
            outcome = await poll_once(client=client, log=log, address=address)
        except Exception:
            logger.error("Poll cycle error", exc_info=True)
            delay = failure_interval_s
        else:
            delay = select_delay(
                outcome,
                success_interval_s=success_interval_s,
                failure_interval_s=failure_interval_s,
            )
            logger.debug("Poll outcome %s, next poll in %ss", outcome.value, delay)

        # Use wait with timeout so we can check shutdown between sleeps
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(shutdown_event.wait(), timeout=delay)
    logger.info("Poll loop stopped")


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


async def async_main(argv: Sequence[str] | None = None) -> int:
    """Async entrypoint: parse flags, load config, locate meter, run loop.

    Returns:
        The process exit status.
    """
    from collector.src.cli import apply_overrides, build_parser
    from collector.src.client import TelemetryClient
    from collector.src.config import CollectorSettings
    from collector.src.writer import MeasurementLog

    args = build_parser().parse_args(argv)
    settings = apply_overrides(CollectorSettings(), args)

    configure_logging(settings.log_level)
    log_config_summary(settings)

    try:
        address = await resolve_address(settings)
    except DiscoveryExhausted as exc:
        logger.error(
            "Could not find P1 meter (%s), make sure to allow this program "
            "through your firewall",
            exc,
        )
        return EXIT_DISCOVERY_FAILED

    shutdown_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: _handle_signal(shutdown_event),
        )

    await poll_loop(
        client=TelemetryClient(timeout_s=settings.http_timeout_s),
        log=MeasurementLog(
            settings.csv_path, timestamp_header=settings.csv_timestamp_header
        ),
        address=address,
        success_interval_s=settings.success_interval_s,
        failure_interval_s=settings.failure_interval_s,
        shutdown_event=shutdown_event,
    )
    return EXIT_OK


def _handle_signal(shutdown_event: asyncio.Event) -> None:
    """Handle SIGTERM/SIGINT by setting the shutdown event.

    Args:
        shutdown_event: The event to set for graceful shutdown.
    """
    logger.info("Received shutdown signal, stopping poll loop")
    shutdown_event.set()


def main(argv: Sequence[str] | None = None) -> None:
    """Synchronous entrypoint for the collector daemon."""
    sys.exit(asyncio.run(async_main(argv)))


if __name__ == "__main__":
    main()
