"""
Append-only CSV measurement log.

Owns the measurement log file on disk.  The file is created lazily on the
first successful measurement; the header row is written exactly once, at
creation time, using exclusive-create semantics so that a concurrent creator
can never overwrite (or duplicate) an existing header.  After that the file
is only ever opened in append mode.

Operations:
- ensure_header(): create the file with its header if it does not exist.
- append(record, ts): ensure the header, then append one data row.

Write failures are raised as PersistError instead of being dropped, so the
poll loop can log them.

CHANGELOG:
- 2026-10-16: Remove the file again if its header could not be written (STORY-010)
- 2026-10-14: Raise PersistError on write failures instead of ignoring them (STORY-006)
- 2026-10-13: Initial creation (STORY-005)

TODO:
- None
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from collector.src.codec import format_row, header

if TYPE_CHECKING:
    from collector.src.models import MeasurementRecord

logger = logging.getLogger(__name__)


class PersistError(Exception):
    """Raised when the measurement log cannot be created or appended to."""


class MeasurementLog:
    """Append-only CSV log of measurement records.

    Args:
        path: Filesystem path of the CSV file. Accepts ``str`` or
              ``pathlib.Path``.
        timestamp_header: Prefix the header with a ``timestamp`` column.
              Only affects newly created files.

    Usage::

        log = MeasurementLog("measurement.csv")
        log.append(record)
    """

    def __init__(self, path: str | Path, *, timestamp_header: bool = False) -> None:
        self.path = Path(path)
        self._timestamp_header = timestamp_header

    def ensure_header(self) -> bool:
        """Create the log file with its header row if it does not exist yet.

        An existing file, empty or not, is left untouched.  If this call
        created the file but could not write the header, the file is removed
        again so the next attempt starts from scratch.

        Returns:
            ``True`` if this call created the file, ``False`` if it already
            existed.

        Raises:
            PersistError: If the file could not be created or written.
        """
        created = False
        try:
            with self.path.open("x", encoding="utf-8", newline="") as fh:
                created = True
                fh.write(header(include_timestamp=self._timestamp_header) + "\n")
        except FileExistsError:
            return False
        except OSError as exc:
            if created:
                self._discard_partial()
            raise PersistError(f"could not create {self.path}: {exc}") from exc
        logger.info("Created measurement log %s", self.path)
        return True

    def _discard_partial(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError:
            logger.warning(
                "Could not remove partially written %s", self.path, exc_info=True
            )

    def append(self, record: MeasurementRecord, ts: datetime | None = None) -> str:
        """Append one data row for *record*.

        Args:
            record: The decoded measurement.
            ts: Wall-clock moment of the reading. Defaults to now (local).

        Returns:
            The row that was written, without the trailing newline.

        Raises:
            PersistError: If the header or the row could not be written.
        """
        if ts is None:
            ts = datetime.now().astimezone()

        self.ensure_header()

        row = format_row(record, ts)
        try:
            with self.path.open("a", encoding="utf-8", newline="") as fh:
                fh.write(row + "\n")
        except OSError as exc:
            raise PersistError(f"could not append to {self.path}: {exc}") from exc
        return row
