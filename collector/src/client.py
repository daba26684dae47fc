"""
HTTP client for the P1 meter local API.

Issues a single ``GET http://{address}/api/v1/data`` with bounded connect,
read, and write timeouts and returns the raw response body.  Every transport
problem (connection refused, timeout, name resolution) and every non-2xx
status is reported uniformly as FetchError.  There are no retries here; the
poll loop owns the retry cadence.

Operations:
- fetch(address): GET the measurement document, return its body.
- url_for(address): Build the measurement URL for an address.

CHANGELOG:
- 2026-10-13: Initial creation (STORY-004)

TODO:
- None
"""

from __future__ import annotations

import logging

import httpx

logger = logging.getLogger(__name__)

DATA_PATH = "/api/v1/data"

DEFAULT_TIMEOUT_S: float = 5.0
"""Connect/read/write timeout per request in seconds."""


class FetchError(Exception):
    """Raised when the meter could not be reached or answered with an error."""


def url_for(address: str) -> str:
    """Return the measurement URL for a meter *address*."""
    return f"http://{address}{DATA_PATH}"


class TelemetryClient:
    """Fetches raw measurement documents from a P1 meter.

    Args:
        timeout_s: Timeout in seconds applied to connect, read, write and
            pool acquisition (default 5).

    Usage::

        client = TelemetryClient()
        body = await client.fetch("192.168.1.50")
    """

    def __init__(self, timeout_s: float = DEFAULT_TIMEOUT_S) -> None:
        self._timeout = httpx.Timeout(timeout_s)

    @property
    def timeout(self) -> httpx.Timeout:
        """The httpx timeout configuration used for every request."""
        return self._timeout

    async def fetch(self, address: str) -> bytes:
        """GET the measurement document from the meter at *address*.

        Args:
            address: Numeric network address (or host name) of the meter.

        Returns:
            The raw response body.

        Raises:
            FetchError: On any network error or non-success status.
        """
        url = url_for(address)
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise FetchError(
                f"meter at {address} answered HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise FetchError(f"could not reach meter at {url}: {exc!r}") from exc

        logger.debug("Fetched %d bytes from %s", len(response.content), url)
        return response.content
