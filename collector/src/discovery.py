"""
mDNS discovery of the P1 meter on the local network.

The meter announces itself as a ``_hwenergy._tcp.local.`` service.  Discovery
is split into three layers so the decision logic can be tested without real
multicast traffic:

- **advance(state, event)**: pure state transition over discovery events.
  A resolved service with at least one address finishes the search with the
  first address; every "search started" event counts as one attempt and the
  search is exhausted after ``MAX_SEARCH_ATTEMPTS``; anything else is ignored.
- **locate(source)**: consumes events one at a time from any event source,
  stops pulling as soon as the search is finished, and always closes the
  source before returning.
- **ZeroconfEventSource**: produces those events from python-zeroconf's
  AsyncServiceBrowser.  A SearchStarted event marks the start of every
  search round (one per ``search_interval_s``).

CHANGELOG:
- 2026-10-16: Treat resolved events without addresses as ignorable (STORY-008)
- 2026-10-13: Initial creation (STORY-003)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Coroutine
from dataclasses import dataclass, replace
from typing import Any, Protocol

from zeroconf import IPVersion, ServiceStateChange, Zeroconf
from zeroconf.asyncio import AsyncServiceBrowser, AsyncServiceInfo, AsyncZeroconf

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SERVICE_TYPE = "_hwenergy._tcp.local."
"""DNS-SD service type announced by HomeWizard Energy devices."""

MAX_SEARCH_ATTEMPTS: int = 5
"""Number of search rounds after which discovery gives up."""

DEFAULT_SEARCH_INTERVAL_S: float = 2.0
"""Length of one search round in seconds."""

RESOLVE_TIMEOUT_MS: int = 3000
"""Timeout for resolving the addresses of a single announced service."""


class DiscoveryExhausted(Exception):
    """Raised when no meter could be located on the local network."""


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SearchStarted:
    """A new search round started.

    Attributes:
        attempt: 1-based round number as counted by the event source.
    """

    attempt: int = 0


@dataclass(frozen=True, slots=True)
class ServiceResolved:
    """A service instance was resolved to one or more addresses."""

    fullname: str
    addresses: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ServiceFound:
    """A service instance was announced but not resolved yet."""

    fullname: str


@dataclass(frozen=True, slots=True)
class ServiceRemoved:
    """A service instance went away."""

    fullname: str


DiscoveryEvent = SearchStarted | ServiceResolved | ServiceFound | ServiceRemoved


class DiscoveryEventSource(Protocol):
    """Anything that yields discovery events and can be stopped."""

    def __aiter__(self) -> AsyncIterator[DiscoveryEvent]: ...

    async def close(self) -> None: ...


# ---------------------------------------------------------------------------
# Pure search state machine
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SearchState:
    """Progress of a discovery run.

    Attributes:
        attempts: Number of search rounds seen so far.
        address: Selected meter address, once resolved.
        exhausted: True once ``attempts`` reached the configured maximum.
    """

    attempts: int = 0
    address: str | None = None
    exhausted: bool = False

    @property
    def finished(self) -> bool:
        return self.address is not None or self.exhausted


def advance(
    state: SearchState,
    event: DiscoveryEvent,
    *,
    max_attempts: int = MAX_SEARCH_ATTEMPTS,
) -> SearchState:
    """Return the search state after observing *event*.

    A finished state absorbs every further event unchanged.
    """
    if state.finished:
        return state

    if isinstance(event, ServiceResolved) and event.addresses:
        return replace(state, address=event.addresses[0])

    if isinstance(event, SearchStarted):
        attempts = state.attempts + 1
        return replace(state, attempts=attempts, exhausted=attempts >= max_attempts)

    return state


async def locate(
    source: DiscoveryEventSource,
    *,
    max_attempts: int = MAX_SEARCH_ATTEMPTS,
) -> str:
    """Consume discovery events until a meter address is found.

    The source is closed before returning, on success and on failure.

    Args:
        source: Event source to read from.
        max_attempts: Search rounds to wait before giving up.

    Returns:
        The first address of the first resolved service.

    Raises:
        DiscoveryExhausted: If the attempts ran out, or the source ended
            before any service was resolved.
    """
    state = SearchState()
    try:
        async for event in source:
            _log_event(event, state)
            state = advance(state, event, max_attempts=max_attempts)
            if state.finished:
                break
    finally:
        await source.close()

    if state.address is not None:
        return state.address
    if state.exhausted:
        raise DiscoveryExhausted(
            f"no meter found after {state.attempts} search attempts"
        )
    raise DiscoveryExhausted("discovery event source closed before a meter was found")


def _log_event(event: DiscoveryEvent, state: SearchState) -> None:
    if isinstance(event, ServiceResolved):
        logger.debug(
            "Resolved a new service: %s addresses=%s", event.fullname, event.addresses
        )
    elif isinstance(event, SearchStarted):
        logger.debug("Search started, try: %d", state.attempts + 1)
    else:
        logger.debug("Received other event: %r", event)


# ---------------------------------------------------------------------------
# python-zeroconf event source
# ---------------------------------------------------------------------------


class ZeroconfEventSource:
    """Discovery events from an mDNS AsyncServiceBrowser.

    Args:
        service_type: DNS-SD service type to browse for.
        search_interval_s: Length of one search round in seconds.
        resolve_timeout_ms: Timeout for resolving one announced service.

    Usage::

        async with ZeroconfEventSource(SERVICE_TYPE) as source:
            address = await locate(source)
    """

    def __init__(
        self,
        service_type: str = SERVICE_TYPE,
        *,
        search_interval_s: float = DEFAULT_SEARCH_INTERVAL_S,
        resolve_timeout_ms: int = RESOLVE_TIMEOUT_MS,
    ) -> None:
        self._service_type = service_type
        self._search_interval_s = search_interval_s
        self._resolve_timeout_ms = resolve_timeout_ms
        self._queue: asyncio.Queue[DiscoveryEvent | None] = asyncio.Queue()
        self._tasks: set[asyncio.Task[None]] = set()
        self._aiozc: AsyncZeroconf | None = None
        self._browser: AsyncServiceBrowser | None = None
        self._closed = False
        self._drained = False

    async def start(self) -> None:
        """Start browsing for the service type.

        Raises:
            OSError: If the multicast socket could not be opened.
        """
        self._aiozc = AsyncZeroconf(ip_version=IPVersion.V4Only)
        self._browser = AsyncServiceBrowser(
            self._aiozc.zeroconf,
            [self._service_type],
            handlers=[self._on_service_state_change],
        )
        self._spawn(self._search_rounds())
        logger.info("Browsing for %s", self._service_type)

    async def close(self) -> None:
        """Stop browsing, release the multicast sockets, end the event stream."""
        if self._closed:
            return
        self._closed = True
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if self._browser is not None:
            await self._browser.async_cancel()
        if self._aiozc is not None:
            await self._aiozc.async_close()
        self._queue.put_nowait(None)

    async def __aenter__(self) -> ZeroconfEventSource:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.close()

    def __aiter__(self) -> ZeroconfEventSource:
        return self

    async def __anext__(self) -> DiscoveryEvent:
        if self._drained:
            raise StopAsyncIteration
        event = await self._queue.get()
        if event is None:
            self._drained = True
            raise StopAsyncIteration
        return event

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _emit(self, event: DiscoveryEvent) -> None:
        if not self._closed:
            self._queue.put_nowait(event)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _search_rounds(self) -> None:
        attempt = 0
        while True:
            attempt += 1
            self._emit(SearchStarted(attempt))
            await asyncio.sleep(self._search_interval_s)

    def _on_service_state_change(
        self,
        zeroconf: Zeroconf,
        service_type: str,
        name: str,
        state_change: ServiceStateChange,
    ) -> None:
        if self._closed:
            return
        if state_change is ServiceStateChange.Removed:
            self._emit(ServiceRemoved(name))
            return
        self._emit(ServiceFound(name))
        self._spawn(self._resolve(zeroconf, service_type, name))

    async def _resolve(self, zeroconf: Zeroconf, service_type: str, name: str) -> None:
        info = AsyncServiceInfo(service_type, name)
        if not await info.async_request(zeroconf, self._resolve_timeout_ms):
            logger.debug(
                "Could not resolve %s within %d ms", name, self._resolve_timeout_ms
            )
            return
        self._emit(ServiceResolved(name, tuple(info.parsed_addresses())))


async def discover_meter(
    *,
    service_type: str = SERVICE_TYPE,
    max_attempts: int = MAX_SEARCH_ATTEMPTS,
    search_interval_s: float = DEFAULT_SEARCH_INTERVAL_S,
) -> str:
    """Locate the meter via mDNS and return its address.

    Raises:
        DiscoveryExhausted: If no meter was found, or multicast discovery
            could not be started at all.
    """
    source = ZeroconfEventSource(service_type, search_interval_s=search_interval_s)
    try:
        await source.start()
    except OSError as exc:
        await source.close()
        raise DiscoveryExhausted(f"mDNS discovery unavailable: {exc}") from exc
    return await locate(source, max_attempts=max_attempts)
