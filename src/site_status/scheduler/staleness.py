"""
Staleness-aware scheduling of client-triggered route probes.

A route is probed again only when the server has no record of it, or its
last record is older than the staleness window, and this client session has
not attempted it within that window either. Probes run one at a time with a
pacing delay between them.
"""

import asyncio
import inspect
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Tuple, Union

from site_status.contracts import ProbeTrigger
from site_status.domain import RouteStatus, StalenessMarker

# Module logger
logger = logging.getLogger(__name__)

RefreshCallback = Callable[[], Union[None, Awaitable[None]]]


def _epoch_ms() -> int:
    return int(time.time() * 1000)


class SessionMarkers:
    """
    Session-local attempt markers with time-to-live semantics.

    Markers only suppress duplicate probes from this session; they are never
    authoritative about the state of a route.
    """

    def __init__(self, ttl: timedelta, clock: Callable[[], int] = _epoch_ms) -> None:
        """
        Args:
            ttl: How long a marker suppresses a new attempt.
            clock: Source of the current time in epoch milliseconds.
        """
        self._ttl_ms: int = int(ttl.total_seconds() * 1000)
        self._clock = clock
        self._markers: Dict[Tuple[str, str], StalenessMarker] = {}

    def mark(self, project_slug: str, route_path: str) -> StalenessMarker:
        marker = StalenessMarker(
            project_slug=project_slug,
            route_path=route_path,
            attempted_at_epoch_ms=self._clock(),
        )
        self._markers[(project_slug, route_path)] = marker
        return marker

    def attempted_recently(
        self, project_slug: str, route_path: str, now_ms: Optional[int] = None
    ) -> bool:
        now_ms = self._clock() if now_ms is None else now_ms
        key = (project_slug, route_path)
        marker = self._markers.get(key)
        if marker is None:
            return False
        if now_ms - marker.attempted_at_epoch_ms >= self._ttl_ms:
            # Expired markers are dropped lazily
            del self._markers[key]
            return False
        return True

    def __len__(self) -> int:
        return len(self._markers)


def due_routes(
    routes: Iterable[RouteStatus],
    now: datetime,
    markers: SessionMarkers,
    stale_window: timedelta,
) -> List[RouteStatus]:
    """
    Selects the routes that should be probed again.

    Args:
        routes: Routes with their server-known last check time.
        now: The current, timezone-aware time.
        markers: This session's attempt markers.
        stale_window: Minimum age of a last check before a route is due.

    Returns:
        List[RouteStatus]: The due routes, in input order.
    """
    now_ms = int(now.timestamp() * 1000)
    selected = []
    for route in routes:
        if markers.attempted_recently(route.project_slug, route.path, now_ms):
            continue
        if route.last_checked is None or now - route.last_checked >= stale_window:
            selected.append(route)
    return selected


class StalenessScheduler:
    """
    Runs due probes of a batch of routes, one at a time.

    A refresh callback is invoked once after the batch if at least one probe
    produced a durable log row; skipped and ignored outcomes never trigger it.
    """

    def __init__(
        self,
        trigger: ProbeTrigger,
        markers: SessionMarkers,
        stale_window: timedelta,
        request_delay: timedelta,
        reduced_frequency_factor: float = 1.0,
        constrained: bool = False,
        on_refresh: Optional[RefreshCallback] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        """
        Args:
            trigger: Transport used to list routes and fire probes.
            markers: This session's attempt markers.
            stale_window: Minimum age of a last check before a route is due.
            request_delay: Pause between two probes.
            reduced_frequency_factor: Multiplier of the pause on constrained clients.
            constrained: Whether this client is bandwidth or CPU constrained.
            on_refresh: Called after a batch that wrote at least one log row.
            sleep: Coroutine used for the pacing delay.
            now: Source of the current, timezone-aware time.
        """
        self._trigger: ProbeTrigger = trigger
        self._markers: SessionMarkers = markers
        self._stale_window: timedelta = stale_window
        self._request_delay: timedelta = request_delay
        self._reduced_frequency_factor: float = reduced_frequency_factor
        self._constrained: bool = constrained
        self._on_refresh = on_refresh
        self._sleep = sleep
        self._now = now
        self._running: bool = False

    def pacing_delay(self) -> float:
        """
        Returns the pause between two probes, in seconds.
        """
        delay = self._request_delay.total_seconds()
        if self._constrained:
            delay *= self._reduced_frequency_factor
        return delay

    async def run(self, routes: Iterable[RouteStatus]) -> bool:
        """
        Probes the due routes of a batch.

        A batch started while another one is still running is ignored.

        Args:
            routes: Routes with their server-known last check time.

        Returns:
            bool: True if at least one probe wrote a log row.
        """
        if self._running:
            logger.debug("A probe batch is already running; ignoring trigger.")
            return False

        due = due_routes(routes, self._now(), self._markers, self._stale_window)
        if not due:
            logger.debug("No stale routes.")
            return False

        self._running = True
        any_logged = False
        try:
            logger.info(f"Checking {len(due)} stale routes.")
            for route in due:
                # Marked before the call so that a concurrent trigger skips the in-flight probe
                self._markers.mark(route.project_slug, route.path)
                try:
                    if await self._trigger.probe(route.project_slug, route.path):
                        any_logged = True
                except Exception as e:
                    logger.warning(
                        f"Probe of {route.project_slug}{route.path} failed with error: {e}"
                    )
                await self._sleep(self.pacing_delay())
        finally:
            self._running = False

        if any_logged and self._on_refresh is not None:
            result = self._on_refresh()
            if inspect.isawaitable(result):
                await result
        return any_logged

    async def run_for_project(self, project_slug: str) -> bool:
        """
        Lists a project's routes from the server and probes the due ones.
        """
        routes = await self._trigger.list_routes(project_slug)
        return await self.run(routes)
