"""
Route health-probe engine.

For a project, every route is checked one after the other, in list order.
Templated routes are never requested. Each concrete route gets a single GET
with its own timeout; the outcome is classified and, when it is meaningful
uptime history, written to the status log.
"""

import asyncio
import logging
import time
from typing import Callable, List, NamedTuple, Optional, Tuple

import aiohttp

from site_status.contracts import StatusLogStore
from site_status.domain import MonitoredProject, ProbeOutcome, RouteKind, classify_route
from site_status.errors import PersistenceFailure

# Module logger
logger = logging.getLogger(__name__)

# Endpoint policy rather than availability: never written to the uptime history
NON_LOGGABLE_STATUS_CODES = frozenset({401, 403, 405})

SKIPPED_STATUS_CODE = -1
TRANSPORT_FAILURE_STATUS_CODE = 0
SKIPPED_ROUTE_ERROR = "dynamic route skipped (requires concrete params)"
REDIRECT_BUDGET_ERROR = "redirect budget exceeded"


class ProbeSettings(NamedTuple):
    """
    Attributes:
        user_agent: User-Agent header sent with every probe.
        timeout_seconds: Hard timeout of each probe.
        max_redirects: Maximum number of redirects a probe follows.
    """

    user_agent: str
    timeout_seconds: float
    max_redirects: int


def skipped_outcome(route_path: str) -> ProbeOutcome:
    """
    Builds the outcome of a templated route, which is never requested.

    Args:
        route_path: The templated route path.

    Returns:
        ProbeOutcome: A non-loggable outcome with status code -1.
    """
    return ProbeOutcome(
        route=route_path,
        status_code=SKIPPED_STATUS_CODE,
        response_time_ms=0,
        success=False,
        loggable=False,
        logged=False,
        error=SKIPPED_ROUTE_ERROR,
    )


class RouteProbeEngine:
    """
    Checks the routes of a project and records the outcomes.

    Persistence failures are isolated per route: they are reported in the
    route's outcome and never abort the remaining checks.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        store: StatusLogStore,
        settings: ProbeSettings,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            session: An active aiohttp.ClientSession to be used for requests.
            store: Where loggable outcomes are written.
            settings: User agent, timeout and redirect budget of each probe.
            clock: Monotonic clock in seconds used to measure response times.
        """
        self._session: aiohttp.ClientSession = session
        self._store: StatusLogStore = store
        self._settings: ProbeSettings = settings
        self._clock = clock

    async def probe_all(self, project: MonitoredProject) -> List[ProbeOutcome]:
        """
        Checks every route of a project, strictly sequentially.

        Args:
            project: The project to check.

        Returns:
            List[ProbeOutcome]: One outcome per configured route, in route order.
        """
        logger.info(f"Updating all statuses for site: {project.slug}")
        outcomes = []
        for route_path in project.routes:
            outcomes.append(await self.probe_route(project, route_path))
        return outcomes

    async def probe_route(self, project: MonitoredProject, route_path: str) -> ProbeOutcome:
        """
        Checks a single route of a project.

        Args:
            project: The project the route belongs to.
            route_path: The route path template.

        Returns:
            ProbeOutcome: The classified outcome, including whether it was logged.
        """
        if classify_route(route_path) is RouteKind.TEMPLATED:
            logger.info(f"Skipping dynamic route {route_path} for site {project.slug}")
            return skipped_outcome(route_path)

        target_url = project.url_for(route_path)
        max_redirects = self._settings.max_redirects
        start_time = self._clock()
        try:
            async with self._session.get(
                target_url,
                headers={"User-Agent": self._settings.user_agent},
                timeout=aiohttp.ClientTimeout(total=self._settings.timeout_seconds),
                # A zero limit means "unlimited" to aiohttp
                allow_redirects=max_redirects > 0,
                # aiohttp gives up as soon as the followed redirects reach its limit
                max_redirects=max_redirects + 1,
            ) as response:
                status_code: int = response.status
                redirected = bool(response.history) or 300 <= status_code < 400
                redirect_location: Optional[str] = response.headers.get("Location")
                if redirect_location is None and response.history:
                    redirect_location = str(response.url)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            response_time_ms = self._elapsed_ms(start_time)
            if isinstance(e, aiohttp.TooManyRedirects):
                error = f"{REDIRECT_BUDGET_ERROR} (more than {max_redirects} redirects)"
            else:
                error = str(e) or type(e).__name__
            logger.warning(f"Error checking {route_path} of {project.slug}: {error}")
            # Connection failures always count as downtime
            logged, log_error = await self._record(
                project.slug, route_path, TRANSPORT_FAILURE_STATUS_CODE, response_time_ms
            )
            return ProbeOutcome(
                route=route_path,
                status_code=TRANSPORT_FAILURE_STATUS_CODE,
                response_time_ms=response_time_ms,
                success=False,
                loggable=True,
                logged=logged,
                error=error if log_error is None else f"{error}; {log_error}",
            )

        response_time_ms = self._elapsed_ms(start_time)
        loggable = status_code not in NON_LOGGABLE_STATUS_CODES
        logged, log_error = False, None
        if loggable:
            logged, log_error = await self._record(
                project.slug, route_path, status_code, response_time_ms
            )

        logger.info(f"Checked {route_path}: {status_code} ({response_time_ms}ms)")
        return ProbeOutcome(
            route=route_path,
            status_code=status_code,
            response_time_ms=response_time_ms,
            success=200 <= status_code < 400,
            loggable=loggable,
            logged=logged,
            redirected=redirected,
            redirect_location=redirect_location,
            method_mismatch=status_code == 405,
            error=log_error,
        )

    def _elapsed_ms(self, start_time: float) -> int:
        return int((self._clock() - start_time) * 1000)

    async def _record(
        self, project_slug: str, route_path: str, status_code: int, response_time_ms: int
    ) -> Tuple[bool, Optional[str]]:
        """
        Writes one outcome to the status log.

        Returns:
            Tuple[bool, Optional[str]]: Whether the write succeeded and, if not, why.
        """
        try:
            await self._store.insert_status_log(
                project_slug, route_path, status_code, response_time_ms
            )
            return True, None
        except PersistenceFailure as e:
            logger.error(f"Failed to insert status log for {project_slug}{route_path}: {e}")
            return False, f"log write failed: {e}"
