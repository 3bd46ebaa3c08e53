"""
HTTP implementation of the ProbeTrigger interface.

Talks to the dashboard server: GET /status/{site} for the routes and their
last check time, POST /report for a single probe.
"""

import logging
from datetime import datetime
from typing import List, Optional
from urllib.parse import quote

import aiohttp

from site_status.contracts import ProbeTrigger
from site_status.domain import RouteStatus

# Module logger
logger = logging.getLogger(__name__)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    # fromisoformat does not accept a trailing 'Z' before Python 3.11
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class HttpProbeTrigger(ProbeTrigger):
    """
    Fires probes through the dashboard server's HTTP API.
    """

    def __init__(self, session: aiohttp.ClientSession, server_url: str) -> None:
        """
        Args:
            session: An active aiohttp.ClientSession.
            server_url: Base URL of the dashboard server.
        """
        self._session: aiohttp.ClientSession = session
        self._server_url: str = server_url.rstrip("/")

    async def list_routes(self, project_slug: str) -> List[RouteStatus]:
        url = f"{self._server_url}/status/{quote(project_slug, safe='')}"
        async with self._session.get(url) as response:
            response.raise_for_status()
            data = await response.json()

        return [
            RouteStatus(
                project_slug=entry["projectSlug"],
                path=entry["path"],
                last_checked=_parse_timestamp(entry.get("lastChecked")),
            )
            for entry in data.get("routes", [])
        ]

    async def probe(self, project_slug: str, route_path: str) -> bool:
        url = f"{self._server_url}/report"
        async with self._session.post(
            url, params={"project": project_slug, "route": route_path}
        ) as response:
            data = await response.json()

        result = data.get("result") or {}
        logger.debug(
            f"Probe of {project_slug}{route_path}: HTTP {response.status}, "
            f"status code {result.get('statusCode')}"
        )
        return result.get("logged") is True
