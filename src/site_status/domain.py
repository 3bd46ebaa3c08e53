"""
Domain models for the site status dashboard.

This module defines the core data structures used throughout the application:
monitored projects and their routes, probe outcomes, persisted log entries,
redirect chain state and the client-side staleness markers.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, NamedTuple, Optional, Tuple

# Marker that identifies a placeholder segment in a route template, e.g. /api/items/[id]
PLACEHOLDER_MARKER = "["


class RouteKind(str, Enum):
    """
    Classification of a route path template.

    Inheriting from 'str' allows enum members to behave like strings,
    which keeps them JSON friendly.
    """

    CONCRETE = "concrete"
    TEMPLATED = "templated"


def classify_route(route_path: str) -> RouteKind:
    """
    Classifies a route path template as concrete or templated.

    Args:
        route_path: The route path as configured for a project.

    Returns:
        RouteKind: TEMPLATED if the path contains a placeholder segment, CONCRETE otherwise.
    """
    if PLACEHOLDER_MARKER in route_path:
        return RouteKind.TEMPLATED
    return RouteKind.CONCRETE


class MonitoredProject(NamedTuple):
    """
    A monitored target loaded once from static configuration.

    Attributes:
        slug: The unique identifier of the project.
        base_url: The "visit link" every route path is appended to.
        routes: The ordered route path templates of the project.
    """

    slug: str
    base_url: str
    routes: Tuple[str, ...]

    def url_for(self, route_path: str) -> str:
        """
        Joins the base URL and a route path with exactly one slash between them.

        Args:
            route_path: A route path starting with "/".

        Returns:
            str: The absolute URL of the route.
        """
        return f"{self.base_url.rstrip('/')}{route_path}"


class ProbeOutcome(NamedTuple):
    """
    The result of a single route check.

    Attributes:
        route: The route path that was checked.
        status_code: The HTTP status, 0 for a transport failure or -1 for a skipped route.
        response_time_ms: Elapsed wall time of the request in milliseconds.
        success: True if a 2xx/3xx response was received.
        redirected: True if the response was (or followed) a redirect.
        redirect_location: The Location header or final URL of a redirect, if any.
        method_mismatch: True if the endpoint answered 405.
        loggable: Whether the outcome is meaningful enough to persist.
        logged: Whether a log row was actually written.
        error: A human-readable error, if any.
    """

    route: str
    status_code: int
    response_time_ms: int
    success: bool
    loggable: bool
    logged: bool
    redirected: bool = False
    redirect_location: Optional[str] = None
    method_mismatch: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "route": self.route,
            "statusCode": self.status_code,
            "responseTimeMs": self.response_time_ms,
            "success": self.success,
            "redirected": self.redirected,
            "redirectLocation": self.redirect_location,
            "methodMismatch": self.method_mismatch,
            "loggable": self.loggable,
            "logged": self.logged,
            "error": self.error,
        }


class StatusLogEntry(NamedTuple):
    """
    A persisted row of the append-only 'status_logs' table.
    """

    project_slug: str
    route_path: str
    status_code: int
    response_time_ms: int
    timestamp: datetime


class RedirectChain(NamedTuple):
    """
    Transient state of one redirect-aware fetch.

    Attributes:
        current_url: The URL about to be dereferenced; always validated first.
        hop_count: Number of redirects followed so far, never above the configured budget.
    """

    current_url: str
    hop_count: int = 0

    def follow(self, next_url: str) -> "RedirectChain":
        return RedirectChain(current_url=next_url, hop_count=self.hop_count + 1)


class FetchedPage(NamedTuple):
    """
    The final, non-redirect response of a redirect-aware fetch.

    Attributes:
        url: The final (post-redirect) URL.
        status_code: The HTTP status of the final response.
        body: The decoded response body, or None if it was not read.
        hops: How many redirects were followed to reach this response.
    """

    url: str
    status_code: int
    body: Optional[str]
    hops: int


class PreviewResult(NamedTuple):
    """
    What the preview endpoint sends back to the caller.
    """

    status: int
    body: str
    content_type: str
    headers: Dict[str, str]


class RouteStatus(NamedTuple):
    """
    A route as seen by the client-side staleness scheduler.

    Attributes:
        project_slug: The project the route belongs to.
        path: The route path.
        last_checked: The server-known time of the most recent log row, if any.
    """

    project_slug: str
    path: str
    last_checked: Optional[datetime]


class StalenessMarker(NamedTuple):
    """
    A session-local record that a probe of a route was attempted.
    """

    project_slug: str
    route_path: str
    attempted_at_epoch_ms: int
