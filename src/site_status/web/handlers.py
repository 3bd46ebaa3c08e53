"""
Request handlers of the dashboard server.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from aiohttp import web

from site_status.domain import MonitoredProject
from site_status.errors import InputError, PersistenceFailure, SecurityRejection, SiteStatusError
from site_status.preview.documents import unavailable_document
from site_status.web.app_keys import CONTEXT_KEY, PROJECTS_KEY, SERVICES_KEY

# Module logger
logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _error(message: str, status: int, **extra: Any) -> web.Response:
    return web.json_response({"error": message, **extra}, status=status)


def _prefers_html(request: web.Request) -> bool:
    return "text/html" in request.headers.get("Accept", "")


def _project(request: web.Request, slug: str) -> Optional[MonitoredProject]:
    projects: Dict[str, MonitoredProject] = request.app[PROJECTS_KEY]
    return projects.get(slug)


async def preview(request: web.Request) -> web.Response:
    """
    GET /preview?url=...: serves a sanitized preview of an allow-listed page.

    Errors are answered as JSON, or as the "Preview unavailable" page when the
    client accepts HTML and a URL was given.

    Args:
        request: The incoming request.

    Returns:
        web.Response: The preview document, the 405 notice or an error.
    """
    raw_url = request.query.get("url")
    responder = request.app[SERVICES_KEY].responder
    try:
        result = await responder.respond(raw_url)
    except SiteStatusError as e:
        if isinstance(e, SecurityRejection):
            logger.warning(f"Preview rejected: {e.reason}")
        else:
            logger.info(f"Preview of {raw_url} failed: {e}")
        if raw_url and not isinstance(e, InputError) and _prefers_html(request):
            return web.Response(
                text=unavailable_document(raw_url),
                status=e.status,
                content_type="text/html",
            )
        return _error(str(e), e.status)
    except Exception as e:
        logger.exception(f"Unexpected error while previewing {raw_url}.")
        return _error("Failed to fetch preview", 500, details=type(e).__name__)

    return web.Response(
        text=result.body,
        status=result.status,
        content_type=result.content_type,
        headers=result.headers,
    )


async def update_status(request: web.Request) -> web.Response:
    """
    POST /updateStatus/{site}: probes every route of a project.

    Args:
        request: The incoming request.

    Returns:
        web.Response: One outcome per configured route, or 404 for an unknown site.
    """
    slug = request.match_info["site"]
    project = _project(request, slug)
    if project is None:
        return _error("Site not found in monitoring data", 404)

    outcomes = await request.app[SERVICES_KEY].engine.probe_all(project)
    return web.json_response(
        {
            "message": f"Updated {len(outcomes)} routes for {slug}",
            "site": slug,
            "timestamp": _now_iso(),
            "results": [outcome.to_dict() for outcome in outcomes],
        }
    )


async def report(request: web.Request) -> web.Response:
    """
    POST /report?project=...&route=...: probes a single configured route.

    Args:
        request: The incoming request.

    Returns:
        web.Response: The outcome, 400 for missing params or 404 for an unknown project or route.
    """
    slug = request.query.get("project")
    route_path = request.query.get("route")
    if not slug or not route_path:
        return _error("Missing project or route param", 400)

    project = _project(request, slug)
    if project is None:
        return _error("Project not found", 404)
    if route_path not in project.routes:
        return _error("Route not configured for project", 404)

    outcome = await request.app[SERVICES_KEY].engine.probe_route(project, route_path)
    return web.json_response(
        {
            "message": f"Checked {route_path} for {slug}",
            "site": slug,
            "timestamp": _now_iso(),
            "result": outcome.to_dict(),
        }
    )


async def route_status(request: web.Request) -> web.Response:
    """
    GET /status/{site}: the last check time of every route, in configured order.

    Args:
        request: The incoming request.

    Returns:
        web.Response: The routes with their lastChecked timestamp or null.
    """
    slug = request.match_info["site"]
    project = _project(request, slug)
    if project is None:
        return _error("Site not found in monitoring data", 404)

    latest = await request.app[SERVICES_KEY].store.latest_log_per_route(slug)
    routes = []
    for route_path in project.routes:
        last_checked = latest.get(route_path)
        routes.append(
            {
                "projectSlug": slug,
                "path": route_path,
                "lastChecked": last_checked.isoformat() if last_checked else None,
            }
        )
    return web.json_response({"site": slug, "routes": routes})


async def clear_status(request: web.Request) -> web.Response:
    """
    POST /status/clear?project=...: deletes every log row of a project.

    Refused with 403 in production.

    Args:
        request: The incoming request.

    Returns:
        web.Response: The number of deleted rows, or an error.
    """
    if request.app[CONTEXT_KEY].is_production:
        return _error("Forbidden in production", 403)

    slug = request.query.get("project")
    if not slug:
        return _error("Missing project param", 400)
    if _project(request, slug) is None:
        return _error("Project not found", 404)

    try:
        deleted = await request.app[SERVICES_KEY].store.delete_logs(slug)
    except PersistenceFailure as e:
        logger.error(f"Failed to clear logs of {slug}: {e}")
        return _error("Failed to clear logs", 500)

    return web.json_response({"message": f"Cleared logs for {slug}", "deleted": deleted})


async def health(request: web.Request) -> web.Response:
    """
    GET /health: liveness check.
    """
    return web.json_response({"ok": True, "ts": time.time()})
