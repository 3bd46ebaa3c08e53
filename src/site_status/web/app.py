"""
Assembly of the dashboard server application.

The server owns one HTTP client session and one database pool. Both are
created when the application starts and closed when it shuts down.
"""

import logging
from typing import AsyncIterator, Iterable, Optional

import aiohttp
import asyncpg
from aiohttp import web

from site_status.config.db_config import initiate_db_pool
from site_status.config.http_config import get_http_session
from site_status.config.projects_config import build_allowed_hosts
from site_status.config.status_context import StatusContext
from site_status.contracts import StatusLogStore
from site_status.domain import MonitoredProject
from site_status.persistence.asyncpg_log_store import PostgresStatusLogStore
from site_status.preview.redirect_fetcher import FetchSettings, RedirectAwareFetcher
from site_status.preview.responder import PreviewResponder, PreviewSettings
from site_status.preview.url_validator import UrlValidator
from site_status.probe.route_prober import ProbeSettings, RouteProbeEngine
from site_status.web import handlers
from site_status.web.app_keys import CONTEXT_KEY, PROJECTS_KEY, SERVICES_KEY, Services
from site_status.web.middleware import error_middleware

# Module logger
logger = logging.getLogger(__name__)


def build_services(
    context: StatusContext,
    session: aiohttp.ClientSession,
    store: StatusLogStore,
    projects: Iterable[MonitoredProject],
) -> Services:
    """
    Wires the preview and probe components around shared resources.

    Args:
        context: The application configuration.
        session: The HTTP client session used for previews and probes.
        store: Status log persistence.
        projects: The configured projects; their hosts form the preview allow-list.

    Returns:
        Services: The collaborators the handlers call into.
    """
    timeout_seconds = context.fetch_timeout_ms / 1000
    validator = UrlValidator(build_allowed_hosts(projects))
    fetcher = RedirectAwareFetcher(
        session=session,
        validator=validator,
        settings=FetchSettings(
            max_redirects=context.max_redirects,
            user_agent=context.preview_user_agent,
            timeout_seconds=timeout_seconds,
            redirect_delay_min_ms=context.redirect_delay_min_ms,
            redirect_delay_jitter_ms=context.redirect_delay_jitter_ms,
        ),
    )
    responder = PreviewResponder(
        validator=validator,
        fetcher=fetcher,
        settings=PreviewSettings(
            wait_for_full_load=context.wait_for_full_load,
            load_timeout_ms=context.load_timeout_ms,
            cache_seconds=context.cache_seconds,
        ),
    )
    engine = RouteProbeEngine(
        session=session,
        store=store,
        settings=ProbeSettings(
            user_agent=context.probe_user_agent,
            timeout_seconds=timeout_seconds,
            max_redirects=context.max_redirects,
        ),
    )
    return Services(store=store, responder=responder, engine=engine)


async def _resources(app: web.Application) -> AsyncIterator[None]:
    context = app[CONTEXT_KEY]
    logger.info("Starting application...")

    http_session: aiohttp.ClientSession = get_http_session(context)
    logger.info("configured: http_session")

    db_pool: Optional[asyncpg.pool.Pool] = None
    try:
        db_pool = await initiate_db_pool(context)
        logger.info("initialized: db_pool")

        store = PostgresStatusLogStore(db_pool)
        await store.ensure_schema()

        app[SERVICES_KEY] = build_services(
            context, http_session, store, app[PROJECTS_KEY].values()
        )
        yield
    finally:
        logger.info("Shutting down resources...")
        await http_session.close()
        if db_pool:
            await db_pool.close()
        logger.info("Shutdown complete.")


def create_app(
    context: StatusContext,
    projects: Iterable[MonitoredProject],
    services: Optional[Services] = None,
) -> web.Application:
    """
    Creates the dashboard server application.

    Args:
        context: The application configuration.
        projects: The configured projects.
        services: Pre-built collaborators. When omitted, the HTTP session and
            the database pool are created at startup and closed at shutdown.

    Returns:
        web.Application: The configured aiohttp application.
    """
    app = web.Application(middlewares=[error_middleware])
    app[CONTEXT_KEY] = context
    app[PROJECTS_KEY] = {project.slug: project for project in projects}

    if services is not None:
        app[SERVICES_KEY] = services
    else:
        app.cleanup_ctx.append(_resources)

    app.add_routes(
        [
            web.get("/preview", handlers.preview),
            web.post("/updateStatus/{site}", handlers.update_status),
            web.post("/report", handlers.report),
            web.post("/status/clear", handlers.clear_status),
            web.get("/status/{site}", handlers.route_status),
            web.get("/health", handlers.health),
        ]
    )
    return app
