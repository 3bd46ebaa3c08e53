"""
Main entry point of the site status dashboard.

Two commands are available:
- serve (default): runs the web server with the preview proxy and the probe endpoints.
- autocheck: runs the staleness scheduler as a client of a running server.
"""

import asyncio
import logging
import os
from datetime import timedelta
from typing import List

import aiohttp
from aiohttp import web

from site_status.config import get_context
from site_status.config.constants import DISABLE_AUTO_CHECK_ENV_VAR
from site_status.config.http_config import get_http_session
from site_status.config.logging_config import configure_logging
from site_status.config.projects_config import load_projects
from site_status.config.status_context import StatusContext
from site_status.scheduler.http_trigger import HttpProbeTrigger
from site_status.scheduler.staleness import SessionMarkers, StalenessScheduler
from site_status.web.app import create_app


def serve(context: StatusContext) -> None:
    """
    Run the web server until it is terminated.

    Args:
        context: Configuration context containing all application settings.
    """
    projects = load_projects(context.projects_file)
    web.run_app(
        create_app(context, projects),
        host=context.host,
        port=context.port,
        print=None,
    )


async def autocheck(context: StatusContext) -> bool:
    """
    Probe the stale routes of one project, or of every configured project.

    Args:
        context: Configuration context containing all application settings.

    Returns:
        bool: True if at least one probe wrote a log row.
    """
    logger: logging.Logger = logging.getLogger(__name__)

    if os.getenv(DISABLE_AUTO_CHECK_ENV_VAR, "false").lower() == "true":
        logger.info("Auto-check disabled.")
        return False

    if context.site:
        slugs: List[str] = [context.site]
    else:
        slugs = [project.slug for project in load_projects(context.projects_file)]

    http_session: aiohttp.ClientSession = get_http_session(context)
    stale_window = timedelta(minutes=context.stale_minutes)
    scheduler = StalenessScheduler(
        trigger=HttpProbeTrigger(http_session, context.server_url),
        markers=SessionMarkers(ttl=stale_window),
        stale_window=stale_window,
        request_delay=timedelta(milliseconds=context.request_delay_ms),
        reduced_frequency_factor=context.reduced_frequency_factor,
        constrained=context.constrained_client,
        on_refresh=lambda: logger.info("New status logs written; dashboard data is stale."),
    )

    any_logged = False
    try:
        for slug in slugs:
            try:
                if await scheduler.run_for_project(slug):
                    any_logged = True
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                logger.warning(f"Could not check {slug}: {e}")
    finally:
        await http_session.close()
    return any_logged


def main() -> None:
    # Parse command-line arguments and environment variables
    context: StatusContext = get_context()

    # Configure logging based on the context
    configure_logging(context)

    if context.command == "autocheck":
        asyncio.run(autocheck(context))
    else:
        serve(context)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        logging.info("Shutdown initiated by user (Ctrl+C).")
