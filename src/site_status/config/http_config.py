"""
HTTP client configuration module for the site status dashboard.

This module provides functionality to create the shared aiohttp client session
used by the preview proxy, the route probes and the autocheck client.
"""

import logging

import aiohttp

from site_status.config import StatusContext

# Module logger
logger = logging.getLogger(__name__)


def get_http_session(context: StatusContext) -> aiohttp.ClientSession:
    """
    Create and configure an HTTP client session based on the provided configuration.

    Every request made through the session is bounded by the configured fetch
    timeout. Cookies are never kept between requests to different origins.

    Args:
        context: Configuration context containing HTTP client settings.

    Returns:
        aiohttp.ClientSession: A configured HTTP client session.
    """
    timeout = aiohttp.ClientTimeout(total=context.fetch_timeout_ms / 1000)
    logger.debug(f"Creating HTTP session with a {context.fetch_timeout_ms}ms timeout.")
    return aiohttp.ClientSession(timeout=timeout, cookie_jar=aiohttp.DummyCookieJar())
