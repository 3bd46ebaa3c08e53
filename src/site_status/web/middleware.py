"""
Outermost error boundary of the HTTP server.
"""

import logging
from typing import Awaitable, Callable

from aiohttp import web

from site_status.errors import SiteStatusError

# Module logger
logger = logging.getLogger(__name__)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """
    Maps raised errors to JSON responses.

    Known errors keep their status and message. Anything else becomes a
    generic 500 whose details carry only the exception class name; the
    server keeps serving subsequent requests.
    """
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except SiteStatusError as e:
        logger.warning(f"{request.method} {request.path} failed: {e}")
        return web.json_response({"error": str(e)}, status=e.status)
    except Exception as e:
        logger.exception(f"Unexpected error while handling {request.method} {request.path}.")
        return web.json_response(
            {"error": "Internal server error", "details": type(e).__name__}, status=500
        )
