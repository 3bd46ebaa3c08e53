"""
Preview responder: orchestrates validation, fetching and sanitization.
"""

import json
import logging
from typing import NamedTuple, Optional

from site_status.domain import PreviewResult
from site_status.errors import InputError
from site_status.preview.documents import full_load_wrapper_document, method_not_allowed_document
from site_status.preview.redirect_fetcher import RedirectAwareFetcher
from site_status.preview.sanitizer import sanitize_html
from site_status.preview.url_validator import UrlValidator

# Module logger
logger = logging.getLogger(__name__)

HTML_CONTENT_TYPE = "text/html"
JSON_CONTENT_TYPE = "application/json"

# The sanitized page may be opened directly; the browser still must not run anything in it.
DIRECT_PREVIEW_CSP = "sandbox allow-same-origin; script-src 'none'; object-src 'none'"


class PreviewSettings(NamedTuple):
    """
    Attributes:
        wait_for_full_load: Return the loader wrapper instead of the sanitized document.
        load_timeout_ms: Timeout of the wrapper's loader.
        cache_seconds: Public cache lifetime of a sanitized document.
    """

    wait_for_full_load: bool
    load_timeout_ms: int
    cache_seconds: int


class PreviewResponder:
    """
    Produces the response of the preview endpoint for one requested URL.

    Security rejections, redirect failures and transport failures are raised
    as SiteStatusError subclasses and mapped to responses by the web layer.
    """

    def __init__(
        self,
        validator: UrlValidator,
        fetcher: RedirectAwareFetcher,
        settings: PreviewSettings,
    ) -> None:
        self._validator: UrlValidator = validator
        self._fetcher: RedirectAwareFetcher = fetcher
        self._settings: PreviewSettings = settings

    async def respond(self, raw_url: Optional[str]) -> PreviewResult:
        """
        Builds the preview of a URL.

        Args:
            raw_url: The untrusted 'url' query parameter.

        Returns:
            PreviewResult: The sanitized document, the loader wrapper, the 405
                explanation, or a JSON error mirroring the upstream status.

        Raises:
            InputError: If the URL is missing.
            SecurityRejection: If the URL or a redirect target is not allowed.
            UpstreamTransportFailure: If the redirect budget is exceeded or no response arrives.
        """
        if not raw_url or not raw_url.strip():
            raise InputError("Missing url parameter")

        url = self._validator.validate(raw_url)
        # The loader wrapper only embeds the final URL, so its body is never needed
        page = await self._fetcher.fetch(url, read_body=not self._settings.wait_for_full_load)

        if page.status_code == 405:
            logger.info(f"{page.url} does not allow GET; returning the method notice.")
            return PreviewResult(
                status=405,
                body=method_not_allowed_document(page.url),
                content_type=HTML_CONTENT_TYPE,
                headers={},
            )

        if not 200 <= page.status_code < 300:
            logger.info(f"{page.url} answered {page.status_code}; no preview.")
            return PreviewResult(
                status=page.status_code,
                body=json.dumps({"error": f"Failed to fetch: {page.status_code}"}),
                content_type=JSON_CONTENT_TYPE,
                headers={},
            )

        if self._settings.wait_for_full_load:
            return PreviewResult(
                status=200,
                body=full_load_wrapper_document(page.url, self._settings.load_timeout_ms),
                content_type=HTML_CONTENT_TYPE,
                headers={"Cache-Control": "no-store"},
            )

        return PreviewResult(
            status=200,
            body=sanitize_html(page.body or "", page.url),
            content_type=HTML_CONTENT_TYPE,
            headers={
                "Cache-Control": f"public, max-age={self._settings.cache_seconds}",
                "Content-Security-Policy": DIRECT_PREVIEW_CSP,
                "X-Content-Type-Options": "nosniff",
            },
        )
