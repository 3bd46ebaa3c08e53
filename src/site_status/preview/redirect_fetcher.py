"""
Redirect-aware HTTP fetcher built on aiohttp.

Redirects are never followed automatically: every 3xx response is intercepted,
its Location is resolved against the current URL and validated again, and the
fetcher pauses before dereferencing it. The pause keeps the proxy polite and
gives slow redirect targets time to settle.
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable, NamedTuple, Optional
from urllib.parse import urljoin

import aiohttp

from site_status.domain import FetchedPage, RedirectChain
from site_status.errors import (
    InvalidRedirectTarget,
    NoResponse,
    RedirectBudgetExceeded,
    SecurityRejection,
)
from site_status.preview.url_validator import UrlValidator

# Module logger
logger = logging.getLogger(__name__)


class FetchSettings(NamedTuple):
    """
    Tunables of a redirect-aware fetch.

    Attributes:
        max_redirects: Maximum number of redirects followed before giving up.
        user_agent: User-Agent header sent with every request.
        timeout_seconds: Hard timeout of each individual request.
        redirect_delay_min_ms: Minimum pause before a redirect is followed.
        redirect_delay_jitter_ms: Upper bound of the random extra pause.
    """

    max_redirects: int
    user_agent: str
    timeout_seconds: float
    redirect_delay_min_ms: int
    redirect_delay_jitter_ms: int


class RedirectAwareFetcher:
    """
    Fetches a validated URL, following redirects by hand.

    Every URL of the chain, the initial one included, passes the UrlValidator
    before it is requested. The chain is walked strictly sequentially.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        validator: UrlValidator,
        settings: FetchSettings,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
    ) -> None:
        """
        Initializes the fetcher with a shared aiohttp ClientSession.

        Args:
            session: An active aiohttp.ClientSession to be used for requests.
            validator: The guard applied to every URL of the redirect chain.
            settings: Redirect budget, timeout, user agent and delay bounds.
            sleep: Coroutine used to wait between hops.
            rng: Source of uniform [0, 1) numbers for the delay jitter.
        """
        self._session: aiohttp.ClientSession = session
        self._validator: UrlValidator = validator
        self._settings: FetchSettings = settings
        self._sleep = sleep
        self._rng = rng

    def redirect_delay(self) -> float:
        """
        Returns the pause before the next hop, in seconds.

        The value lies in [min, min + jitter) milliseconds.
        """
        jitter_ms = self._rng() * self._settings.redirect_delay_jitter_ms
        return (self._settings.redirect_delay_min_ms + jitter_ms) / 1000

    def _next_url(self, chain: RedirectChain, location: Optional[str]) -> str:
        if not location:
            raise InvalidRedirectTarget("redirect without location")
        try:
            resolved = urljoin(chain.current_url, location.strip())
            return self._validator.validate(resolved)
        except SecurityRejection as rejection:
            raise InvalidRedirectTarget(rejection.reason) from rejection
        except ValueError as err:
            raise InvalidRedirectTarget("invalid redirect location") from err

    async def fetch(self, url: str, read_body: bool = True) -> FetchedPage:
        """
        Requests a URL and follows its redirects up to the configured budget.

        The body is read only for 2xx responses, and only when asked for.

        Args:
            url: The URL to fetch; it is validated before the first request.
            read_body: Whether the body of a 2xx response is downloaded.

        Returns:
            FetchedPage: The first non-redirect response of the chain.

        Raises:
            SecurityRejection: If the initial URL is not allowed.
            InvalidRedirectTarget: If a redirect has no Location or points somewhere disallowed.
            RedirectBudgetExceeded: If no non-redirect response arrives within the budget.
            NoResponse: On network errors and timeouts.
        """
        chain = RedirectChain(current_url=self._validator.validate(url))
        timeout = aiohttp.ClientTimeout(total=self._settings.timeout_seconds)
        headers = {"User-Agent": self._settings.user_agent}

        for _ in range(self._settings.max_redirects + 1):
            logger.debug(f"Requesting {chain.current_url} (hop {chain.hop_count})")
            try:
                async with self._session.get(
                    chain.current_url,
                    allow_redirects=False,
                    timeout=timeout,
                    headers=headers,
                ) as response:
                    status: int = response.status
                    location: Optional[str] = response.headers.get("Location")
                    if not 300 <= status < 400:
                        body: Optional[str] = None
                        if read_body and 200 <= status < 300:
                            body = await response.text(errors="replace")
                        return FetchedPage(
                            url=chain.current_url,
                            status_code=status,
                            body=body,
                            hops=chain.hop_count,
                        )
            except (aiohttp.ClientError, asyncio.TimeoutError) as err:
                logger.warning(f"No response from {chain.current_url}: {type(err).__name__}")
                raise NoResponse(str(err) or type(err).__name__) from err

            next_url = self._next_url(chain, location)
            if chain.hop_count >= self._settings.max_redirects:
                break

            delay = self.redirect_delay()
            logger.info(
                f"{chain.current_url} redirected ({status}) to {next_url}; "
                f"following in {delay:.2f}s"
            )
            await self._sleep(delay)
            chain = chain.follow(next_url)

        logger.warning(f"Redirect budget of {self._settings.max_redirects} exceeded for {url}")
        raise RedirectBudgetExceeded(
            f"more than {self._settings.max_redirects} redirects starting at {url}"
        )
