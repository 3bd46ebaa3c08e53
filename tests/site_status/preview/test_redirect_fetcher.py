"""
Unit tests for the RedirectAwareFetcher class.

This module contains tests ensuring that redirects are intercepted, resolved,
validated and delayed one hop at a time, that the redirect budget is exact,
and that transport failures surface as NoResponse.

The tests follow the Arrange-Act-Assert (AAA) pattern and use proper mocking
of all external dependencies to ensure true unit testing.
"""

import asyncio
from unittest.mock import AsyncMock

import aiohttp
import pytest

from site_status.errors import (
    InvalidRedirectTarget,
    NoResponse,
    RedirectBudgetExceeded,
    SecurityRejection,
)
from site_status.preview.redirect_fetcher import FetchSettings, RedirectAwareFetcher
from site_status.preview.url_validator import UrlValidator

SETTINGS = FetchSettings(
    max_redirects=3,
    user_agent="Website-Monitor-Preview/1.0",
    timeout_seconds=10.0,
    redirect_delay_min_ms=3000,
    redirect_delay_jitter_ms=2000,
)


@pytest.fixture
def validator() -> UrlValidator:
    """
    Creates a UrlValidator allowing the sample hosts and one link-local literal.

    Returns:
        UrlValidator: The validator applied to every hop.
    """
    return UrlValidator(["acme.example", "www.acme.example", "169.254.169.254"])


def _fetcher(session, validator, settings=SETTINGS, sleep=None, rng=lambda: 0.5):
    return RedirectAwareFetcher(
        session=session,
        validator=validator,
        settings=settings,
        sleep=sleep or AsyncMock(),
        rng=rng,
    )


@pytest.mark.asyncio
async def test_fetch_should_return_body_of_direct_success(
    validator, session_factory, response_factory
) -> None:
    """
    Tests that a 200 response is returned without any hop or delay.
    """
    # Arrange
    session = session_factory(response_factory(200, body="<html>ok</html>"))
    sleep = AsyncMock()
    fetcher = _fetcher(session, validator, sleep=sleep)

    # Act
    page = await fetcher.fetch("https://acme.example/")

    # Assert
    assert page.url == "https://acme.example/"
    assert page.status_code == 200
    assert page.body == "<html>ok</html>"
    assert page.hops == 0
    sleep.assert_not_awaited()
    _, kwargs = session.get.call_args
    assert kwargs["allow_redirects"] is False
    assert kwargs["headers"] == {"User-Agent": "Website-Monitor-Preview/1.0"}
    assert kwargs["timeout"].total == 10.0


@pytest.mark.asyncio
async def test_fetch_should_follow_relative_redirect_after_delay(
    validator, session_factory, response_factory
) -> None:
    """
    Tests that a relative Location is resolved against the current URL and followed after the delay.
    """
    # Arrange
    session = session_factory(
        response_factory(301, headers={"Location": "/home"}),
        response_factory(200, body="<p>home</p>"),
    )
    sleep = AsyncMock()
    fetcher = _fetcher(session, validator, sleep=sleep, rng=lambda: 0.5)

    # Act
    page = await fetcher.fetch("https://acme.example/start")

    # Assert
    assert page.url == "https://acme.example/home"
    assert page.hops == 1
    sleep.assert_awaited_once_with(4.0)
    assert session.get.call_args_list[1].args[0] == "https://acme.example/home"


@pytest.mark.asyncio
async def test_fetch_should_accept_exactly_max_redirects(
    validator, session_factory, response_factory
) -> None:
    """
    Tests that a chain of exactly max_redirects redirects followed by a 200 succeeds.
    """
    # Arrange
    session = session_factory(
        response_factory(302, headers={"Location": "https://www.acme.example/1"}),
        response_factory(302, headers={"Location": "https://www.acme.example/2"}),
        response_factory(307, headers={"Location": "https://acme.example/3"}),
        response_factory(200, body="done"),
    )
    sleep = AsyncMock()
    fetcher = _fetcher(session, validator, sleep=sleep)

    # Act
    page = await fetcher.fetch("https://acme.example/")

    # Assert
    assert page.url == "https://acme.example/3"
    assert page.hops == 3
    assert sleep.await_count == 3


@pytest.mark.asyncio
async def test_fetch_should_fail_when_budget_is_exceeded(
    validator, session_factory, response_factory
) -> None:
    """
    Tests that max_redirects + 1 redirects fail with RedirectBudgetExceeded.
    """
    # Arrange
    session = session_factory(
        *[response_factory(302, headers={"Location": f"/hop{i}"}) for i in range(4)],
        response_factory(200, body="never reached"),
    )
    sleep = AsyncMock()
    fetcher = _fetcher(session, validator, sleep=sleep)

    # Act & Assert
    with pytest.raises(RedirectBudgetExceeded) as exc_info:
        await fetcher.fetch("https://acme.example/")

    assert exc_info.value.status == 502
    assert session.get.call_count == 4
    assert sleep.await_count == 3


@pytest.mark.asyncio
async def test_fetch_should_not_follow_any_redirect_with_zero_budget(
    validator, session_factory, response_factory
) -> None:
    """
    Tests that a zero budget fails on the first redirect without waiting.
    """
    # Arrange
    session = session_factory(response_factory(301, headers={"Location": "/next"}))
    sleep = AsyncMock()
    fetcher = _fetcher(session, validator, settings=SETTINGS._replace(max_redirects=0), sleep=sleep)

    # Act & Assert
    with pytest.raises(RedirectBudgetExceeded):
        await fetcher.fetch("https://acme.example/")

    sleep.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "location, reason",
    [
        ("https://evil.example/", "domain not allowed"),
        ("http://169.254.169.254/latest/meta-data", "private IP blocked"),
        ("ftp://acme.example/file", "protocol not allowed"),
    ],
)
async def test_fetch_should_reject_disallowed_redirect_target(
    validator, session_factory, response_factory, location, reason
) -> None:
    """
    Tests that a disallowed redirect target is never requested.
    """
    # Arrange
    session = session_factory(
        response_factory(302, headers={"Location": location}),
        response_factory(200, body="secret"),
    )
    sleep = AsyncMock()
    fetcher = _fetcher(session, validator, sleep=sleep)

    # Act & Assert
    with pytest.raises(InvalidRedirectTarget) as exc_info:
        await fetcher.fetch("https://acme.example/")

    assert exc_info.value.reason == reason
    assert exc_info.value.status == 502
    assert session.get.call_count == 1
    sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_fetch_should_reject_redirect_without_location(
    validator, session_factory, response_factory
) -> None:
    """
    Tests that a redirect without a Location header is an invalid redirect target.
    """
    # Arrange
    session = session_factory(response_factory(301))
    fetcher = _fetcher(session, validator)

    # Act & Assert
    with pytest.raises(InvalidRedirectTarget, match="redirect without location"):
        await fetcher.fetch("https://acme.example/")


@pytest.mark.asyncio
async def test_fetch_should_reject_initial_url_before_any_request(
    validator, session_factory
) -> None:
    """
    Tests that a disallowed initial URL is rejected with a 400 and never requested.
    """
    # Arrange
    session = session_factory()
    fetcher = _fetcher(session, validator)

    # Act & Assert
    with pytest.raises(SecurityRejection) as exc_info:
        await fetcher.fetch("https://evil.example/")

    assert exc_info.value.status == 400
    session.get.assert_not_called()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error", [aiohttp.ClientConnectionError("refused"), asyncio.TimeoutError()]
)
async def test_fetch_should_raise_no_response_on_transport_failure(
    validator, session_factory, error
) -> None:
    """
    Tests that network errors and timeouts surface as NoResponse.
    """
    # Arrange
    session = session_factory(error)
    fetcher = _fetcher(session, validator)

    # Act & Assert
    with pytest.raises(NoResponse) as exc_info:
        await fetcher.fetch("https://acme.example/")

    assert exc_info.value.status == 502


@pytest.mark.asyncio
async def test_fetch_should_not_read_body_of_error_response(
    validator, session_factory, response_factory
) -> None:
    """
    Tests that the body of a non-2xx response is not read.
    """
    # Arrange
    response = response_factory(404, body="not found")
    session = session_factory(response)
    fetcher = _fetcher(session, validator)

    # Act
    page = await fetcher.fetch("https://acme.example/missing")

    # Assert
    assert page.status_code == 404
    assert page.body is None
    response.text.assert_not_awaited()


def test_redirect_delay_should_stay_within_bounds(validator) -> None:
    """
    Tests that the delay lies in [min, min + jitter).
    """
    # Arrange
    lowest = _fetcher(None, validator, rng=lambda: 0.0)
    highest = _fetcher(None, validator, rng=lambda: 0.999)

    # Act & Assert
    assert lowest.redirect_delay() == 3.0
    assert 3.0 <= highest.redirect_delay() < 5.0


@pytest.mark.asyncio
async def test_fetch_should_skip_body_when_not_requested(
    validator, session_factory, response_factory
) -> None:
    """
    Tests that the body of a 2xx response is not downloaded when read_body is False.
    """
    # Arrange
    response = response_factory(200, body="<html>unused</html>")
    fetcher = _fetcher(session_factory(response), validator)

    # Act
    page = await fetcher.fetch("https://acme.example/", read_body=False)

    # Assert
    assert page.status_code == 200
    assert page.body is None
    response.text.assert_not_awaited()
