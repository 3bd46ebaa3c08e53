"""
Shared fixtures of the site status test suite.
"""

import os
from typing import Callable, Dict, Optional, Union
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from site_status.config import get_context
from site_status.config.status_context import StatusContext
from site_status.domain import MonitoredProject


@pytest.fixture
def status_context() -> StatusContext:
    """
    Creates a StatusContext with default values and a development environment.

    Returns:
        StatusContext: A context that does not depend on the caller's environment.
    """
    with patch.dict(os.environ, {}, clear=True):
        return get_context(
            [
                "--environment",
                "development",
                "--instance-id",
                "test-instance",
                "--logging-type",
                "dev",
                "--dsn",
                "postgresql://localhost/test",
            ]
        )


@pytest.fixture
def acme_project() -> MonitoredProject:
    """
    Creates the sample project used across the probe and web tests.

    Returns:
        MonitoredProject: A project with two concrete routes and a templated one.
    """
    return MonitoredProject(
        slug="acme",
        base_url="https://acme.example",
        routes=("/", "/blog/[slug]", "/about"),
    )


def _mock_response(
    status: int,
    headers: Optional[Dict[str, str]] = None,
    body: str = "",
    history: tuple = (),
    url: str = "",
) -> MagicMock:
    response = MagicMock()
    response.status = status
    response.headers = headers or {}
    response.text = AsyncMock(return_value=body)
    response.history = history
    response.url = url
    return response


def _mock_session(*responses: Union[MagicMock, BaseException]) -> MagicMock:
    session = MagicMock(spec=aiohttp.ClientSession)
    side_effects = []
    for response in responses:
        if isinstance(response, BaseException):
            side_effects.append(response)
            continue
        context = MagicMock()
        context.__aenter__ = AsyncMock(return_value=response)
        context.__aexit__ = AsyncMock(return_value=False)
        side_effects.append(context)
    session.get.side_effect = side_effects
    return session


@pytest.fixture
def response_factory() -> Callable[..., MagicMock]:
    """
    Builds mock aiohttp.ClientResponse objects.

    Returns:
        Callable[..., MagicMock]: factory(status, headers=None, body="", history=(), url="").
    """
    return _mock_response


@pytest.fixture
def session_factory() -> Callable[..., MagicMock]:
    """
    Builds mock aiohttp.ClientSession objects whose get() yields the given responses in order.

    An exception in the sequence is raised by the corresponding get() call.

    Returns:
        Callable[..., MagicMock]: factory(*responses).
    """
    return _mock_session
