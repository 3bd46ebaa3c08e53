"""
Error taxonomy of the site status dashboard.

Each exception maps to a caller-facing HTTP status. The web layer translates
them; the probe engine records them per route instead of propagating.
"""


class SiteStatusError(Exception):
    """Base class of every error raised on purpose by this package."""

    status: int = 500


class InputError(SiteStatusError):
    """A missing or malformed request parameter."""

    status = 400


class SecurityRejection(SiteStatusError):
    """
    A URL failed validation and must not be fetched.

    Attributes:
        reason: Short, stable description of the failed rule, e.g. "domain not allowed".
    """

    status = 400

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason: str = reason


class InvalidRedirectTarget(SecurityRejection):
    """A redirect carried no usable Location or pointed at a disallowed destination."""

    status = 502


class UpstreamTransportFailure(SiteStatusError):
    """The upstream could not be talked to."""

    status = 502


class NoResponse(UpstreamTransportFailure):
    """Network error or timeout before a response was received."""


class RedirectBudgetExceeded(UpstreamTransportFailure):
    """The redirect chain did not end within the configured number of hops."""


class PersistenceFailure(SiteStatusError):
    """A status log write, read or delete failed."""
