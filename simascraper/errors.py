"""
Exception hierarchy.

Three families matter to callers:

- AuthenticationError: the cookie jar (or the credentials) are not good
  anymore. The only fix is to log in again.
- StructureError: the portal answered, but the markup we rely on was not
  there. Usually transient (site changes); retry later.
- TransportError: the request itself failed (timeout, DNS, reset, 5xx).

Partial-data failures (one section, one course, one activity page) never
surface as exceptions; they are recorded as model.Omitted entries.
"""

from __future__ import annotations


class SimaError(Exception):
    """Base class for every error raised by simascraper."""


class ConfigError(SimaError):
    """Invalid configuration value (environment or arguments)."""


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


class AuthenticationError(SimaError):
    """The portal does not consider us logged in."""


class SessionExpired(AuthenticationError):
    def __init__(self, message: str = "Session expired or invalid cookies. Please login again.") -> None:
        super().__init__(message)


class InvalidCredentials(AuthenticationError):
    def __init__(self, message: str = "Authentication failed - invalid credentials") -> None:
        super().__init__(message)


# ---------------------------------------------------------------------------
# Structure (expected markup missing)
# ---------------------------------------------------------------------------


class StructureError(SimaError):
    """Expected markup was not found on a page."""


class LoginTokenNotFound(StructureError):
    def __init__(self, message: str = "Login token not found") -> None:
        super().__init__(message)


class SessionKeyNotFound(StructureError):
    def __init__(self, message: str = "Session key not found") -> None:
        super().__init__(message)


class NoAuthenticatedPageFound(StructureError):
    def __init__(self, message: str = "No working URL found - all URLs redirect to login") -> None:
        super().__init__(message)


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


class TransportError(SimaError):
    """Network-level failure talking to the portal."""

    def __init__(self, message: str, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class HttpStatusError(TransportError):
    def __init__(self, status_code: int, url: str | None = None) -> None:
        super().__init__(f"HTTP {status_code} for {url}", url=url)
        self.status_code = status_code


def http_status_for(exc: BaseException) -> int:
    """
    Map an exception to the status class the HTTP layer should answer with.
    """
    if isinstance(exc, AuthenticationError):
        return 401
    if isinstance(exc, ConfigError):
        return 400
    return 500
