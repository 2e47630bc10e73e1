"""
Error taxonomy for the Log Insight client.

Every fault that reaches a caller is one of these. Raw transport and
decoding exceptions are chained as ``__cause__``, never raised directly.

    LogInsightError
    ├── ConfigError
    ├── AuthFailure
    │   └── SessionExpired
    ├── ApiError
    │   ├── TransportError
    │   └── RequestCancelled
    ├── ParseError
    └── ClientClosedError
"""

from __future__ import annotations


class LogInsightError(Exception):
    """Base class for all client errors."""


class ConfigError(LogInsightError):
    """Configuration cannot produce a usable connection."""


class AuthFailure(LogInsightError):
    """
    Raised when the session handshake fails or no session token is held.

    ``status`` and ``body`` carry the server's answer when there was one.
    """

    def __init__(self, message: str, status: int | None = None, body: str = ""):
        self.status = status
        self.body = body
        super().__init__(message)


class SessionExpired(AuthFailure):
    """The server answered 401 or 440: the session token is no longer valid."""


class ApiError(LogInsightError):
    """A non-200 answer unrelated to authentication."""

    def __init__(self, message: str, status: int | None = None, body: str = ""):
        self.status = status
        self.body = body
        super().__init__(message)


class TransportError(ApiError):
    """The request never produced an HTTP answer (connect, timeout, I/O)."""


class RequestCancelled(ApiError):
    """The transport cancelled the request before it completed."""


class ParseError(LogInsightError):
    """A 200 response whose body does not match the expected shape."""

    def __init__(self, message: str, body: str = ""):
        self.body = body
        super().__init__(message)


class ClientClosedError(LogInsightError):
    """The client (and its transport) has already been closed."""
