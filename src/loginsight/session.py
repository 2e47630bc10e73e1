"""
SessionManager: owns the session token and the handshake that produces it.

State machine:

    Unauthenticated --authenticate() ok--> Authenticated(token)
    Authenticated   --401/440 observed---> Unauthenticated   (invalidate)
    Authenticated   --authenticate() ok--> Authenticated(new token)

The token cell is replaced or cleared atomically under a lock. Nothing
outside this class writes it, and it is never refreshed implicitly.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import CancelledError
from dataclasses import dataclass, field

from loginsight.core.config import LogInsightConfig
from loginsight.core.errors import AuthFailure, ClientClosedError, ParseError
from loginsight.models import AuthInfo
from loginsight.request_builder import build_session_request
from loginsight.transport.base import Transport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    """A server-issued session."""

    token: str
    user_id: str = ""
    ttl: int = 0  # seconds, as reported by the server
    created_at: float = field(default_factory=time.time)


class SessionManager:
    def __init__(self, config: LogInsightConfig, transport: Transport):
        self._config = config
        self._transport = transport
        self._lock = threading.Lock()
        self._session: Session | None = None

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    def authenticate(self, user: str, password: str) -> Session:
        """
        Run the handshake and replace the current session with the new one.

        Blocks until the server answers. Any failure (non-200, unreadable
        body, transport error, cancellation) raises AuthFailure and leaves
        the current session untouched.
        """
        request = build_session_request(
            self._config, user, password, self._config.provider
        )
        try:
            raw = self._transport.execute(request).result()
        except ClientClosedError:
            raise
        except CancelledError as e:
            raise AuthFailure("Connection to Log Insight cancelled") from e
        except Exception as e:
            raise AuthFailure(f"Connection to Log Insight failed: {e}") from e

        if raw.status != 200:
            logger.error("Unable to authenticate as %s: HTTP %d", user, raw.status)
            raise AuthFailure(
                f"Connection to Log Insight failed: HTTP {raw.status}",
                status=raw.status,
                body=raw.body,
            )

        try:
            info = AuthInfo.from_json(raw.body)
        except ParseError as e:
            raise AuthFailure(
                f"Unreadable session response: {e}", status=raw.status, body=raw.body
            ) from e

        session = Session(token=info.session_id, user_id=info.user_id, ttl=info.ttl)
        with self._lock:
            self._session = session
        logger.info("Authenticated as %s (ttl=%ss)", user, info.ttl)
        return session

    def get_session_id(self) -> str:
        """Current token. Raises AuthFailure when none is held."""
        session = self._session
        if session is None:
            raise AuthFailure("Invalid session id: not authenticated or session expired")
        return session.token

    def invalidate(self) -> None:
        """Drop the current token. Idempotent."""
        with self._lock:
            dropped = self._session is not None
            self._session = None
        if dropped:
            logger.warning("Session invalidated; re-authenticate to continue")
