"""
LogInsightClient: the one object callers use.

Construction authenticates synchronously: a client that exists has
completed the session handshake, or construction raised AuthFailure and
the transport was released.

Every operation has two modes. Without a callback it blocks and returns the
typed response or raises. With ``callback(response, error)`` it returns the
transport future at once and reports through the callback only.

Usage:
    config = LogInsightConfig.with_credentials("li.example.com", "admin", "secret")
    with LogInsightClient(config) as client:
        result = client.message_query("text/CONTAINS%20error?limit=10")
        for event in result.events:
            print(event.timestamp, event.text)
"""

from __future__ import annotations

import logging
from concurrent.futures import Future
from typing import Callable, Optional, Type, TypeVar

from loginsight.core.config import LogInsightConfig
from loginsight.core.errors import ClientClosedError, LogInsightError
from loginsight.executor import AsyncCallback, DualModeExecutor
from loginsight.models import (
    AggregateResponse,
    IngestionRequest,
    IngestionResponse,
    MessageQueryResponse,
)
from loginsight.query import AggregateQuery, MessageQuery
from loginsight.request_builder import API_URL_SESSION_PATH, RequestBuilder
from loginsight.session import Session, SessionManager
from loginsight.transport.base import HttpRequest, Transport, TransportFactory
from loginsight.transport.httpx_transport import HttpxTransport

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _relative_url(query, is_aggregate: bool):
    """Relative URL of a query builder, or a pre-built string as is."""
    if not isinstance(query, MessageQuery):
        return query
    if isinstance(query, AggregateQuery) != is_aggregate:
        expected = "AggregateQuery" if is_aggregate else "MessageQuery"
        raise ValueError(f"expected {expected}, got {type(query).__name__}")
    return query.to_url()


class LogInsightClient:
    """Query and ingest against one Log Insight server."""

    def __init__(
        self,
        config: LogInsightConfig,
        transport_factory: Optional[TransportFactory] = None,
    ):
        config.validate()
        self._config = config
        factory = transport_factory or HttpxTransport.from_config
        self._transport: Transport = factory(config)
        self._session = SessionManager(config, self._transport)
        self._builder = RequestBuilder(config, self._session)
        self._executor = DualModeExecutor(self._transport, self._session)
        self._closed = False
        try:
            self.connect()
        except Exception:
            self._transport.close()
            self._closed = True
            raise

    @classmethod
    def from_env(cls, transport_factory: Optional[TransportFactory] = None) -> LogInsightClient:
        return cls(LogInsightConfig.from_env(), transport_factory)

    # ─── Session ──────────────────────────────────────────────────

    def connect(self) -> Session:
        """(Re-)authenticate with the configured credentials.

        This is the only way back from SessionExpired; the client never
        re-authenticates on its own.
        """
        self._ensure_open()
        return self._session.authenticate(self._config.user, self._config.password)

    @property
    def session_id(self) -> str:
        """Current session token. Raises AuthFailure when none is held."""
        return self._session.get_session_id()

    @property
    def is_authenticated(self) -> bool:
        return self._session.is_authenticated

    # ─── URLs ─────────────────────────────────────────────────────

    @property
    def api_url(self) -> str:
        return self._config.api_url

    @property
    def session_url(self) -> str:
        return self._config.api_url + API_URL_SESSION_PATH

    @property
    def message_query_url(self) -> str:
        return self._builder.message_query_url

    @property
    def aggregate_query_url(self) -> str:
        return self._builder.aggregate_query_url

    @property
    def ingestion_api_url(self) -> str:
        return self._builder.ingestion_api_url

    # ─── Operations ───────────────────────────────────────────────

    def message_query(
        self,
        query: str | MessageQuery,
        callback: Optional[AsyncCallback[MessageQueryResponse]] = None,
    ):
        """Search messages. ``query`` is a relative URL or a MessageQuery."""
        return self._run(
            lambda: self._builder.build_query_request(
                _relative_url(query, is_aggregate=False), is_aggregate=False
            ),
            MessageQueryResponse,
            callback,
        )

    def aggregate_query(
        self,
        query: str | AggregateQuery,
        callback: Optional[AsyncCallback[AggregateResponse]] = None,
    ):
        """Grouped search. ``query`` is a relative URL or an AggregateQuery."""
        return self._run(
            lambda: self._builder.build_query_request(
                _relative_url(query, is_aggregate=True), is_aggregate=True
            ),
            AggregateResponse,
            callback,
        )

    def ingest(
        self,
        messages: IngestionRequest,
        callback: Optional[AsyncCallback[IngestionResponse]] = None,
    ):
        """Send a batch of messages to the ingestion API."""
        return self._run(
            lambda: self._ingestion_request(messages),
            IngestionResponse,
            callback,
        )

    def _ingestion_request(self, messages: IngestionRequest) -> HttpRequest:
        if not isinstance(messages, IngestionRequest):
            raise ValueError(f"expected IngestionRequest, got {type(messages).__name__}")
        logger.info("Ingesting %d message(s)", len(messages.messages))
        return self._builder.build_ingestion_request(messages)

    def _run(
        self,
        build: Callable[[], HttpRequest],
        target: Type[T],
        callback: Optional[AsyncCallback],
    ):
        if callback is None:
            self._ensure_open()
            return self._executor.execute_blocking(build(), target)
        try:
            self._ensure_open()
            request = build()
        except (LogInsightError, ValueError) as e:
            return self._executor.fail_async(e, callback)
        return self._executor.execute_async(request, target, callback)

    # ─── Lifecycle ────────────────────────────────────────────────

    def _ensure_open(self) -> None:
        if self._closed:
            raise ClientClosedError("LogInsightClient is closed")

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Release the transport and drop the session. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._session.invalidate()
        self._transport.close()
        logger.debug("LogInsightClient closed")

    def __enter__(self) -> LogInsightClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
