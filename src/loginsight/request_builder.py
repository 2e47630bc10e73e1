"""
RequestBuilder: turns caller input into fully-formed HttpRequests.

Four endpoint families share the same server but differ in base URL, port
and authentication:

    SESSION          POST {api}/api/v1/sessions                  (credentials in body)
    MESSAGE_QUERY    GET  {api}/api/v1/events/{relative}         (X-li-session-id)
    AGGREGATE_QUERY  GET  {api}/api/v1/aggregated-events/{rel}   (X-li-session-id)
    INGEST           POST {ingest}/api/v1/messages/ingest/{agent} (agent id in URL)
"""

from __future__ import annotations

import json
import re
import time
from enum import Enum
from typing import TYPE_CHECKING

import httpx

from loginsight.core.config import LogInsightConfig
from loginsight.models import IngestionRequest
from loginsight.transport.base import HttpRequest

if TYPE_CHECKING:
    from loginsight.session import SessionManager

# Required by the ingestion API in place of a session
DEFAULT_INGESTION_AGENT_ID = "54947df8-0e9e-4471-a2f9-9af509fb5889"

API_URL_SESSION_PATH = "/api/v1/sessions"
API_URL_EVENTS_PATH = "/api/v1/events/"
API_URL_AGGREGATED_EVENTS_PATH = "/api/v1/aggregated-events/"
API_URL_INGESTION_PATH = "/api/v1/messages/ingest/"

SESSION_HEADER = "X-li-session-id"
TIMESTAMP_HEADER = "x-li-timestamp"

_JSON_HEADERS = (
    ("Content-Type", "application/json"),
    ("Accept", "application/json"),
)
_FORBIDDEN = re.compile(r"[\s\x00-\x1f\x7f]")


class EndpointFamily(str, Enum):
    SESSION = "session"
    MESSAGE_QUERY = "message_query"
    AGGREGATE_QUERY = "aggregate_query"
    INGEST = "ingest"

    @property
    def requires_session(self) -> bool:
        return self in (EndpointFamily.MESSAGE_QUERY, EndpointFamily.AGGREGATE_QUERY)


def default_headers() -> list[tuple[str, str]]:
    """Headers sent with every query: JSON in/out plus the request timestamp."""
    headers = list(_JSON_HEADERS)
    headers.append((TIMESTAMP_HEADER, str(int(time.time()))))
    return headers


def build_session_request(
    config: LogInsightConfig, user: str, password: str, provider: str = ""
) -> HttpRequest:
    """POST carrying the credentials for the session handshake."""
    payload = {"username": user, "password": password}
    if provider:
        payload["provider"] = provider
    return HttpRequest(
        method="POST",
        url=config.api_url + API_URL_SESSION_PATH,
        headers=_JSON_HEADERS,
        body=json.dumps(payload).encode("utf-8"),
        family=EndpointFamily.SESSION.value,
    )


def _join(base: str, relative_url: str) -> str:
    if not isinstance(relative_url, str):
        raise ValueError(f"relative URL must be a string, got {type(relative_url).__name__}")
    if "://" in relative_url:
        raise ValueError(f"expected a relative URL, got absolute {relative_url!r}")
    if _FORBIDDEN.search(relative_url):
        raise ValueError(f"relative URL contains whitespace or control characters: {relative_url!r}")
    url = base + relative_url.lstrip("/")
    try:
        httpx.URL(url)
    except httpx.InvalidURL as e:
        raise ValueError(f"malformed URL {url!r}: {e}") from e
    return url


class RequestBuilder:
    """Builds requests for one configured server and session."""

    def __init__(self, config: LogInsightConfig, session: SessionManager):
        self._config = config
        self._session = session

    @property
    def message_query_url(self) -> str:
        return self._config.api_url + API_URL_EVENTS_PATH

    @property
    def aggregate_query_url(self) -> str:
        return self._config.api_url + API_URL_AGGREGATED_EVENTS_PATH

    @property
    def ingestion_api_url(self) -> str:
        return (
            self._config.ingestion_api_url
            + API_URL_INGESTION_PATH
            + DEFAULT_INGESTION_AGENT_ID
        )

    def session_headers(self) -> list[tuple[str, str]]:
        """The session header. Raises AuthFailure when no session is held."""
        return [(SESSION_HEADER, self._session.get_session_id())]

    def build_session_request(self, user: str, password: str) -> HttpRequest:
        return build_session_request(self._config, user, password, self._config.provider)

    def build_query_request(self, relative_url: str, is_aggregate: bool) -> HttpRequest:
        """
        GET for a message or aggregate query.

        Raises:
            ValueError: ``relative_url`` cannot form a valid URL.
            AuthFailure: no session token is held.
        """
        if is_aggregate:
            family = EndpointFamily.AGGREGATE_QUERY
            url = _join(self.aggregate_query_url, relative_url)
        else:
            family = EndpointFamily.MESSAGE_QUERY
            url = _join(self.message_query_url, relative_url)
        headers = default_headers() + self.session_headers()
        return HttpRequest(
            method="GET", url=url, headers=tuple(headers), family=family.value
        )

    def build_ingestion_request(self, payload: IngestionRequest) -> HttpRequest:
        """POST of ``payload`` to the ingestion endpoint; no session header."""
        return HttpRequest(
            method="POST",
            url=self.ingestion_api_url,
            headers=_JSON_HEADERS,
            body=payload.to_json().encode("utf-8"),
            family=EndpointFamily.INGEST.value,
        )
