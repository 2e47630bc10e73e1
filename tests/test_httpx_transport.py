"""Tests for HttpxTransport: the httpx client on a background event loop."""

from __future__ import annotations

import asyncio
import json
import logging
import threading

import httpx
import pytest

from loginsight.client import LogInsightClient
from loginsight.core.errors import ClientClosedError, RequestCancelled, SessionExpired
from loginsight.transport.base import HttpRequest
from loginsight.transport.httpx_transport import HttpxTransport

from conftest import AUTH_BODY, CallbackRecorder


def _transport(handler) -> HttpxTransport:
    return HttpxTransport(timeout=5.0, transport=httpx.MockTransport(handler))


@pytest.fixture
def stall():
    """Handler that never answers until cancelled."""

    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(30)
        return httpx.Response(200)

    return handler


def test_execute_returns_raw_response():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["method"] = request.method
        captured["url"] = str(request.url)
        captured["dup"] = request.headers.get_list("X-Dup")
        captured["body"] = request.content
        return httpx.Response(201, text='{"ok":true}', headers={"X-Reply": "1"})

    transport = _transport(handler)
    try:
        request = HttpRequest(
            "POST",
            "https://li:9000/api/v1/messages/ingest/agent",
            headers=(("X-Dup", "a"), ("X-Dup", "b")),
            body=b'{"messages":[]}',
        )
        raw = transport.execute(request).result(timeout=5)
    finally:
        transport.close()

    assert raw.status == 201
    assert raw.body == '{"ok":true}'
    assert raw.headers["x-reply"] == "1"
    assert captured == {
        "method": "POST",
        "url": "https://li:9000/api/v1/messages/ingest/agent",
        "dup": ["a", "b"],
        "body": b'{"messages":[]}',
    }


def test_callback_runs_on_dispatcher_thread():
    transport = _transport(lambda request: httpx.Response(200))
    seen = []
    done = threading.Event()

    def callback(future):
        seen.append(threading.current_thread().name)
        done.set()

    try:
        transport.execute(HttpRequest("GET", "https://li/x"), callback)
        assert done.wait(5)
    finally:
        transport.close()
    assert len(seen) == 1
    assert seen[0].startswith("loginsight-dispatch")


def test_connection_error_surfaces_on_future():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    transport = _transport(handler)
    try:
        future = transport.execute(HttpRequest("GET", "https://li/x"))
        assert isinstance(future.exception(timeout=5), httpx.ConnectError)
    finally:
        transport.close()


def test_cancel_in_flight(stall):
    transport = _transport(stall)
    fired = threading.Event()
    try:
        future = transport.execute(HttpRequest("GET", "https://li/x"), lambda f: fired.set())
        assert future.cancel()
        assert fired.wait(5)
        assert future.cancelled()
    finally:
        transport.close()


def test_close_cancels_in_flight_requests(stall):
    transport = _transport(stall)
    future = transport.execute(HttpRequest("GET", "https://li/x"))
    transport.close()
    assert future.cancelled()


def test_execute_after_close_raises():
    transport = _transport(lambda request: httpx.Response(200))
    transport.close()
    transport.close()
    assert transport.closed
    with pytest.raises(ClientClosedError):
        transport.execute(HttpRequest("GET", "https://li/x"))


@pytest.mark.asyncio
async def test_send_logs_structured_fields(caplog):
    transport = _transport(lambda request: httpx.Response(204))
    try:
        with caplog.at_level(logging.DEBUG, logger="loginsight.transport.httpx_transport"):
            raw = await transport._send(HttpRequest("GET", "https://li/x", family="message_query"))
    finally:
        transport.close()
    assert raw.status == 204
    record = caplog.records[-1]
    assert record.status == 204
    assert record.family == "message_query"
    assert record.method == "GET"


# ── End to end through the client ──────────────────────────


class FakeServer:
    """Routes mock requests like a minimal Log Insight server."""

    def __init__(self):
        self.token = AUTH_BODY["sessionId"]
        self.expired = False
        self.ingested: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/api/v1/sessions":
            creds = json.loads(request.content)
            if creds["password"] != "s3cret":
                return httpx.Response(401, json={"errorMessage": "bad credentials"})
            self.expired = False
            return httpx.Response(200, json=AUTH_BODY)
        if path.startswith("/api/v1/messages/ingest/"):
            self.ingested.extend(json.loads(request.content)["messages"])
            return httpx.Response(200, json={"status": "ok", "ingested": 1})
        if self.expired or request.headers.get("X-li-session-id") != self.token:
            return httpx.Response(440)
        if path.startswith("/api/v1/events/"):
            return httpx.Response(200, json={"events": [{"text": "e1", "timestamp": 1}]})
        if path.startswith("/api/v1/aggregated-events/"):
            return httpx.Response(200, json={"bins": []})
        return httpx.Response(404)


def test_client_end_to_end(config):
    server = FakeServer()
    factory = lambda cfg: _transport(server)  # noqa: E731

    with LogInsightClient(config, transport_factory=factory) as client:
        assert client.message_query("text/CONTAINS%20e").events[0].text == "e1"

        recorder = CallbackRecorder()
        client.aggregate_query("timestamp/LAST1000", recorder)
        response, error = recorder.wait()
        assert error is None and response.bins == ()

        server.expired = True
        with pytest.raises(SessionExpired):
            client.message_query("x")
        assert not client.is_authenticated
        client.connect()
        assert client.message_query("x").events


def test_client_callback_cancelled_on_close(config, stall):
    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/v1/sessions":
            return httpx.Response(200, json=AUTH_BODY)
        return await stall(request)

    client = LogInsightClient(config, transport_factory=lambda cfg: _transport(handler))
    recorder = CallbackRecorder()
    client.message_query("x", recorder)
    client.close()
    response, error = recorder.wait()
    assert response is None
    assert isinstance(error, RequestCancelled)
    assert len(recorder.calls) == 1


def test_callback_can_reauthenticate_and_resubmit(config):
    """A SessionExpired callback may log in again and query, blocking, on the same client."""
    sessions = iter(["tok-1", "tok-2"])

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/v1/sessions":
            return httpx.Response(200, json={"sessionId": next(sessions)})
        if request.headers.get("X-li-session-id") == "tok-2":
            return httpx.Response(200, json={"events": [{"text": "after re-login"}]})
        return httpx.Response(401)

    client = LogInsightClient(config, transport_factory=lambda cfg: _transport(handler))
    outcome = {}
    finished = threading.Event()

    def on_done(response, error):
        outcome["error"] = error
        if isinstance(error, SessionExpired):
            client.connect()
            outcome["retry"] = client.message_query("x")
        finished.set()

    try:
        client.message_query("x", on_done)
        assert finished.wait(5), "callback did not return"
        assert isinstance(outcome["error"], SessionExpired)
        assert outcome["retry"].events[0].text == "after re-login"
        assert client.session_id == "tok-2"
        # the transport still serves requests afterwards
        assert client.message_query("y").events
    finally:
        client.close()


def test_close_from_callback_releases_loop():
    transport = _transport(lambda request: httpx.Response(200))
    closed = threading.Event()

    def callback(future):
        transport.close()
        closed.set()

    transport.execute(HttpRequest("GET", "https://li/x"), callback)
    assert closed.wait(5)
    transport._thread.join(5)
    assert not transport._thread.is_alive()
    assert transport._loop.is_closed()


def test_close_stops_loop_thread():
    transport = _transport(lambda request: httpx.Response(200))
    transport.execute(HttpRequest("GET", "https://li/x")).result(timeout=5)
    transport.close()
    assert not transport._thread.is_alive()
    assert transport._loop.is_closed()
