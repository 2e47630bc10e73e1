"""
Shared fixtures for client tests.

Provides a scripted in-memory FakeTransport that completes futures on its
own worker threads, like a real non-blocking transport: no network needed.
"""

from __future__ import annotations

import json
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait

import pytest

from loginsight.client import LogInsightClient
from loginsight.core.config import LogInsightConfig
from loginsight.transport.base import HttpRequest, RawResponse, Transport


CANCEL = object()  # script item: the transport cancels the request

AUTH_BODY = {"userId": "user-1", "sessionId": "tok-1", "ttl": 1800}


def ok(body) -> RawResponse:
    """200 with a JSON (dict/list) or raw string body."""
    text = body if isinstance(body, str) else json.dumps(body)
    return RawResponse(status=200, body=text)


def status(code: int, body: str = "") -> RawResponse:
    return RawResponse(status=code, body=body)


AUTH_OK = ok(AUTH_BODY)


# ── Fake transport ─────────────────────────────────────────


class FakeTransport(Transport):
    """
    Transport that answers from a script.

    Each submitted request consumes one script item: a RawResponse
    (completed normally), an exception (transport failure) or CANCEL.
    Futures are settled on a worker thread named ``fake-transport-*``.
    """

    name = "fake"

    def __init__(self, *script):
        super().__init__()
        self.script = list(script)
        self.requests: list[HttpRequest] = []
        self.released = 0
        self._pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix="fake-transport")
        self._pending: list[Future] = []
        self._gate: threading.Event | None = None

    def queue(self, *items) -> FakeTransport:
        self.script.extend(items)
        return self

    def hold(self) -> threading.Event:
        """Delay completions until the returned event is set."""
        self._gate = threading.Event()
        return self._gate

    def drain(self, timeout: float = 5.0) -> None:
        """Wait until every submitted request has been settled."""
        wait(list(self._pending), timeout=timeout)

    def _submit(self, request: HttpRequest, future: Future) -> None:
        self.requests.append(request)
        item = self.script.pop(0) if self.script else status(599, "unscripted request")
        self._pending.append(self._pool.submit(self._complete, future, item, self._gate))

    def _complete(self, future: Future, item, gate) -> None:
        if gate is not None:
            gate.wait(timeout=5.0)
        if item is CANCEL:
            future.cancel()
        elif isinstance(item, BaseException):
            future.set_exception(item)
        else:
            future.set_result(item)

    def _release(self) -> None:
        self.released += 1
        self._pool.shutdown(wait=True)


class CallbackRecorder:
    """Collects callback(response, error) invocations."""

    def __init__(self):
        self.calls: list[tuple] = []
        self.threads: list[str] = []
        self.fired = threading.Event()

    def __call__(self, response, error):
        self.calls.append((response, error))
        self.threads.append(threading.current_thread().name)
        self.fired.set()

    def wait(self, timeout: float = 5.0):
        assert self.fired.wait(timeout), "callback never fired"
        return self.calls[0]


# ── Fixtures ───────────────────────────────────────────────


@pytest.fixture
def config() -> LogInsightConfig:
    return LogInsightConfig(
        host="li.example.com",
        user="admin",
        password="s3cret",
        scheme="https",
        port=9543,
        ingestion_port=9000,
    )


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport(AUTH_OK)


@pytest.fixture
def client(config, transport):
    c = LogInsightClient(config, transport_factory=lambda cfg: transport)
    yield c
    c.close()


@pytest.fixture
def recorder() -> CallbackRecorder:
    return CallbackRecorder()
