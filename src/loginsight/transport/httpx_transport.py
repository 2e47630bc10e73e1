"""
HttpxTransport: the default non-blocking transport.

One ``httpx.AsyncClient`` is shared by every request and driven by a private
asyncio event loop running in a daemon thread. Finished requests are handed
to a small pool of dispatcher threads, which settle the futures and so run
the completion callbacks. No caller code ever runs on the loop thread, so a
callback may itself make blocking calls (re-authenticate, resubmit) while
the loop keeps serving requests.

Cancelling a returned future cancels the in-flight request. Closing the
transport cancels whatever is still in flight, closes the httpx client,
stops the loop and drains the dispatchers.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from concurrent.futures import Future, InvalidStateError, ThreadPoolExecutor
from typing import TYPE_CHECKING, Optional

import httpx

from loginsight.transport.base import HttpRequest, RawResponse, Transport

if TYPE_CHECKING:
    from loginsight.core.config import LogInsightConfig

logger = logging.getLogger(__name__)

_SHUTDOWN_TIMEOUT = 5.0  # seconds
DEFAULT_DISPATCHERS = 4


class HttpxTransport(Transport):
    """Async httpx client on a background event loop."""

    name = "httpx"

    def __init__(
        self,
        timeout: float = 30.0,
        verify: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        dispatchers: int = DEFAULT_DISPATCHERS,
    ):
        super().__init__()
        self._client = httpx.AsyncClient(
            timeout=timeout, verify=verify, transport=transport
        )
        self._tasks: set[asyncio.Task] = set()
        self._local = threading.local()
        self._dispatch = ThreadPoolExecutor(
            max_workers=dispatchers,
            thread_name_prefix="loginsight-dispatch",
            initializer=self._mark_dispatcher,
        )
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._run_loop, name="loginsight-transport", daemon=True
        )
        self._thread.start()

    @classmethod
    def from_config(cls, config: LogInsightConfig) -> HttpxTransport:
        return cls(timeout=config.timeout, verify=config.verify_ssl)

    # ─── Loop thread ──────────────────────────────────────────────

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_forever()
        finally:
            self._loop.close()

    def _mark_dispatcher(self) -> None:
        self._local.dispatcher = True

    def _submit(self, request: HttpRequest, future: Future[RawResponse]) -> None:
        self._loop.call_soon_threadsafe(self._start, request, future)

    def _start(self, request: HttpRequest, future: Future[RawResponse]) -> None:
        if future.cancelled():
            return
        if self._closed:
            self._dispatch.submit(future.cancel)
            return
        task = self._loop.create_task(self._send(request))
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._settle(future, t))
        future.add_done_callback(lambda f: self._propagate_cancel(f, task))

    def _propagate_cancel(self, future: Future, task: asyncio.Task) -> None:
        if not future.cancelled() or task.done():
            return
        try:
            self._loop.call_soon_threadsafe(task.cancel)
        except RuntimeError:
            # Loop already closed; shutdown cancelled the task
            pass

    def _settle(self, future: Future[RawResponse], task: asyncio.Task) -> None:
        """Read the task's outcome here, complete the future on a dispatcher."""
        self._tasks.discard(task)
        if future.done():
            return
        if task.cancelled():
            self._dispatch.submit(future.cancel)
        elif task.exception() is not None:
            self._dispatch.submit(_complete, future.set_exception, task.exception())
        else:
            self._dispatch.submit(_complete, future.set_result, task.result())

    async def _send(self, request: HttpRequest) -> RawResponse:
        started = time.monotonic()
        resp = await self._client.request(
            request.method,
            request.url,
            headers=list(request.headers),
            content=request.body,
        )
        duration_ms = int((time.monotonic() - started) * 1000)
        logger.debug(
            "%s %s -> %d (%dms)",
            request.method,
            request.url,
            resp.status_code,
            duration_ms,
            extra={
                "method": request.method,
                "url": request.url,
                "status": resp.status_code,
                "duration_ms": duration_ms,
                "family": request.family,
            },
        )
        return RawResponse(
            status=resp.status_code, body=resp.text, headers=dict(resp.headers)
        )

    # ─── Shutdown ─────────────────────────────────────────────────

    async def _shutdown(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        await self._client.aclose()

    def _release(self) -> None:
        logger.debug("Stopping the httpx transport")
        done = asyncio.run_coroutine_threadsafe(self._shutdown(), self._loop)
        try:
            done.result(timeout=_SHUTDOWN_TIMEOUT)
        except Exception as e:
            logger.warning("httpx transport shutdown incomplete: %s", e)
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=_SHUTDOWN_TIMEOUT)
        # A dispatcher cannot wait for its own pool to drain
        self._dispatch.shutdown(wait=not getattr(self._local, "dispatcher", False))


def _complete(setter, value) -> None:
    try:
        setter(value)
    except InvalidStateError:
        # Caller cancelled while the outcome was on its way
        pass
