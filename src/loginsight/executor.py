"""
DualModeExecutor: drives requests through the transport in blocking or callback mode.

Both modes share one path: submit to the transport, turn the finished
future into an Outcome, then either parse the Success or build the error.
The blocking mode waits on the future on the caller's thread; the callback
mode attaches a done-callback and returns immediately.

A 401/440 on any request invalidates the session before the error is
raised or delivered. Nothing is retried.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future
from typing import Callable, Generic, Optional, Type, TypeVar

from loginsight.classifier import AuthExpired, ResponseClassifier, Success
from loginsight.core.errors import LogInsightError
from loginsight.session import SessionManager
from loginsight.transport.base import HttpRequest, RawResponse, Transport

logger = logging.getLogger(__name__)

T = TypeVar("T")

# callback(response, error): exactly one of the two is None
AsyncCallback = Callable[[Optional[T], Optional[Exception]], None]


class _Delivery(Generic[T]):
    """Done-callback that resolves a future once and hands the result on."""

    def __init__(
        self,
        executor: DualModeExecutor,
        request: HttpRequest,
        target: Type[T],
        callback: AsyncCallback,
    ):
        self._executor = executor
        self._request = request
        self._target = target
        self._callback = callback
        self._fired = False

    def __call__(self, future: Future[RawResponse]) -> None:
        if self._fired:
            return
        self._fired = True
        try:
            response, error = self._executor.resolve(future, self._request, self._target), None
        except LogInsightError as e:
            response, error = None, e
        _invoke(self._callback, response, error, self._request.url)


def _invoke(callback: AsyncCallback, response, error, url: str) -> None:
    try:
        callback(response, error)
    except Exception:
        logger.exception("Callback for %s raised", url)


class DualModeExecutor:
    def __init__(
        self,
        transport: Transport,
        session: SessionManager,
        classifier: Optional[ResponseClassifier] = None,
    ):
        self._transport = transport
        self._session = session
        self._classifier = classifier or ResponseClassifier()

    def resolve(self, future: Future[RawResponse], request: HttpRequest, target: Type[T]) -> T:
        """
        Typed result of a transport future, waiting for it if needed.

        Raises:
            SessionExpired: 401/440 (the session is invalidated first).
            ApiError: any other non-200, transport failure or cancellation.
            ParseError: 200 with a body that does not fit ``target``.
        """
        outcome = self._classifier.outcome_of(future)
        if isinstance(outcome, Success):
            return self._classifier.parse(outcome, target)
        if isinstance(outcome, AuthExpired):
            logger.warning(
                "Session expired (HTTP %d) on %s request", outcome.status, request.family
            )
            self._session.invalidate()
        raise self._classifier.error_for(outcome, request.family)

    def execute_blocking(self, request: HttpRequest, target: Type[T]) -> T:
        """Submit ``request`` and wait for its typed result on this thread."""
        future = self._transport.execute(request)
        return self.resolve(future, request, target)

    def execute_async(
        self, request: HttpRequest, target: Type[T], callback: AsyncCallback
    ) -> Future[RawResponse]:
        """
        Submit ``request`` and return at once.

        ``callback(response, error)`` runs exactly once, on the transport's
        completion thread. Nothing is raised to the submitting thread.
        """
        delivery = _Delivery(self, request, target, callback)
        try:
            return self._transport.execute(request, delivery)
        except LogInsightError as e:
            return self.fail_async(e, callback, request.url)

    def fail_async(self, error: Exception, callback: AsyncCallback, url: str = "") -> Future[RawResponse]:
        """Report an error that happened before submission through ``callback``."""
        future: Future[RawResponse] = Future()
        future.set_exception(error)
        _invoke(callback, None, error, url)
        return future
