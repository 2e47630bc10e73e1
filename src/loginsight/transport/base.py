"""
Base Transport Interface: the narrow contract the client executes requests through.

A transport takes a fully-formed HttpRequest and hands back a
``concurrent.futures.Future`` that resolves to a RawResponse. The future is
the single submit primitive for both execution modes: blocking callers wait
on it, callback callers get notified when it completes.

Implementations must:
  - never block in ``execute``
  - complete each future exactly once (result, exception or cancellation)
  - invoke completion callbacks from their own completion thread
  - raise ClientClosedError from ``execute`` once ``close`` has been called
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Optional

from loginsight.core.errors import ClientClosedError

if TYPE_CHECKING:
    from loginsight.core.config import LogInsightConfig


@dataclass(frozen=True)
class HttpRequest:
    """An outgoing request. Header order is kept and names may repeat."""

    method: str
    url: str
    headers: tuple[tuple[str, str], ...] = ()
    body: bytes | None = None
    family: str = ""  # endpoint family, for logs and error messages

    def header(self, name: str) -> str | None:
        """First value of ``name`` (case-insensitive), or None."""
        lowered = name.lower()
        for key, value in self.headers:
            if key.lower() == lowered:
                return value
        return None


@dataclass(frozen=True)
class RawResponse:
    """Status and decoded body of a completed HTTP exchange."""

    status: int
    body: str = ""
    headers: dict[str, str] = field(default_factory=dict)


DoneCallback = Callable[["Future[RawResponse]"], None]


class Transport(ABC):
    """
    Base class for all transports.

    Subclasses implement ``_submit`` and ``_release``; the open/closed
    bookkeeping lives here so every transport fails the same way after close.
    """

    name: str = "base"

    def __init__(self):
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def execute(
        self, request: HttpRequest, callback: Optional[DoneCallback] = None
    ) -> Future[RawResponse]:
        """
        Submit ``request`` without blocking.

        Args:
            request: The request to send.
            callback: Optional done-callback attached before submission, so it
                always runs on the transport's completion path.

        Returns:
            A cancellable future resolving to the RawResponse.

        Raises:
            ClientClosedError: if the transport has been closed.
        """
        future: Future[RawResponse] = Future()
        if callback is not None:
            future.add_done_callback(callback)
        with self._lock:
            if self._closed:
                raise ClientClosedError(f"{self.name} transport is closed")
            self._submit(request, future)
        return future

    def close(self) -> None:
        """Release the transport. Safe to call more than once."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._release()

    @abstractmethod
    def _submit(self, request: HttpRequest, future: Future[RawResponse]) -> None:
        """Start sending ``request``; settle ``future`` when done."""

    @abstractmethod
    def _release(self) -> None:
        """Free underlying resources. Called exactly once."""


TransportFactory = Callable[["LogInsightConfig"], Transport]
