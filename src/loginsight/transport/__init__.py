"""
Log Insight Transport Layer

Requests leave the client through a Transport: a non-blocking executor that
returns a cancellable ``concurrent.futures.Future`` per request.

Usage:
    from loginsight.transport import HttpxTransport

    transport = HttpxTransport(timeout=10.0)
    future = transport.execute(request)
    raw = future.result()
    transport.close()
"""

from loginsight.transport.base import (
    HttpRequest,
    RawResponse,
    Transport,
    TransportFactory,
)
from loginsight.transport.httpx_transport import HttpxTransport

__all__ = [
    "HttpRequest",
    "RawResponse",
    "Transport",
    "TransportFactory",
    "HttpxTransport",
]
