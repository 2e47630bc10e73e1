"""
Response classification.

A finished transport future becomes exactly one Outcome:

    Success(body)               HTTP 200
    AuthExpired(status, body)   HTTP 401 or 440
    GenericError(status, body)  any other status
    TransportFailure(cause)     no HTTP answer at all
    Cancelled()                 the transport cancelled the request

Only Success is ever parsed; every other outcome maps to one error.
"""

from __future__ import annotations

from concurrent.futures import CancelledError, Future
from dataclasses import dataclass
from typing import Type, TypeVar, Union

from loginsight.core.errors import (
    ApiError,
    LogInsightError,
    ParseError,
    RequestCancelled,
    SessionExpired,
    TransportError,
)
from loginsight.transport.base import RawResponse

T = TypeVar("T")

AUTH_EXPIRED_STATUSES = frozenset({401, 440})


@dataclass(frozen=True)
class Success:
    body: str


@dataclass(frozen=True)
class AuthExpired:
    status: int
    body: str = ""


@dataclass(frozen=True)
class GenericError:
    status: int
    body: str = ""


@dataclass(frozen=True)
class TransportFailure:
    cause: BaseException


@dataclass(frozen=True)
class Cancelled:
    pass


Outcome = Union[Success, AuthExpired, GenericError, TransportFailure, Cancelled]


class ResponseClassifier:
    """Maps raw HTTP outcomes to Outcomes, and Outcomes to results or errors."""

    def classify(self, status: int, body: str) -> Outcome:
        if status == 200:
            return Success(body)
        if status in AUTH_EXPIRED_STATUSES:
            return AuthExpired(status, body)
        return GenericError(status, body)

    def outcome_of(self, future: Future[RawResponse]) -> Outcome:
        """Classify a transport future, waiting for it if needed."""
        if future.cancelled():
            return Cancelled()
        try:
            exc = future.exception()
        except CancelledError:
            # Cancelled while we were waiting
            return Cancelled()
        if exc is not None:
            return TransportFailure(exc)
        raw = future.result()
        return self.classify(raw.status, raw.body)

    def parse(self, outcome: Outcome, target: Type[T]) -> T:
        """
        Build ``target`` (any type with a ``from_json`` classmethod) from a Success body.

        Raises:
            ParseError: the body does not match ``target``.
            ValueError: ``outcome`` is not a Success.
        """
        if not isinstance(outcome, Success):
            raise ValueError(f"cannot parse a {type(outcome).__name__} outcome")
        try:
            return target.from_json(outcome.body)  # type: ignore[attr-defined]
        except ParseError:
            raise
        except Exception as e:
            raise ParseError(
                f"Unable to read {target.__name__} from response: {e}", body=outcome.body
            ) from e

    def error_for(self, outcome: Outcome, family: str = "") -> LogInsightError:
        """The error a non-Success outcome surfaces as."""
        what = f"{family} request" if family else "request"
        if isinstance(outcome, AuthExpired):
            return SessionExpired(
                f"Session expired: {what} got HTTP {outcome.status}",
                status=outcome.status,
                body=outcome.body,
            )
        if isinstance(outcome, GenericError):
            return ApiError(
                f"Log Insight rejected {what}: HTTP {outcome.status}",
                status=outcome.status,
                body=outcome.body,
            )
        if isinstance(outcome, TransportFailure):
            if isinstance(outcome.cause, LogInsightError):
                return outcome.cause
            err = TransportError(f"{what} failed: {outcome.cause}")
            err.__cause__ = outcome.cause
            return err
        if isinstance(outcome, Cancelled):
            return RequestCancelled(f"{what} cancelled")
        raise ValueError(f"{type(outcome).__name__} is not an error outcome")
