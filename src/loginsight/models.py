"""
Log Insight Models: value objects exchanged with the server.

Response types are frozen dataclasses built by ``from_json``. A body that
is not valid JSON, or lacks the keys a type cannot do without, raises
ParseError; no partially-populated object is ever returned.

``IngestionRequest`` is the one mutable type: callers build it up with
``add_message`` and the client serializes it with ``to_json``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from loginsight.core.errors import ParseError


def _load_object(text: str, type_name: str) -> dict[str, Any]:
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise ParseError(f"{type_name}: response is not valid JSON: {e}", body=text) from e
    if not isinstance(data, dict):
        raise ParseError(f"{type_name}: expected a JSON object", body=text)
    return data


def _require_list(data: dict[str, Any], key: str, type_name: str, text: str) -> list:
    value = data.get(key)
    if not isinstance(value, list):
        raise ParseError(f"{type_name}: missing or invalid '{key}' array", body=text)
    return value


@dataclass(frozen=True)
class AuthInfo:
    """Body of a successful session handshake."""

    session_id: str
    user_id: str = ""
    ttl: int = 0  # seconds

    @classmethod
    def from_json(cls, text: str) -> AuthInfo:
        data = _load_object(text, "AuthInfo")
        session_id = data.get("sessionId")
        if not isinstance(session_id, str) or not session_id:
            raise ParseError("AuthInfo: missing 'sessionId'", body=text)
        try:
            return cls(
                session_id=session_id,
                user_id=str(data.get("userId", "")),
                ttl=int(data.get("ttl", 0)),
            )
        except (TypeError, ValueError) as e:
            raise ParseError(f"AuthInfo: {e}", body=text) from e


@dataclass(frozen=True)
class Field:
    """One extracted field of a message.

    Either ``content`` is given directly, or ``start_position``/``length``
    point into the message text. Unset attributes are left out of
    ``to_dict``.
    """

    name: str
    content: str | None = None
    start_position: int | None = None
    length: int | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"name": self.name}
        if self.content not in (None, ""):
            out["content"] = self.content
        if self.start_position is not None:
            out["startPosition"] = self.start_position
        if self.length is not None:
            out["length"] = self.length
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Field:
        return cls(
            name=data["name"],
            content=data.get("content"),
            start_position=data.get("startPosition"),
            length=data.get("length"),
        )


def _fields(raw: Any) -> tuple[Field, ...]:
    return tuple(Field.from_dict(f) for f in (raw or []))


@dataclass(frozen=True)
class Event:
    """A single log message returned by a message query."""

    text: str
    timestamp: int = 0  # epoch milliseconds
    fields: tuple[Field, ...] = ()

    def field_value(self, name: str) -> str | None:
        """Content of the first field named ``name``, if any."""
        for f in self.fields:
            if f.name == name:
                if f.content is not None:
                    return f.content
                if f.start_position is not None and f.length is not None:
                    start = int(f.start_position)
                    return self.text[start : start + int(f.length)]
        return None


@dataclass(frozen=True)
class MessageQueryResponse:
    """Result of GET /api/v1/events/..."""

    events: tuple[Event, ...] = ()
    complete: bool = True
    duration: int = 0  # server-side milliseconds

    @classmethod
    def from_json(cls, text: str) -> MessageQueryResponse:
        data = _load_object(text, "MessageQueryResponse")
        raw_events = _require_list(data, "events", "MessageQueryResponse", text)
        try:
            events = tuple(
                Event(
                    text=e.get("text", ""),
                    timestamp=int(e.get("timestamp", 0)),
                    fields=_fields(e.get("fields")),
                )
                for e in raw_events
            )
            return cls(
                events=events,
                complete=bool(data.get("complete", True)),
                duration=int(data.get("duration", 0)),
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ParseError(f"MessageQueryResponse: malformed event: {e}", body=text) from e


@dataclass(frozen=True)
class Bin:
    """One time bucket of an aggregate query."""

    min_timestamp: int
    max_timestamp: int
    value: float = 0.0


@dataclass(frozen=True)
class AggregateResponse:
    """Result of GET /api/v1/aggregated-events/..."""

    bins: tuple[Bin, ...] = ()
    complete: bool = True
    duration: int = 0

    @classmethod
    def from_json(cls, text: str) -> AggregateResponse:
        data = _load_object(text, "AggregateResponse")
        raw_bins = _require_list(data, "bins", "AggregateResponse", text)
        try:
            bins = tuple(
                Bin(
                    min_timestamp=int(b["minTimestamp"]),
                    max_timestamp=int(b["maxTimestamp"]),
                    value=float(b.get("value", 0)),
                )
                for b in raw_bins
            )
            return cls(
                bins=bins,
                complete=bool(data.get("complete", True)),
                duration=int(data.get("duration", 0)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ParseError(f"AggregateResponse: malformed bin: {e}", body=text) from e

    @property
    def total(self) -> float:
        return sum(b.value for b in self.bins)


@dataclass(frozen=True)
class Message:
    """A log message to ingest."""

    text: str
    timestamp: int | None = None  # epoch milliseconds; server time when absent
    fields: tuple[Field, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"text": self.text}
        if self.timestamp is not None:
            out["timestamp"] = self.timestamp
        if self.fields:
            out["fields"] = [f.to_dict() for f in self.fields]
        return out


@dataclass
class IngestionRequest:
    """Batch of messages for POST /api/v1/messages/ingest/{agentId}."""

    messages: list[Message] = field(default_factory=list)

    def add_message(self, message: Message) -> IngestionRequest:
        self.messages.append(message)
        return self

    def to_dict(self) -> dict[str, Any]:
        return {"messages": [m.to_dict() for m in self.messages]}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))


@dataclass(frozen=True)
class IngestionResponse:
    """Server acknowledgment of an ingestion batch."""

    status: str
    message: str = ""
    ingested: int = 0

    @classmethod
    def from_json(cls, text: str) -> IngestionResponse:
        data = _load_object(text, "IngestionResponse")
        status = data.get("status")
        if not isinstance(status, str):
            raise ParseError("IngestionResponse: missing 'status'", body=text)
        try:
            return cls(
                status=status,
                message=str(data.get("message", "")),
                ingested=int(data.get("ingested", 0)),
            )
        except (TypeError, ValueError) as e:
            raise ParseError(f"IngestionResponse: {e}", body=text) from e
