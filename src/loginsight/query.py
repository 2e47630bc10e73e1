"""
Query path builders for the events and aggregated-events endpoints.

The server encodes a query as a sequence of ``field/OPERATOR value`` path
segments followed by query parameters, e.g.::

    text/CONTAINS%20error/timestamp/GT%200?limit=100&order-by-direction=DESC

These builders only assemble such relative URLs; they do not parse them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from urllib.parse import quote, urlencode


class Operator(str, Enum):
    """Constraint operators understood by the query API."""

    CONTAINS = "CONTAINS"
    NOT_CONTAINS = "NOT_CONTAINS"
    HAS = "HAS"
    NOT_HAS = "NOT_HAS"
    MATCHES_REGEX = "MATCHES_REGEX"
    NOT_MATCHES_REGEX = "NOT_MATCHES_REGEX"
    STARTS_WITH = "STARTS_WITH"
    NOT_STARTS_WITH = "NOT_STARTS_WITH"
    EQ = "="
    NE = "!="
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="
    EXISTS = "EXISTS"
    LAST = "LAST"  # value is a window in milliseconds, no separating space


class SortOrder(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


class AggregationFunction(str, Enum):
    COUNT = "COUNT"
    SAMPLE = "SAMPLE"
    UCOUNT = "UCOUNT"
    MIN = "MIN"
    MAX = "MAX"
    SUM = "SUM"
    STDDEV = "STDDEV"
    VARIANCE = "VARIANCE"
    AVG = "AVG"


@dataclass(frozen=True)
class FieldConstraint:
    """``name OPERATOR value`` as one path segment pair."""

    name: str
    operator: Operator
    value: str | int | None = None

    def __post_init__(self):
        if not self.name:
            raise ValueError("constraint field name must not be empty")
        if self.operator is Operator.EXISTS:
            if self.value is not None:
                raise ValueError("EXISTS takes no value")
        elif self.value is None or self.value == "":
            raise ValueError(f"{self.operator.name} requires a value")

    def to_path(self) -> str:
        op = self.operator.value
        if self.operator is Operator.EXISTS:
            expr = op
        elif self.operator is Operator.LAST:
            expr = f"{op}{self.value}"
        else:
            expr = f"{op} {self.value}"
        return f"{quote(self.name, safe='')}/{quote(expr, safe='')}"


@dataclass
class MessageQuery:
    """Relative URL for a message (events) query.

    >>> MessageQuery().where("text", Operator.CONTAINS, "error").limit(10).to_url()
    'text/CONTAINS%20error?limit=10'
    """

    constraints: list[FieldConstraint] = field(default_factory=list)
    params: dict[str, str] = field(default_factory=dict)

    def where(self, name: str, operator: Operator, value: str | int | None = None):
        self.constraints.append(FieldConstraint(name, operator, value))
        return self

    def limit(self, count: int):
        if count <= 0:
            raise ValueError(f"limit must be positive: {count}")
        self.params["limit"] = str(count)
        return self

    def timeout(self, millis: int):
        if millis <= 0:
            raise ValueError(f"timeout must be positive: {millis}")
        self.params["timeout"] = str(millis)
        return self

    def order_by(self, direction: SortOrder):
        self.params["order-by-direction"] = SortOrder(direction).value
        return self

    def to_url(self) -> str:
        path = "/".join(c.to_path() for c in self.constraints)
        if self.params:
            return f"{path}?{urlencode(self.params)}"
        return path


@dataclass
class AggregateQuery(MessageQuery):
    """Relative URL for an aggregated-events query."""

    def bin_width(self, millis: int):
        if millis <= 0:
            raise ValueError(f"bin width must be positive: {millis}")
        self.params["bin-width"] = str(millis)
        return self

    def aggregate(self, function: AggregationFunction, field_name: str | None = None):
        self.params["aggregation-function"] = AggregationFunction(function).value
        if field_name:
            self.params["aggregation-field"] = field_name
        return self
