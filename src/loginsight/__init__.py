"""
loginsight: client for the Log Insight HTTP API.

Session authentication, message and aggregate queries, and message
ingestion, each available as a blocking call or with a completion callback.
"""

from loginsight.client import LogInsightClient
from loginsight.core.config import LogInsightConfig
from loginsight.core.errors import (
    ApiError,
    AuthFailure,
    ClientClosedError,
    ConfigError,
    LogInsightError,
    ParseError,
    RequestCancelled,
    SessionExpired,
    TransportError,
)
from loginsight.models import (
    AggregateResponse,
    Bin,
    Event,
    Field,
    IngestionRequest,
    IngestionResponse,
    Message,
    MessageQueryResponse,
)
from loginsight.query import (
    AggregateQuery,
    AggregationFunction,
    FieldConstraint,
    MessageQuery,
    Operator,
    SortOrder,
)

__all__ = [
    "LogInsightClient",
    "LogInsightConfig",
    # Errors
    "LogInsightError",
    "ConfigError",
    "AuthFailure",
    "SessionExpired",
    "ApiError",
    "TransportError",
    "RequestCancelled",
    "ParseError",
    "ClientClosedError",
    # Models
    "Field",
    "Event",
    "MessageQueryResponse",
    "Bin",
    "AggregateResponse",
    "Message",
    "IngestionRequest",
    "IngestionResponse",
    # Queries
    "MessageQuery",
    "AggregateQuery",
    "FieldConstraint",
    "Operator",
    "SortOrder",
    "AggregationFunction",
]
