"""
Log Insight Logging: optional console output for applications using the client.

The library only logs through module loggers under ``loginsight`` and never
touches handlers on import. ``setup_logging()`` attaches one handler to the
``loginsight`` logger so an application or script can watch requests go by
without reconfiguring its own root logger.

Request records carry these extra fields (set by the httpx transport):
    method, url, status, duration_ms, family
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import IO, Optional

LOGGER_NAME = "loginsight"

# Request fields forwarded from logger.debug(..., extra={...})
_STRUCTURED_FIELDS = (
    "method",
    "url",
    "status",
    "duration_ms",
    "family",
)

_LEVEL_COLORS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[1;31m",
}
_RESET = "\033[0m"


def _request_fields(record: logging.LogRecord) -> dict:
    return {k: getattr(record, k) for k in _STRUCTURED_FIELDS if hasattr(record, k)}


class ColorFormatter(logging.Formatter):
    """One line per record, level colored on a terminal.

    Request fields are appended as ``key=value`` pairs so status codes and
    timings stay greppable in plain text.
    """

    def __init__(self, use_color: bool = True):
        super().__init__(datefmt="%H:%M:%S")
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        level = record.levelname
        if self.use_color and level in _LEVEL_COLORS:
            level = f"{_LEVEL_COLORS[level]}{level}{_RESET}"
        line = f"{self.formatTime(record, self.datefmt)} {level} {record.name}: {record.getMessage()}"
        family = getattr(record, "family", None)
        if family is not None:
            fields = " ".join(
                f"{k}={v}" for k, v in _request_fields(record).items() if k != "url"
            )
            line = f"{line} [{fields}]"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class StructuredFormatter(logging.Formatter):
    """JSON log formatter for log aggregation.

    Each log line is a single JSON object with the request fields at the
    top level.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            **_request_fields(record),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(
    level: Optional[str] = None,
    fmt: Optional[str] = None,
    stream: Optional[IO[str]] = None,
    color: Optional[bool] = None,
) -> logging.Logger:
    """Send ``loginsight`` records to ``stream`` (stderr by default).

    Arguments left as None fall back to the environment:
        LOGINSIGHT_LOG_LEVEL : DEBUG / INFO / WARNING / ERROR (default: INFO)
        LOGINSIGHT_LOG_FORMAT: text / json (default: text)
        LOGINSIGHT_LOG_COLOR : true / false / auto (default: auto, TTY detection)

    Calling it again replaces the handler installed by the previous call.
    """
    level_name = (level or os.getenv("LOGINSIGHT_LOG_LEVEL", "INFO")).upper()
    log_format = (fmt or os.getenv("LOGINSIGHT_LOG_FORMAT", "text")).lower()
    stream = stream if stream is not None else sys.stderr

    if log_format == "json":
        formatter: logging.Formatter = StructuredFormatter()
    else:
        if color is None:
            env = os.getenv("LOGINSIGHT_LOG_COLOR", "auto").lower()
            color = env == "true" or (env == "auto" and stream.isatty())
        formatter = ColorFormatter(use_color=color)

    handler = logging.StreamHandler(stream)
    handler.setFormatter(formatter)
    handler._loginsight = True  # type: ignore[attr-defined]

    logger = logging.getLogger(LOGGER_NAME)
    for old in [h for h in logger.handlers if getattr(h, "_loginsight", False)]:
        logger.removeHandler(old)
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level_name, logging.INFO))
    logger.propagate = False

    # Per-connection chatter duplicates the transport's request lines
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    return logger
