"""Structured logging configuration for the ESU client.

Request log lines carry their details as record extras (see
``request_extra``) so the JSON formatter can emit them as fields while the
text formatter keeps them in the message.
"""

import json
import logging
import sys
from datetime import datetime, timezone

# Extra record attributes copied into JSON output when present.
_EXTRA_FIELDS = ("method", "resource", "status", "duration_ms", "object_id")

# Third-party loggers that log every request at INFO.
_NOISY_LOGGERS = ("httpx", "httpcore")


class JSONFormatter(logging.Formatter):
    """Formats log records as single-line JSON objects.

    Fields: timestamp, level, logger, message, plus any request extras.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        for key in _EXTRA_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                entry[key] = val
        return json.dumps(entry, default=str)


def request_extra(
    method: str,
    resource: str,
    status: int | None = None,
    duration_ms: float | None = None,
    object_id: str | None = None,
) -> dict[str, object]:
    """Build the ``extra`` mapping for a request log call, without empty fields."""
    fields = {
        "method": method,
        "resource": resource,
        "status": status,
        "duration_ms": duration_ms,
        "object_id": object_id,
    }
    return {k: v for k, v in fields.items() if v is not None}


def configure_logging(level: str = "INFO", fmt: str = "text") -> None:
    """Configure root logging with the specified level and format.

    The httpx and httpcore loggers are held at WARNING unless DEBUG output
    was requested.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        fmt: 'text' for human-readable lines, 'json' for structured output.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(numeric_level)

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)

    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )

    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(
            logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
        )
