"""Structured JSON logging with async-safe correlation IDs.

Every log line is JSON with a correlation_id that ties together the
upstream calls made while serving one request, including the parallel
probes of a statistics fan-out. Service keys are masked in every
formatted line, whichever formatter is installed.
"""

import json
import logging
import re
from contextvars import ContextVar
from datetime import datetime, timezone

# Async-safe correlation ID; propagates through await chains and into gathered tasks
correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")

EXTRA_FIELDS = ("endpoint", "attempt", "error_kind", "duration_ms", "content_id", "region_code")

# The upstream authenticates with a serviceKey query parameter, so any logged
# request URL (ours or one embedded in an httpx error message) carries it.
_SERVICE_KEY_PARAM = re.compile(r"(serviceKey=)[^&\s\"'\\]+", re.IGNORECASE)
REDACTED = "***"

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def redact(text: str) -> str:
    """Mask every serviceKey value in ``text``."""
    return _SERVICE_KEY_PARAM.sub(rf"\g<1>{REDACTED}", text)


def get_correlation_id() -> str:
    """Return the current correlation ID, or empty string if not set."""
    return correlation_id.get()


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": redact(record.getMessage()),
        }

        cid = correlation_id.get()
        if cid:
            log_entry["correlation_id"] = cid

        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = redact(self.formatException(record.exc_info))

        # Include extra fields passed via logger.info("msg", extra={...})
        for key in EXTRA_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                log_entry[key] = redact(val) if isinstance(val, str) else val

        return json.dumps(log_entry, default=str, ensure_ascii=False)


class RedactingFormatter(logging.Formatter):
    """Plain-text formatter that masks service keys in the rendered line."""

    def format(self, record: logging.LogRecord) -> str:
        return redact(super().format(record))


def setup_logging(json_format: bool = True, level: str = "INFO") -> None:
    """Configure root logger with JSON or text format.

    Args:
        json_format: True for JSON (production), False for text (local dev).
        level: Log level string (DEBUG, INFO, WARNING, ERROR).
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove existing handlers to avoid duplicates
    root.handlers.clear()

    handler = logging.StreamHandler()
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(RedactingFormatter(TEXT_FORMAT))
    root.addHandler(handler)

    # Quiet noisy libraries; httpx logs every request URL, service key included
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
