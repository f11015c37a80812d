"""Logging setup shared by the API, the worker and the CLI.

``setup_logging`` installs one stdout handler on the root logger. Records are
written as JSON lines (``LOG_FORMAT=json``) or plain text, carry the current
request id, and pass through a filter that masks API keys and tokens before
anything is written.
"""

import contextvars
import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import Optional

# Set per request by RequestContextMiddleware.
request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="")

_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({})))

_TEXT_FORMAT = "%(asctime)s %(levelname)-7s [%(request_id)s] %(name)s: %(message)s"

_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "urllib3", "LiteLLM", "httpx")

REDACTED = "***REDACTED***"

# (pattern, keep-prefix group or 0 to mask the whole match)
_SECRET_PATTERNS = (
    (re.compile(r"\bsk-[A-Za-z0-9_\-]{20,}"), 0),
    (re.compile(r"\beyJ[\w\-]{10,}\.[\w\-]{10,}\.[\w\-]{10,}"), 0),
    (re.compile(r"(?i)(bearer\s+)[\w.\-]{20,}"), 1),
    (re.compile(
        r"(?i)((?:x-n8n-api-key|api_?key|service_role_key|secret|password|token|authorization)\s*[=:]\s*)[^\s,'\"]{8,}"
    ), 1),
)


def redact(text: str) -> str:
    """Mask OpenAI keys, JWTs (Supabase and n8n keys are JWTs), bearer tokens and key=value secrets."""
    for pattern, keep in _SECRET_PATTERNS:
        if keep:
            text = pattern.sub(lambda m: m.group(keep) + REDACTED, text)
        else:
            text = pattern.sub(REDACTED, text)
    return text


class _ContextFilter(logging.Filter):
    """Attach the request id and redact the rendered message."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get() or "-"
        record.msg = redact(record.getMessage())
        record.args = None
        if record.exc_info and not record.exc_text:
            record.exc_text = logging.Formatter().formatException(record.exc_info)
        if record.exc_text:
            record.exc_text = redact(record.exc_text)
        return True


class _JsonFormatter(logging.Formatter):
    """One JSON object per line; ``extra={...}`` keys become top-level fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if getattr(record, "request_id", "-") != "-":
            entry["request_id"] = record.request_id
        for key, value in vars(record).items():
            if key not in _STANDARD_ATTRS and key not in entry and key != "request_id":
                entry[key] = value
        if record.exc_text:
            entry["exception"] = record.exc_text
        return json.dumps(entry, default=str)


def setup_logging(log_level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """Configure the root logger. Safe to call more than once.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL (default INFO).
        log_format: ``json`` (default) or ``text``.
    """
    level = (log_level or "INFO").upper()
    fmt = (log_format or "json").lower()

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(_ContextFilter())
    if fmt == "json":
        handler.setFormatter(_JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug("Logging configured", extra={"level": level, "format": fmt})
