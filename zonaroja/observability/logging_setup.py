"""Structured logging bootstrap for the API and CLI."""

from __future__ import annotations

import json
import logging
import os
import re
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

_BASE_LOG_RECORD_FIELDS = set(
    logging.LogRecord(
        name="",
        level=0,
        pathname="",
        lineno=0,
        msg="",
        args=(),
        exc_info=None,
    ).__dict__.keys()
)

_SENSITIVE_KEYS = (
    "password",
    "token",
    "secret",
    "api_key",
    "apikey",
    "authorization",
    "cookie",
    "session_token",
)
_EMAIL_RE = re.compile(r"\b([A-Za-z0-9._%+-])[A-Za-z0-9._%+-]*@([A-Za-z0-9.-]+\.[A-Za-z]{2,})\b")
_BEARER_RE = re.compile(r"(?i)\bbearer\s+[A-Za-z0-9\-._~+/]+=*")

REDACTED = "[REDACTED]"

_request_id_ctx: ContextVar[Optional[str]] = ContextVar(
    "zonaroja_request_id", default=None
)


def get_request_id() -> Optional[str]:
    return _request_id_ctx.get()


@contextmanager
def request_scope(request_id: str) -> Iterator[str]:
    """Tag every log line emitted inside the block with *request_id*."""
    token = _request_id_ctx.set(request_id)
    try:
        yield request_id
    finally:
        _request_id_ctx.reset(token)


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in _SENSITIVE_KEYS)


def mask_text(value: str) -> str:
    """Hide bearer tokens and keep only the first letter of e-mail local parts."""
    value = _BEARER_RE.sub(f"Bearer {REDACTED}", value)
    return _EMAIL_RE.sub(r"\1***@\2", value)


def redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            k: (REDACTED if _is_sensitive(str(k)) else redact(v))
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(v) for v in value]
    if isinstance(value, str):
        return mask_text(value)
    return value


class _RequestContextFilter(logging.Filter):
    """Inject request-scoped context into logs when missing."""

    def filter(self, record: logging.LogRecord) -> bool:
        request_id = getattr(record, "request_id", None)
        if request_id is None:
            ctx_request_id = get_request_id()
            if ctx_request_id:
                record.request_id = ctx_request_id
        return True


class _RedactionFilter(logging.Filter):
    """Mask secrets and e-mail addresses in messages and extra fields."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = mask_text(record.msg)
        for key in list(record.__dict__):
            if key in _BASE_LOG_RECORD_FIELDS or key.startswith("_"):
                continue
            if _is_sensitive(key):
                record.__dict__[key] = REDACTED
            else:
                record.__dict__[key] = redact(record.__dict__[key])
        return True


class _JsonFormatter(logging.Formatter):
    """Emit compact JSON log lines with common request fields."""

    _fields = (
        "event",
        "request_id",
        "method",
        "path",
        "status_code",
        "duration_ms",
        "user_id",
    )

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in self._fields:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value
        for key, value in record.__dict__.items():
            if (
                key in _BASE_LOG_RECORD_FIELDS
                or key in payload
                or key.startswith("_")
            ):
                continue
            if value is not None:
                payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging() -> None:
    """Configure root logger with structured output once."""
    root = logging.getLogger()
    if getattr(root, "_zonaroja_logging_configured", False):
        return

    level_name = os.environ.get("APP_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    fmt = os.environ.get("APP_LOG_FORMAT", "json").lower().strip()

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(_RequestContextFilter())
    handler.addFilter(_RedactionFilter())
    if fmt == "json":
        handler.setFormatter(_JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )

    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # Keep uvicorn output in the same stream and format.
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logger = logging.getLogger(name)
        logger.handlers.clear()
        logger.propagate = True

    root._zonaroja_logging_configured = True
