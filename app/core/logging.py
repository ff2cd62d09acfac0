from __future__ import annotations

import json
import logging
import re
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Mapping, MutableMapping
from uuid import uuid4


_CORRELATION_ID: ContextVar[str | None] = ContextVar("correlation_id", default=None)

CORRELATION_HEADER = "X-Request-ID"

# Inbound request ids are echoed back in a response header.
_CORRELATION_PATTERN = re.compile(r"^[A-Za-z0-9._:-]{1,64}$")

# Respondent data never reaches the log stream in clear text.
SECRET_FIELDS = frozenset({"password", "token", "user_token", "access_token", "authorization", "smtp_password"})
EMAIL_FIELDS = frozenset({"email", "user_email", "to"})


def mask_email(value: str) -> str:
    """``ada@example.com`` -> ``a***@example.com``."""
    local, sep, domain = value.partition("@")
    if not sep:
        return "***"
    return f"{local[:1]}***@{domain}"


def redact(fields: Mapping[str, Any]) -> Dict[str, Any]:
    cleaned: Dict[str, Any] = {}
    for key, value in fields.items():
        if key in SECRET_FIELDS and value is not None:
            cleaned[key] = "***"
        elif key in EMAIL_FIELDS and isinstance(value, str):
            cleaned[key] = mask_email(value)
        else:
            cleaned[key] = value
    return cleaned


class JsonFormatter(logging.Formatter):
    """Serialize log records into single-line JSON for structured ingestion."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - override
        payload: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }
        correlation_id = _CORRELATION_ID.get()
        if correlation_id:
            payload["correlation_id"] = correlation_id
        structured = getattr(record, "structured_data", None)
        if isinstance(structured, Mapping):
            payload.update(redact(structured))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, default=str)


class StructuredAdapter(logging.LoggerAdapter):
    """Logger adapter merging default fields (``component``) into every record.

    Callers pass fields either as ``extra={"structured_data": {...}}`` (the
    long form used at framework seams) or through :meth:`event`.
    """

    def process(self, msg: str, kwargs: MutableMapping[str, Any]) -> tuple[str, MutableMapping[str, Any]]:
        merged: Dict[str, Any] = dict(self.extra or {})
        extra = kwargs.get("extra")
        if not isinstance(extra, dict):
            extra = {}
        structured = extra.get("structured_data")
        if isinstance(structured, Mapping):
            merged.update(structured)
        extra["structured_data"] = merged
        kwargs["extra"] = extra
        return msg, kwargs

    def event(self, name: str, level: int = logging.INFO, **fields: Any) -> None:
        """Log a snake_case event name with structured fields."""

        self.log(level, name, extra={"structured_data": fields})


_STRUCTURED_ATTR = "_structured_configured"


def configure_logging(*, level: int = logging.INFO, environment: str = "dev") -> None:
    """Install the JSON handler on the root logger once.

    ``dev`` and ``test`` lower the level to DEBUG unless a stricter level was
    requested; ``prod`` never goes below INFO. SQLAlchemy engine chatter is
    kept at WARNING everywhere.
    """
    root = logging.getLogger()
    if getattr(root, _STRUCTURED_ATTR, False):
        return

    if environment in ("dev", "test"):
        effective_level = logging.DEBUG if level == logging.INFO else level
    elif environment == "prod":
        effective_level = max(level, logging.INFO)
    else:
        effective_level = level

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(effective_level)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    setattr(root, _STRUCTURED_ATTR, True)


def get_logger(name: str, **defaults: Any) -> StructuredAdapter:
    """Return a structured logger adapter injecting default structured fields."""

    return StructuredAdapter(logging.getLogger(name), defaults)


def get_correlation_id() -> str | None:
    return _CORRELATION_ID.get()


@contextmanager
def correlation_context(correlation_id: str | None = None) -> Iterator[str]:
    """Bind a correlation id for the duration of a request.

    A malformed inbound id is replaced by a fresh UUID.
    """

    cid = correlation_id if correlation_id and _CORRELATION_PATTERN.match(correlation_id) else str(uuid4())
    token = _CORRELATION_ID.set(cid)
    try:
        yield cid
    finally:
        _CORRELATION_ID.reset(token)


__all__ = [
    "CORRELATION_HEADER",
    "configure_logging",
    "get_logger",
    "get_correlation_id",
    "correlation_context",
    "mask_email",
    "redact",
]
