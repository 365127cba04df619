"""Structured logging for the lookup service.

Every log call in the app emits an event name as the message plus context in
``extra`` (``logger.info("lookup.cache_hit", extra={"mobile": ...})``). This
module turns those records into JSON lines (or ``key=value`` text) and keeps
personal data out of the sinks:

- provider credentials and database URLs are replaced by "[REDACTED]"
- resolved names are replaced by "[REDACTED]"
- any ``mobile`` field is masked down to its last four digits
- the current request id (set by the HTTP middleware) is attached
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import LogRecord
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from app.core.config import LogSettings, settings

REDACTED = "[REDACTED]"

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

# Fields replaced wholesale
SECRET_KEYS: frozenset[str] = frozenset(
    {
        "authorization",
        "auth_token",
        "upstream_auth_token",
        "token",
        "password",
        "database_url",
        "url_with_password",
        "cookie",
        "set-cookie",
        "resolved_name",
        "mobile_linked_name",
    }
)

# Fields holding phone numbers; kept but masked
MOBILE_KEYS: frozenset[str] = frozenset({"mobile", "raw_mobile", "client_mobile"})

# Attributes every LogRecord has; anything else came from ``extra``
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


def set_request_id(request_id: str | None) -> None:
    _request_id_var.set(request_id)


def get_request_id() -> str | None:
    return _request_id_var.get()


def clear_request_id() -> None:
    _request_id_var.set(None)


def mask_mobile(mobile: str | None) -> str:
    """Mask a phone number for logging, keeping only the last four digits.

    Masking is idempotent, so already-masked values pass through unchanged.

    Examples:
        >>> mask_mobile("8318090007")
        '******0007'
        >>> mask_mobile(None)
        ''
    """

    if not mobile:
        return ""
    if len(mobile) <= 4:
        return "*" * len(mobile)
    return "*" * (len(mobile) - 4) + mobile[-4:]


def scrub(key: str, value: Any, secret_keys: frozenset[str] = SECRET_KEYS) -> Any:
    """Return ``value`` safe for logging under field name ``key``.

    Mappings and lists are walked recursively, so nested payloads such as
    request headers or provider bodies are scrubbed too.
    """

    lowered = key.lower()
    if lowered in secret_keys:
        return REDACTED
    if lowered in MOBILE_KEYS and isinstance(value, str):
        return mask_mobile(value)
    if isinstance(value, Mapping):
        return {k: scrub(str(k), v, secret_keys) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [scrub(key, item, secret_keys) for item in value]
    return value


def record_extras(record: LogRecord) -> dict[str, Any]:
    """Return the ``extra`` fields of a record, minus logging internals."""

    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


class RedactingFilter(logging.Filter):
    """Attach the request id and scrub ``extra`` fields in place."""

    def __init__(self, secret_keys: Iterable[str] | None = None) -> None:
        super().__init__()
        self.secret_keys = frozenset(k.lower() for k in secret_keys) if secret_keys else SECRET_KEYS

    def filter(self, record: LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            request_id = get_request_id()
            if request_id:
                record.request_id = request_id

        for key, value in record_extras(record).items():
            setattr(record, key, scrub(key, value, self.secret_keys))
        return True


def _timestamp(record: LogRecord) -> str:
    return datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()


class JsonFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, logger, event and context.

    Non-ASCII text (names in local scripts) is written as-is.
    """

    def format(self, record: LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": _timestamp(record),
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": record.getMessage(),
        }
        payload.update(record_extras(record))

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str, ensure_ascii=False)


class KeyValueFormatter(logging.Formatter):
    """Human-readable ``timestamp LEVEL logger event key=value ...`` lines."""

    def format(self, record: LogRecord) -> str:
        parts = [_timestamp(record), record.levelname, record.name, record.getMessage()]
        parts.extend(f"{key}={value}" for key, value in sorted(record_extras(record).items()))
        line = " ".join(str(part) for part in parts)

        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    if log_settings.output.lower() != "file":
        return logging.StreamHandler(sys.stdout)

    file_path = Path(log_settings.file_path or "logs/lookup.log")
    file_path.parent.mkdir(parents=True, exist_ok=True)
    if not log_settings.max_bytes:
        return logging.FileHandler(file_path, encoding="utf-8")
    return RotatingFileHandler(
        file_path,
        maxBytes=log_settings.max_bytes,
        backupCount=log_settings.backup_count,
        encoding="utf-8",
    )


def configure_logging(log_settings: LogSettings | None = None) -> None:
    """Install the redacting handler on the root logger.

    Args:
        log_settings: Optional log settings; defaults to global settings if omitted.
    """

    cfg = log_settings or settings.log
    level = logging.DEBUG if settings.app.debug else getattr(logging, cfg.level.upper(), logging.INFO)

    handler = _build_handler(cfg)
    handler.addFilter(RedactingFilter())
    handler.setFormatter(KeyValueFormatter() if cfg.format.lower() == "plain" else JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # uvicorn keeps its own handlers; the access log comes from our middleware
    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.access").propagate = False
    # Engine chatter is controlled by DATABASE_ECHO, not the root level
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
