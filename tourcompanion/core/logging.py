"""Logging setup: JSON output, redaction and request correlation.

Everything that touches the root logger lives here:
- request_id propagation through contextvars
- redaction of client-identifying fields on log records
- a JSON formatter for machine-readable logs
- stdout or (rotating) file handlers chosen by ``LogSettings``
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

from tourcompanion.core.config import LogSettings, settings

REDACTED = "[REDACTED]"

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

# Raw client signals must never reach the logs; keys are logged as hashes.
SENSITIVE_KEYS_DEFAULT: frozenset[str] = frozenset(
    {
        "authorization",
        "cookie",
        "set-cookie",
        "token",
        "secret",
        "password",
        "user_agent",
        "user-agent",
        "accept-language",
        "fingerprint",
        "rate_limit_key",
        "client_token",
    }
)

# Standard LogRecord attributes that are not user-supplied extras
_RESERVED_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "stack",
    }
)


def set_request_id(request_id: str | None) -> None:
    """Bind a correlation id to the current context."""

    _request_id_var.set(request_id)


def get_request_id() -> str | None:
    """Return the correlation id bound to the current context, if any."""

    return _request_id_var.get()


def clear_request_id() -> None:
    _request_id_var.set(None)


def _redact(value: Any, sensitive_keys: frozenset[str]) -> Any:
    """Recursively replace sensitive mapping values with ``REDACTED``."""

    if isinstance(value, Mapping):
        return {
            k: REDACTED if str(k).lower() in sensitive_keys else _redact(v, sensitive_keys)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(_redact(v, sensitive_keys) for v in value)
    return value


def _extract_extras(record: LogRecord, sensitive_keys: frozenset[str]) -> dict[str, Any]:
    """Collect the ``extra=`` fields of a record with redaction applied.

    Args:
        record: Record being emitted.
        sensitive_keys: Lower-cased field names to redact.

    Returns:
        Mapping of extra field names to safe values.
    """

    extras: dict[str, Any] = {}
    for key, value in record.__dict__.items():
        if key in _RESERVED_ATTRS or key.startswith("_"):
            continue
        if key.lower() in sensitive_keys:
            extras[key] = REDACTED
        else:
            extras[key] = _redact(value, sensitive_keys)
    return extras


class RequestIdFilter(logging.Filter):
    """Attach the context request_id to records that lack one."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if getattr(record, "request_id", None) is None:
            request_id = get_request_id()
            if request_id:
                record.request_id = request_id
        return True


class SensitiveDataFilter(logging.Filter):
    """Redact sensitive extras in place before any formatter sees them."""

    def __init__(self, sensitive_keys: Iterable[str] | None = None) -> None:
        super().__init__()
        self.sensitive_keys = frozenset(
            k.lower() for k in (sensitive_keys or SENSITIVE_KEYS_DEFAULT)
        )

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        for key, value in _extract_extras(record, self.sensitive_keys).items():
            setattr(record, key, value)
        return True


class JsonFormatter(logging.Formatter):
    """Render records as one JSON object per line."""

    def __init__(
        self,
        *,
        sensitive_keys: Iterable[str] | None = None,
        ensure_ascii: bool = True,
    ) -> None:
        super().__init__()
        self.sensitive_keys = frozenset(
            k.lower() for k in (sensitive_keys or SENSITIVE_KEYS_DEFAULT)
        )
        self.ensure_ascii = ensure_ascii

    def format(self, record: LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id:
            payload["request_id"] = request_id

        payload.update(_extract_extras(record, self.sensitive_keys))

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str, ensure_ascii=self.ensure_ascii)


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    """Pick the handler described by ``log_settings``.

    Args:
        log_settings: Resolved logging settings.

    Returns:
        A stdout stream handler, or a (rotating) file handler.
    """

    if log_settings.output.lower() != "file":
        return logging.StreamHandler(sys.stdout)

    file_path = Path(log_settings.file_path or "logs/tourcompanion.log")
    file_path.parent.mkdir(parents=True, exist_ok=True)
    if log_settings.max_bytes:
        return RotatingFileHandler(
            file_path,
            maxBytes=log_settings.max_bytes,
            backupCount=log_settings.backup_count,
            encoding="utf-8",
        )
    return logging.FileHandler(file_path, encoding="utf-8")


def configure_logging(log_settings: LogSettings | None = None) -> None:
    """Install the configured handler on the root logger.

    Args:
        log_settings: Optional log settings; defaults to ``settings.log``.
    """

    cfg = log_settings or settings.log

    handler = _build_handler(cfg)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())

    if cfg.format.lower() == "plain":
        formatter: logging.Formatter = logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s"
        )
    else:
        formatter = JsonFormatter()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, cfg.level.upper(), logging.INFO))

    # uvicorn installs its own handlers; keep records from being emitted twice
    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.access").propagate = False
