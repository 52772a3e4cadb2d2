"""Logging for provisioner runs.

Components log through :class:`StructuredLogger`: an event name plus keyword
fields, e.g. ``logger.info("role_created", role_name="fn1-lambda-role")``.
The orchestrator binds the deployment identity with :func:`deployment_context`
so that every event of one deploy/remove carries ``instance``/``stage``/``function``.

Output is either one JSON object per line or a text line with trailing
``key=value`` fields, always on stderr (stdout is reserved for command results).
"""

from __future__ import annotations

import json
import logging
import sys
import time
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from infra.config import get_settings

deploy_ctx: ContextVar[dict[str, Any] | None] = ContextVar("deploy_ctx", default=None)

# Attributes every LogRecord has; anything else on a record came from ``extra``.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}

_NOISY_LOGGERS = ("boto3", "botocore", "urllib3")


def set_request_context(**kwargs: Any) -> None:
    """Add fields to the context of the current operation."""
    deploy_ctx.set({**get_request_context(), **kwargs})


def clear_request_context() -> None:
    deploy_ctx.set({})


def get_request_context() -> dict[str, Any]:
    return dict(deploy_ctx.get() or {})


@contextmanager
def deployment_context(**kwargs: Any) -> Iterator[None]:
    """Bind context fields for the duration of the block, restoring the outer ones after."""
    token = deploy_ctx.set({**get_request_context(), **kwargs})
    try:
        yield
    finally:
        deploy_ctx.reset(token)


def _utc_timestamp(created: float) -> str:
    # 2026-01-24T18:03:12.123Z
    return datetime.fromtimestamp(created, UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class JsonFormatter(logging.Formatter):
    """Render a record as one JSON line: standard keys, ``extra`` fields, then context."""

    def __init__(self, *, extra_fields: Mapping[str, Any] | None = None) -> None:
        super().__init__()
        self._static_fields = dict(extra_fields or {})

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": _utc_timestamp(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "func": record.funcName,
            "line": record.lineno,
        }
        extras = {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS and k != "fields"}
        for source in (extras, self._static_fields, get_request_context()):
            for key, value in source.items():
                entry.setdefault(key, value)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """``<utc time>Z | LEVEL | logger | event | k=v ...``"""

    converter = time.gmtime

    def __init__(self) -> None:
        super().__init__("%(asctime)sZ | %(levelname)s | %(name)s | %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = getattr(record, "fields", None)
        if not isinstance(fields, Mapping) or not fields:
            return line
        return f"{line} | " + " ".join(f"{key}={value}" for key, value in fields.items())


class StructuredLogger:
    """
    Event-style wrapper around a stdlib logger.

    Keyword fields are attached to the record twice: flat (for the JSON
    formatter) and grouped under ``fields`` (for the text formatter). Field
    names must not collide with LogRecord attributes such as ``name`` or
    ``module``.
    """

    def __init__(self, name: str) -> None:
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event: str, *, exc_info: bool = False, **kwargs: Any) -> None:
        if self._logger.isEnabledFor(level):
            self._logger.log(level, event, extra={"event": event, "fields": dict(kwargs), **kwargs}, exc_info=exc_info)

    def debug(self, event: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, event, **kwargs)

    def info(self, event: str, **kwargs: Any) -> None:
        self._log(logging.INFO, event, **kwargs)

    def warning(self, event: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, event, **kwargs)

    def error(self, event: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, event, **kwargs)

    def exception(self, event: str, **kwargs: Any) -> None:
        """ERROR with the exception being handled attached."""
        self._log(logging.ERROR, event, exc_info=True, **kwargs)


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    json_logs: bool = False
    override_root_handlers: bool = False
    extra_fields: Mapping[str, Any] | None = None

    def make_handler(self) -> logging.Handler:
        handler = logging.StreamHandler(sys.stderr)
        formatter: logging.Formatter = (
            JsonFormatter(extra_fields=self.extra_fields) if self.json_logs else TextFormatter()
        )
        handler.setFormatter(formatter)
        return handler


def setup_logging(
    *,
    level: str | None = None,
    json_logs: bool | None = None,
    override_root_handlers: bool | None = None,
    extra_fields: Mapping[str, Any] | None = None,
) -> LoggingConfig:
    """
    Configure the root logger for a CLI run and return the effective config.

    Explicit arguments win over the ``logging`` settings section
    (LAMBDAPROV_LOG_LEVEL, LAMBDAPROV_LOG_JSON, LAMBDAPROV_LOG_OVERRIDE).
    Pre-existing root handlers are kept unless overriding is requested.
    """
    settings = get_settings(reload=True).logging
    cfg = LoggingConfig(
        level=(level or settings.level).upper(),
        json_logs=settings.json_logs if json_logs is None else json_logs,
        override_root_handlers=(
            settings.override_root_handlers if override_root_handlers is None else override_root_handlers
        ),
        extra_fields=extra_fields,
    )

    root = logging.getLogger()
    root.setLevel(logging.getLevelNamesMapping().get(cfg.level, logging.INFO))
    if cfg.override_root_handlers:
        for existing in list(root.handlers):
            root.removeHandler(existing)
    if not root.handlers:
        root.addHandler(cfg.make_handler())

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return cfg
