"""Logging setup, JSON formatter, and structured extras for ingestion events."""

from __future__ import annotations

import json
import logging
import time
import uuid
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from flask import g, has_request_context, request
from werkzeug.exceptions import HTTPException

REQUEST_ID_HEADER = "X-Request-ID"

LOGGING_CONFIG_FLAG = "_logging_configured"
REQUEST_LOGGING_FLAG = "_request_logging_configured"

# Attributes every LogRecord carries; anything else was passed via ``extra``.
RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None)).keys()
) | {"message", "asctime", "taskName"}


class JSONLogFormatter(logging.Formatter):
    """Format LogRecord instances into single-line JSON documents."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack"] = record.stack_info

        payload.update(_extract_extras(record.__dict__))
        return json.dumps(_json_safe(payload), separators=(",", ":"))


def setup_logging(app) -> None:
    """Configure root handlers and formatters from app config."""

    if app.config.get(LOGGING_CONFIG_FLAG):
        return

    level = _resolve_level(app.config.get("LOG_LEVEL", "INFO"))
    handler = logging.StreamHandler()
    handler.setLevel(level)
    if _to_bool(app.config.get("LOG_JSON_ENABLED", False)):
        handler.setFormatter(JSONLogFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                app.config.get("LOG_FORMAT", "%(asctime)s %(levelname)s [%(name)s] %(message)s")
            )
        )

    root_logger = logging.getLogger()
    _replace_handlers(root_logger, [handler])
    root_logger.setLevel(level)

    # APScheduler logs every job execution at INFO.
    logging.getLogger("apscheduler").setLevel(max(level, logging.WARNING))
    werkzeug_logger = logging.getLogger("werkzeug")
    werkzeug_logger.setLevel(level)
    werkzeug_logger.handlers = []
    app.logger.handlers = []
    app.logger.setLevel(level)
    app.logger.propagate = True

    app.config[LOGGING_CONFIG_FLAG] = True


def init_request_logging(app) -> None:
    """Tag each request with a correlation id and log its outcome.

    The id is taken from ``X-Request-ID`` when the caller sends one and is
    echoed back on the response. Provider and cycle log lines emitted while
    a request is being served (a manual refresh) carry the same id.
    """

    if app.config.get(REQUEST_LOGGING_FLAG):
        return

    @app.before_request
    def _assign_request_id():
        g.request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        g.request_start = time.perf_counter()

    @app.after_request
    def _log_response(response):
        if getattr(g, "request_id", None):
            response.headers.setdefault(REQUEST_ID_HEADER, g.request_id)
        app.logger.log(
            _response_log_level(response.status_code),
            "Request handled",
            extra=_request_log_extra("request.completed", response.status_code),
        )
        g.request_logged = True
        return response

    @app.teardown_request
    def _log_unhandled(exc: BaseException | None):
        if exc is None or getattr(g, "request_logged", False):
            return
        status = exc.code if isinstance(exc, HTTPException) and exc.code else 500
        app.logger.error(
            "Request failed",
            extra=_request_log_extra("request.failed", status, error=str(exc)),
        )
        g.request_logged = True

    app.config[REQUEST_LOGGING_FLAG] = True


def provider_log_extra(
    *,
    provider: str,
    category: str,
    event: str,
    status: str,
    duration_ms: float | None = None,
    error: str | None = None,
    http_status: int | None = None,
    endpoint: str | None = None,
) -> dict[str, Any]:
    """Structured fields attached to every provider attempt log line."""

    payload: dict[str, Any] = {
        "event": event,
        "provider": provider,
        "category": category,
        "status": status,
        "duration_ms": round(duration_ms, 3) if duration_ms is not None else None,
        "http_status": http_status,
        "endpoint": endpoint,
        "request_id": _current_request_id(),
        "source": provider,
    }
    if error:
        payload["error"] = error
    return {key: value for key, value in payload.items() if value is not None}


def cycle_log_extra(
    *,
    event: str,
    status: str,
    duration_ms: float | None = None,
    **fields: Any,
) -> dict[str, Any]:
    """Structured fields for cycle-level and fallback log lines."""

    payload: dict[str, Any] = {
        "event": event,
        "status": status,
        "duration_ms": round(duration_ms, 3) if duration_ms is not None else None,
        "source": "ingestion",
        "request_id": _current_request_id(),
    }
    payload.update(fields)
    return {key: value for key, value in payload.items() if value is not None}


def _response_log_level(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


def _request_log_extra(event: str, status: int, *, error: str | None = None) -> dict[str, Any]:
    start = getattr(g, "request_start", None)
    payload: dict[str, Any] = {
        "event": event,
        "route": request.url_rule.rule if request.url_rule else request.path,
        "method": request.method,
        "status": status,
        "duration_ms": round((time.perf_counter() - start) * 1000, 3) if start else None,
        "request_id": getattr(g, "request_id", None),
        "source": "api",
        "error": error,
    }
    return {key: value for key, value in payload.items() if value is not None}


def _extract_extras(record_dict: dict[str, Any]) -> dict[str, Any]:
    return {
        key: _json_safe(value)
        for key, value in record_dict.items()
        if key not in RESERVED_ATTRS and not key.startswith("_")
    }


def _json_safe(value: Any) -> Any:
    if isinstance(value, str | int | float | bool) or value is None:
        return value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, list | tuple | set):
        return [_json_safe(item) for item in value]
    return str(value)


def _resolve_level(level_name: Any) -> int:
    if isinstance(level_name, int):
        return level_name
    if not level_name:
        return logging.INFO
    return getattr(logging, str(level_name).upper(), logging.INFO)


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _replace_handlers(logger: logging.Logger, handlers: Iterable[logging.Handler]) -> None:
    for existing in logger.handlers[:]:
        logger.removeHandler(existing)
    for handler in handlers:
        logger.addHandler(handler)


def _current_request_id() -> str | None:
    if not has_request_context():
        return None
    return getattr(g, "request_id", None)
