import json
import logging
import os
import sys
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

LOGGER_NAME = "interview_coach"
ENV_PREFIX = "INTERVIEW_COACH_LOG_"

_ctx_trace_id: ContextVar[str | None] = ContextVar("trace_id", default=None)
_ctx_span_id: ContextVar[str | None] = ContextVar("span_id", default=None)
_ctx_parent_span_id: ContextVar[str | None] = ContextVar("parent_span_id", default=None)
_ctx_run_id: ContextVar[str | None] = ContextVar("run_id", default=None)
_ctx_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)
_ctx_mask: ContextVar[bool] = ContextVar("mask", default=False)

# Record attribute -> context variable it is filled from
_CORRELATION_FIELDS = {
    "trace_id": _ctx_trace_id,
    "span_id": _ctx_span_id,
    "parent_span_id": _ctx_parent_span_id,
    "run_id": _ctx_run_id,
    "request_id": _ctx_request_id,
}

# Emitted right after the base fields, in this order, when set
_ORDERED_FIELDS = (
    "event",
    *_CORRELATION_FIELDS,
    "component",
    "operation",
    "duration_ms",
    "status",
    "error_type",
    "error_msg",
)

# Attributes every LogRecord carries; anything else came in through `extra`
_BUILTIN_RECORD_KEYS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}

_TEXT_FORMAT = "%(asctime)s %(levelname)s %(event)s %(message)s [trace=%(trace_id)s span=%(span_id)s]"


class ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        for name, var in _CORRELATION_FIELDS.items():
            setattr(record, name, var.get())
        record.component = getattr(record, "component", None)
        record.operation = getattr(record, "operation", None)
        if not hasattr(record, "event"):
            record.event = record.name
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line, correlation fields first and `extra` values after."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": _utc_stamp(datetime.fromtimestamp(record.created, tz=UTC)),
            "level": record.levelname.lower(),
            "message": record.getMessage(),
        }
        fields = record.__dict__
        payload.update((key, fields[key]) for key in _ORDERED_FIELDS if fields.get(key) is not None)
        payload.update(
            (key, value)
            for key, value in fields.items()
            if value is not None and key not in _BUILTIN_RECORD_KEYS and key not in payload
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def _utc_stamp(moment: datetime) -> str:
    return moment.isoformat().replace("+00:00", "Z")


def _coerce_level(level: str | int | None) -> int:
    if isinstance(level, int):
        return level
    if not level:
        return logging.INFO
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def _env(name: str) -> str | None:
    return os.getenv(ENV_PREFIX + name)


def _env_flag(name: str) -> bool | None:
    value = _env(name)
    if value is None:
        return None
    return value.lower() in {"1", "true", "yes", "on"}


def _build_handler(file_path: str | None, use_stderr: bool) -> tuple[logging.Handler, str | None]:
    """Returns the handler and, when the log file could not be opened, why."""
    if not file_path:
        return logging.StreamHandler(sys.stderr if use_stderr else sys.stdout), None
    try:
        return logging.FileHandler(file_path), None
    except OSError as e:
        return logging.StreamHandler(sys.stderr), str(e)


def init_logging(
    level: str | int | None = None,
    fmt: str | None = None,
    file_path: str | None = None,
    mask: bool | None = None,
    use_stderr: bool | None = None,
) -> logging.Logger:
    """Configure the root logger once per process.

    Arguments win over INTERVIEW_COACH_LOG_{LEVEL,FORMAT,FILE,MASK,STDERR}.
    Defaults are INFO, json and stdout, with answer masking off. Calling it
    again replaces the previous handler.
    """
    resolved_level = _coerce_level(level or _env("LEVEL"))
    resolved_format = (fmt or _env("FORMAT") or "json").lower()
    resolved_file = file_path or _env("FILE")
    resolved_mask = bool(mask if mask is not None else _env_flag("MASK"))
    resolved_stderr = bool(use_stderr if use_stderr is not None else _env_flag("STDERR"))

    root = logging.getLogger()
    root.setLevel(resolved_level)
    for existing in list(root.handlers):
        root.removeHandler(existing)

    handler, file_error = _build_handler(resolved_file, resolved_stderr)
    if resolved_format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(fmt=_TEXT_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S"))
    handler.addFilter(ContextFilter())
    root.addHandler(handler)

    if not _ctx_run_id.get():
        set_run_id(short_uuid())
    set_masking(resolved_mask)

    logger = get_logger()
    if file_error:
        log_event(
            "logging.file_unavailable",
            level=logging.WARNING,
            logger=logger,
            component="logging",
            file=resolved_file,
            error_msg=file_error,
        )
    log_event(
        "logging.init",
        level=logging.DEBUG,
        logger=logger,
        component="logging",
        operation="init",
        format=resolved_format,
        destination="stderr" if file_error else resolved_file or ("stderr" if resolved_stderr else "stdout"),
        mask=resolved_mask,
    )
    return logger


def get_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAME)


def short_uuid() -> str:
    return uuid.uuid4().hex[:12]


def set_trace_id(trace_id: str | None) -> None:
    _ctx_trace_id.set(trace_id)


def get_trace_id() -> str | None:
    return _ctx_trace_id.get()


def set_run_id(run_id: str) -> None:
    _ctx_run_id.set(run_id)


def get_run_id() -> str | None:
    return _ctx_run_id.get()


def set_request_id(request_id: str | None) -> None:
    _ctx_request_id.set(request_id)


def get_request_id() -> str | None:
    return _ctx_request_id.get()


def set_masking(mask: bool) -> None:
    _ctx_mask.set(mask)


def is_masking() -> bool:
    return _ctx_mask.get()


def mask_text(text: str) -> str:
    if not is_masking():
        return text
    return f"[masked len={len(text)}]"


@contextmanager
def span(event: str, logger: logging.Logger | None = None, **fields: Any) -> Iterator[None]:
    """Time the enclosed block and log one `span` record for it, nested under the current span.

    `component` and `operation` go to their own columns; the remaining fields
    are logged as extras. Exceptions are recorded and re-raised.
    """
    logger = logger or get_logger()
    parent = _ctx_span_id.get()
    _ctx_parent_span_id.set(parent)
    _ctx_span_id.set(short_uuid())
    record: dict[str, Any] = {
        "event": event,
        "component": fields.pop("component", None),
        "operation": fields.pop("operation", None),
        "status": "ok",
    }
    start = time.perf_counter()
    try:
        yield
    except Exception as e:  # noqa: BLE001 : recorded, then re-raised
        record.update(status="error", error_type=type(e).__name__, error_msg=str(e))
        raise
    finally:
        record["duration_ms"] = round((time.perf_counter() - start) * 1000.0, 3)
        record.update(fields)
        logger.info("span", extra=record)
        _ctx_span_id.set(parent)
        _ctx_parent_span_id.set(None)


def log_event(event: str, level: int = logging.INFO, logger: logging.Logger | None = None, **fields: Any) -> None:
    logger = logger or get_logger()
    logger.log(level, event, extra={"event": event, **fields})


def audit_log(
    event_type: str,
    user_id: str | None,
    client_ip: str | None = None,
    logger: logging.Logger | None = None,
    **details: Any,
) -> None:
    """Record a security event (rejected token, access to someone else's interview).

    Written at WARNING with `audit=True` so it survives INFO filtering.
    """
    log_event(
        f"audit.{event_type}",
        level=logging.WARNING,
        logger=logger,
        audit=True,
        user_id=user_id,
        client_ip=client_ip,
        audited_at=_utc_stamp(datetime.now(UTC)),
        **details,
    )
