"""
Structured application logging.

Every record carries the CI/CD run it belongs to (ci_cd_id, organization,
project, ci_cd_tool, step) when one is known. Records are rendered either
as one JSON object per line for log shippers, or as plain text with the
run context appended as key=value pairs for local development.

This is the operator-facing log. The per-run log stream that API clients
read lives in the Redis-backed LogsService.
"""

import logging
import json
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional, MutableMapping
from logging import LogRecord


# Run context promoted to the top level of every record
CONTEXT_FIELDS = ("ci_cd_id", "organization", "project", "ci_cd_tool", "step")

_STANDARD_ATTRIBUTES = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "message", "pathname", "process", "processName", "relativeCreated",
    "thread", "threadName", "exc_info", "exc_text", "stack_info",
    "taskName", "asctime",
}

LOG_FORMATS = ("json", "text")


def _extra_fields(record: LogRecord) -> Dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _STANDARD_ATTRIBUTES and key not in CONTEXT_FIELDS
    }


class JSONFormatter(logging.Formatter):
    """
    Render a record as a single JSON line.

    Top-level keys are timestamp, level, logger, message and source, plus
    any run context fields present on the record. Remaining ``extra``
    values are nested under ``context``; exception details under ``error``.
    """

    def format(self, record: LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        extra_fields = _extra_fields(record)
        if extra_fields:
            log_data["context"] = extra_fields

        if record.exc_info:
            log_data["error"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "stack_trace": "".join(traceback.format_exception(*record.exc_info))
            }

        log_data["source"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName
        }

        return json.dumps(log_data, default=str)


class ContextTextFormatter(logging.Formatter):
    """Human readable lines: ``LEVEL logger: message [ci_cd_id=... step=...]``."""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)-8s %(name)s: %(message)s")

    def format(self, record: LogRecord) -> str:
        line = super().format(record)
        pairs = [
            f"{field}={getattr(record, field)}"
            for field in CONTEXT_FIELDS
            if hasattr(record, field)
        ]
        if pairs:
            # Traceback, if any, stays on the following lines
            first, sep, rest = line.partition("\n")
            line = f"{first} [{' '.join(pairs)}]{sep}{rest}"
        return line


class ContextLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter carrying run context.

    Context passed at construction (or added through ``with_context``) is
    merged into the ``extra`` of every call, so a run's records can be
    filtered by ci_cd_id without repeating it at each call site.
    """

    def __init__(self, logger: logging.Logger, extra: Optional[Dict[str, Any]] = None):
        super().__init__(logger, extra or {})

    def process(self, msg: str, kwargs: MutableMapping[str, Any]) -> tuple[str, MutableMapping[str, Any]]:
        extra = kwargs.get("extra", {})
        extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs

    def with_context(self, **context: Any) -> "ContextLoggerAdapter":
        """
        Derive an adapter with additional context.

        The receiver is left untouched.

        Args:
            **context: Fields to add or override

        Returns:
            New adapter over the same logger
        """
        new_extra = self.extra.copy()
        new_extra.update(context)
        return ContextLoggerAdapter(self.logger, new_extra)


def setup_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """
    Install a single stdout handler on the root logger.

    Args:
        log_level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: "json" for one JSON object per line, "text" for plain lines

    Raises:
        ValueError: If log_format is not a known format
    """
    if log_format not in LOG_FORMATS:
        raise ValueError(f"Unknown log format '{log_format}', expected one of: {', '.join(LOG_FORMATS)}")

    formatter = JSONFormatter() if log_format == "json" else ContextTextFormatter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str, **context: Any) -> ContextLoggerAdapter:
    """
    Get a context-aware logger for a module.

    Example:
        logger = get_logger(__name__, ci_cd_id="ci-42")
        logger.info("Cloning repository")  # record carries ci_cd_id
    """
    return ContextLoggerAdapter(logging.getLogger(name), context)


def log_step_transition(
    logger: logging.LoggerAdapter,
    ci_cd_id: str,
    step: str,
    status: str
) -> None:
    """
    Log that a run step started, completed or failed.

    Args:
        logger: Logger to use
        ci_cd_id: CI/CD request ID
        step: Step name ('clone', 'branch', 'generate', 'commit', 'push', 'pull_request')
        status: 'started', 'completed' or 'failed'
    """
    logger.info(
        f"Step {status}: {step}",
        extra={
            "ci_cd_id": ci_cd_id,
            "step": step,
            "status": status,
        }
    )


def log_api_call(
    logger: logging.LoggerAdapter,
    service: str,
    endpoint: str,
    method: str,
    status_code: Optional[int] = None,
    duration_ms: Optional[float] = None,
    error: Optional[str] = None
) -> None:
    """
    Log one remote API call.

    Failed calls (``error`` set) are logged at ERROR, others at INFO.

    Args:
        logger: Logger to use
        service: Remote service name, e.g. 'github'
        endpoint: Request path
        method: HTTP method
        status_code: Response status, when a response was received
        duration_ms: Round-trip time
        error: Failure description
    """
    extra = {
        "service": service,
        "endpoint": endpoint,
        "method": method,
    }

    if status_code is not None:
        extra["status_code"] = status_code
    if duration_ms is not None:
        extra["duration_ms"] = round(duration_ms, 2)
    if error is not None:
        extra["error"] = error

    if error:
        logger.error(f"API call failed: {method} {endpoint}", extra=extra)
    else:
        logger.info(f"API call: {method} {endpoint}", extra=extra)


def log_error_with_context(
    logger: logging.LoggerAdapter,
    message: str,
    error: Exception,
    **context: Any
) -> None:
    """Log ``error`` with its traceback, outside of an ``except`` block if need be."""
    logger.error(
        message,
        extra=context,
        exc_info=(type(error), error, error.__traceback__)
    )
