"""
Structured logging for DomainHub.

Every record is written to stdout as one JSON object. The `log_*` helpers take
contextual keyword fields (user_id, domain, session_id, step, provider,
action, ...); known fields become top-level keys, anything else is nested
under "extra".
"""

import logging
import json
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict

CONTEXT_FIELDS = (
    "user_id",
    "domain",
    "session_id",
    "step",
    "event",
    "action",
    "provider",
    "duration_ms",
    "error_type",
)


class JSONFormatter(logging.Formatter):

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            log_data["extra"] = extra_data

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logger(name: str = "domainhub", level: str = "INFO", enable_json: bool = True) -> logging.Logger:
    """
    Attach a single stdout handler to the named logger.

    With enable_json=False a plain text format is used, which reads better
    when running uvicorn locally.
    """
    level_value = getattr(logging, level.upper())
    configured = logging.getLogger(name)
    configured.setLevel(level_value)
    configured.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level_value)
    handler.setFormatter(
        JSONFormatter() if enable_json
        else logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    configured.addHandler(handler)
    configured.propagate = False
    return configured


# Level is applied later by configure_logger_from_config()
logger = logging.getLogger("domainhub")


def configure_logger_from_config():
    """Apply LOG_LEVEL from config. Called once when the app module loads."""
    from .config import LOG_LEVEL

    global logger
    logger = setup_logger(level=LOG_LEVEL)


def _split_context(context: Dict[str, Any]) -> Dict[str, Any]:
    extra = {k: v for k, v in context.items() if k in CONTEXT_FIELDS and v is not None}
    rest = {k: v for k, v in context.items() if k not in CONTEXT_FIELDS and v is not None}
    if rest:
        extra["extra_data"] = rest
    return extra


def log_with_context(level: str, message: str, exc_info: bool = False, **context):
    logger.log(
        getattr(logging, level.upper()),
        message,
        exc_info=exc_info,
        extra=_split_context(context),
    )


def log_info(message: str, **context):
    log_with_context("info", message, **context)


def log_warning(message: str, **context):
    log_with_context("warning", message, **context)


def log_error(message: str, exc_info: bool = False, **context):
    log_with_context("error", message, exc_info=exc_info, **context)


def log_debug(message: str, **context):
    log_with_context("debug", message, **context)


@contextmanager
def timed(message: str, **context):
    """
    Log `message` with duration_ms once the block finishes.

    Extra fields can be attached from inside the block through the yielded dict.
    """
    started = time.monotonic()
    fields: Dict[str, Any] = {}
    yield fields
    log_info(message, duration_ms=round((time.monotonic() - started) * 1000), **context, **fields)
