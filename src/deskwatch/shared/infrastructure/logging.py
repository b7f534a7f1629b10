"""
Structured Logging
==================

One JSON object per line on stdout. Context goes in ``extra``::

    logger = get_logger(__name__)
    logger.info("Priority decided", extra={"ticket_id": "T-42", "mode": "hybrid_llm"})

String values under keys that look like credentials (``password``,
``api_key``, ``token`` but not ``*_tokens`` counters) are redacted.
"""

import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

REDACTED = "***REDACTED***"

QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "apscheduler", "httpx", "watchdog")


def _is_secret_key(key: str) -> bool:
    key = key.lower()
    if "password" in key or "api_key" in key:
        return True
    return "token" in key and "tokens" not in key


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Stamps UTC time and environment onto every record and redacts secrets."""

    def __init__(self, *args: Any, environment: str = "unknown", **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._environment = environment

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        log_record["environment"] = getattr(record, "environment", self._environment)

        for key, value in log_record.items():
            if isinstance(value, str) and _is_secret_key(key):
                log_record[key] = REDACTED


def setup_logging(level: str = "INFO", environment: str = "development") -> None:
    """Replace root handlers with a single JSON stdout handler."""
    numeric_level = getattr(logging, str(level).upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        CustomJsonFormatter(
            fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
            environment=environment,
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


@contextmanager
def log_latency(logger: logging.Logger, operation: str, **context: Any):
    """Log ``"<operation> completed"`` with ``latency_ms`` when the block exits, even on error."""
    started = time.perf_counter()
    try:
        yield
    finally:
        logger.info(
            f"{operation} completed",
            extra={
                "operation": operation,
                "latency_ms": round((time.perf_counter() - started) * 1000, 2),
                **context,
            },
        )
