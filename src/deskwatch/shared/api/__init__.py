"""Shared HTTP plumbing used by every context router."""

from deskwatch.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    register_exception_handlers,
)

__all__ = ["CorrelationIDMiddleware", "LoggingMiddleware", "register_exception_handlers"]
