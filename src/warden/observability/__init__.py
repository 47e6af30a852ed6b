"""Observability module for warden.

Provides structured logging with instance and worker context.
"""

from warden.observability.logging import (
    LogContext,
    configure_logging,
    instance_id_var,
    worker_var,
)

__all__ = [
    "configure_logging",
    "LogContext",
    "instance_id_var",
    "worker_var",
]
