"""Public API surface for wr_common."""

from wr_common.errors import (
    ConfigurationError,
    RemoteNotFoundError,
    RemoteServiceError,
    RunCancelledError,
    RunFailedError,
    UnexpectedRunStatusError,
    WRError,
    error_to_payload,
)
from wr_common.logging import bind_run_context, configure_logging

__all__ = [
    "ConfigurationError",
    "RemoteNotFoundError",
    "RemoteServiceError",
    "RunCancelledError",
    "RunFailedError",
    "UnexpectedRunStatusError",
    "WRError",
    "bind_run_context",
    "configure_logging",
    "error_to_payload",
]
