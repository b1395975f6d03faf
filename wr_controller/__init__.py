"""Run lifecycle orchestration: polling, queue tracking, backoff and retries."""

from wr_controller.api import (
    CancelToken,
    ControllerOptions,
    QueueProgress,
    RunController,
    RunOptions,
    RunRequest,
)

__all__ = [
    "CancelToken",
    "ControllerOptions",
    "QueueProgress",
    "RunController",
    "RunOptions",
    "RunRequest",
]
