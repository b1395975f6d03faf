"""Public controller API surface."""

from wr_controller.backoff import backoff_ms, backoff_seconds
from wr_controller.cancel import CancelToken
from wr_controller.controller import RunController
from wr_controller.lifecycle import RunLifecycle, RunPhase
from wr_controller.models import ControllerOptions, RunOptions, RunRequest
from wr_controller.poller import (
    PollOutcome,
    PollResult,
    PollSettings,
    ProgressKind,
    QueueProgress,
    StatusPoller,
)
from wr_controller.queue_position import (
    organization_queue_position,
    workspace_queue_position,
)

__all__ = [
    "CancelToken",
    "ControllerOptions",
    "PollOutcome",
    "PollResult",
    "PollSettings",
    "ProgressKind",
    "QueueProgress",
    "RunController",
    "RunLifecycle",
    "RunOptions",
    "RunPhase",
    "RunRequest",
    "StatusPoller",
    "backoff_ms",
    "backoff_seconds",
    "organization_queue_position",
    "workspace_queue_position",
]
