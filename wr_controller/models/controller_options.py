"""Configuration options for RunController construction."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from wr_controller.poller import PollSettings, QueueProgress


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ControllerOptions:
    """Optional hooks and pacing for RunController."""

    poll_settings: PollSettings = field(default_factory=PollSettings)
    progress_callback: Callable[[QueueProgress], None] | None = None
    clock: Callable[[], datetime] = _utc_now

    def timestamp(self) -> str:
        return self.clock().strftime("%Y-%m-%d %H:%M:%S UTC")
