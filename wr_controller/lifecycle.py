"""Run lifecycle tracking: current phase and retry bookkeeping."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


class RunPhase(str, Enum):
    """Phases a run drive moves through."""

    IDLE = "idle"
    RETRY_BACKOFF = "retry_backoff"
    CREATE = "create"
    PLAN = "plan"
    POLICY_OVERRIDE = "policy_override"
    CONFIRM = "confirm"
    APPLY = "apply"
    FINISHED = "finished"
    FAILED = "failed"


_TERMINAL_PHASES = {RunPhase.FINISHED, RunPhase.FAILED}


@dataclass
class RunLifecycle:
    """Tracks one top-level drive: phase, attempt counter and run identity.

    ``attempt`` is reset for every top-level invocation and only grows on a
    run-level failure; it never exceeds ``max_attempts``.
    """

    max_attempts: int = 0
    attempt: int = 0
    phase: RunPhase = RunPhase.IDLE
    run_id: str | None = None
    history: list[tuple[RunPhase, str | None]] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.phase in _TERMINAL_PHASES

    def start_phase(self, phase: RunPhase, run_id: str | None = None) -> None:
        if run_id is not None:
            self.run_id = run_id
        self.phase = phase
        self.history.append((phase, self.run_id))
        logger.debug(
            "Run phase -> %s (run=%s, attempt=%d)", phase.value, self.run_id, self.attempt
        )

    def can_retry(self, retry_enabled: bool) -> bool:
        return retry_enabled and self.attempt < self.max_attempts

    def mark_retry(self) -> int:
        if self.attempt >= self.max_attempts:
            raise ValueError(
                f"retry budget exhausted ({self.attempt}/{self.max_attempts})"
            )
        self.attempt += 1
        self.run_id = None
        return self.attempt

    def finish(self) -> None:
        self.start_phase(RunPhase.FINISHED)

    def mark_failed(self) -> None:
        self.start_phase(RunPhase.FAILED)
