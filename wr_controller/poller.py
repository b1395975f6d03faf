"""
Cancellable polling loop that waits for a run to leave its pending statuses.

Each iteration sleeps for the backoff delay, reads the run, and classifies
its status against the phase's pending/terminal sets. While pending, the
poller reports why the run is still waiting (locked workspace, organization
queue, workspace queue) without letting those lookups affect termination.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from wr_client.models import Run, RunStatus, Workspace
from wr_client.service import RemoteRunService
from wr_common.config.env import parse_int_env
from wr_common.errors import RemoteServiceError
from wr_controller.backoff import backoff_seconds
from wr_controller.cancel import CancelToken
from wr_controller.queue_position import (
    organization_queue_position,
    workspace_queue_position,
)
from wr_controller.statuses import StatusClass, classify

logger = logging.getLogger(__name__)

DEFAULT_POLL_MIN_MS = 1000
DEFAULT_POLL_MAX_MS = 3000


@dataclass(frozen=True)
class PollSettings:
    """Inter-poll pacing in milliseconds."""

    min_ms: int = DEFAULT_POLL_MIN_MS
    max_ms: int = DEFAULT_POLL_MAX_MS

    def __post_init__(self) -> None:
        if self.min_ms < 0 or self.max_ms < self.min_ms:
            raise ValueError(
                f"invalid poll backoff window: min={self.min_ms}ms max={self.max_ms}ms"
            )

    @classmethod
    def from_env(cls) -> "PollSettings":
        min_ms = parse_int_env(os.environ.get("WR_POLL_MIN_MS"))
        max_ms = parse_int_env(os.environ.get("WR_POLL_MAX_MS"))
        resolved_min = DEFAULT_POLL_MIN_MS if min_ms is None else min_ms
        resolved_max = max(resolved_min, DEFAULT_POLL_MAX_MS if max_ms is None else max_ms)
        return cls(min_ms=resolved_min, max_ms=resolved_max)

    def delay_seconds(self, iteration: int) -> float:
        return backoff_seconds(self.min_ms, self.max_ms, iteration)


class PollOutcome(str, Enum):
    TERMINAL = "terminal"
    UNCLASSIFIED = "unclassified"


@dataclass(frozen=True)
class PollResult:
    """Last observed run plus how the poller classified it."""

    run: Run
    outcome: PollOutcome
    iterations: int

    @property
    def unclassified(self) -> bool:
        return self.outcome == PollOutcome.UNCLASSIFIED


class ProgressKind(str, Enum):
    WORKSPACE_LOCKED = "workspace_locked"
    ORGANIZATION_QUEUE = "organization_queue"
    WORKSPACE_QUEUE = "workspace_queue"
    WAITING = "waiting"


@dataclass(frozen=True)
class QueueProgress:
    """Why a pending run is still waiting."""

    run_id: str
    status: str
    kind: ProgressKind
    position: int = 0
    workspace: str | None = None

    def describe(self) -> str:
        if self.kind == ProgressKind.WORKSPACE_LOCKED:
            return f"Waiting for manually locked workspace {self.workspace} to be unlocked"
        if self.kind == ProgressKind.ORGANIZATION_QUEUE:
            return f"Waiting for {self.position} queued run(s) before starting run"
        if self.kind == ProgressKind.WORKSPACE_QUEUE:
            return (
                f"Waiting for {self.position} run(s) to finish in workspace "
                f"{self.workspace} before being queued..."
            )
        return f"Waiting for run {self.run_id}, status is {self.status}"


ProgressCallback = Callable[[QueueProgress], None]


class StatusPoller:
    def __init__(
        self,
        service: RemoteRunService,
        settings: PollSettings | None = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> None:
        self._service = service
        self._settings = settings or PollSettings()
        self._progress_callback = progress_callback

    def await_run(
        self,
        run_id: str,
        workspace_id: str | None,
        organization: str | None,
        *,
        plan_phase: bool,
        pending: frozenset[RunStatus],
        terminal: frozenset[RunStatus],
        cancel: CancelToken,
        is_done: Callable[[Run], bool] | None = None,
    ) -> PollResult:
        """Poll ``run_id`` until it leaves ``pending``.

        Returns a ``TERMINAL`` result when the status is in ``terminal`` (or
        ``is_done`` accepts the run) and an ``UNCLASSIFIED`` result when the
        status is in neither set; interpreting the latter is up to the
        caller. Transport failures reading the run propagate.
        """
        iteration = 0
        while True:
            cancel.sleep_or_raise(
                self._settings.delay_seconds(iteration), run_id=run_id, iteration=iteration
            )
            logger.debug("Polling run %s", run_id)
            try:
                run = self._service.read_run(run_id)
            except RemoteServiceError as exc:
                logger.error("Could not read run %s: %s", run_id, exc)
                raise

            if is_done is not None and is_done(run):
                logger.info("Run %s has reached a terminal state: %s", run.id, run.status_label)
                return PollResult(run, PollOutcome.TERMINAL, iteration + 1)

            status_class = classify(run.status, pending, terminal)
            if status_class == StatusClass.TERMINAL:
                logger.info("Run %s has reached a terminal state: %s", run.id, run.status_label)
                return PollResult(run, PollOutcome.TERMINAL, iteration + 1)
            if status_class == StatusClass.UNCLASSIFIED:
                logger.info("Run %s has entered unexpected state: %s", run.id, run.status_label)
                return PollResult(run, PollOutcome.UNCLASSIFIED, iteration + 1)

            self._report_progress(run, workspace_id or run.workspace_id, organization, plan_phase)
            iteration += 1

    def _emit(self, progress: QueueProgress) -> None:
        logger.info(progress.describe())
        if self._progress_callback is not None:
            self._progress_callback(progress)

    def _report_progress(
        self,
        run: Run,
        workspace_id: str | None,
        organization: str | None,
        plan_phase: bool,
    ) -> None:
        """Best-effort diagnostics; lookup failures are logged and skipped."""
        if workspace_id is None:
            self._emit(QueueProgress(run.id, run.status_label, ProgressKind.WAITING))
            return
        try:
            progress = self._queue_progress(run, workspace_id, organization, plan_phase)
        except RemoteServiceError as exc:
            logger.warning("Unable to compute queue position for run %s: %s", run.id, exc)
            return
        self._emit(progress)

    def _queue_progress(
        self,
        run: Run,
        workspace_id: str,
        organization: str | None,
        plan_phase: bool,
    ) -> QueueProgress:
        logger.debug("Reading workspace %s", workspace_id)
        workspace = self._service.read_workspace_by_id(workspace_id)
        status = run.status_label

        if self._locked_by_other_run(workspace, run):
            return QueueProgress(
                run.id, status, ProgressKind.WORKSPACE_LOCKED, workspace=workspace.name
            )

        org = organization or workspace.organization
        if workspace.current_run_id == run.id and org:
            org_position = organization_queue_position(self._service, run.id, org)
            if org_position > 0:
                capacity = self._service.read_organization_capacity(org)
                return QueueProgress(
                    run.id,
                    status,
                    ProgressKind.ORGANIZATION_QUEUE,
                    position=max(0, org_position - capacity.running),
                    workspace=workspace.name,
                )

        ws_position = workspace_queue_position(
            self._service,
            run.id,
            workspace.id,
            plan_phase=plan_phase,
            current_run_id=workspace.current_run_id,
        )
        if ws_position > 0:
            return QueueProgress(
                run.id,
                status,
                ProgressKind.WORKSPACE_QUEUE,
                position=ws_position,
                workspace=workspace.name,
            )
        return QueueProgress(run.id, status, ProgressKind.WAITING, workspace=workspace.name)

    def _locked_by_other_run(self, workspace: Workspace, run: Run) -> bool:
        # Heuristic only: a lock with a different, not-yet-started current run
        # is assumed to be a manual lock.
        if not workspace.locked or workspace.current_run_id is None:
            return False
        if workspace.current_run_id == run.id:
            return False
        current = self._service.read_run(workspace.current_run_id)
        return current.status == RunStatus.PENDING
