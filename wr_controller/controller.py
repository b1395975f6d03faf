"""Run lifecycle controller driving a run from creation to apply."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from wr_client.models import Run, RunStatus, Workspace
from wr_client.service import RemoteRunService
from wr_common.errors import (
    ConfigurationError,
    RemoteNotFoundError,
    RemoteServiceError,
    RunFailedError,
    UnexpectedRunStatusError,
    WRError,
)
from wr_common.logging import bind_run_context
from wr_controller.backoff import backoff_seconds
from wr_controller.cancel import CancelToken
from wr_controller.lifecycle import RunLifecycle, RunPhase
from wr_controller.models.controller_options import ControllerOptions
from wr_controller.models.request import RunOptions, RunRequest
from wr_controller.poller import StatusPoller
from wr_controller.statuses import (
    APPLY_DONE,
    APPLY_PENDING,
    CONFIRMATION_DONE,
    CONFIRMATION_PENDING,
    PLAN_FAILED,
    PLAN_PENDING,
    PLAN_TERMINAL,
    POLICY_OVERRIDDEN,
    POLICY_OVERRIDE_PENDING,
)

logger = logging.getLogger(__name__)

RUN_MESSAGE_PREFIX = "Triggered by workspace-run-lib"
CONFIRM_COMMENT_PREFIX = "Run confirmed by workspace-run-lib"

_AWAIT_CONFIRMABLE_PENDING = PLAN_PENDING | CONFIRMATION_PENDING
_AWAIT_CONFIRMABLE_TERMINAL = PLAN_TERMINAL - CONFIRMATION_PENDING


@dataclass(frozen=True)
class _AttemptResult:
    """Outcome of one attempt: success, or a run-level failure in ``phase``."""

    run: Run
    phase: RunPhase
    succeeded: bool


@dataclass
class _Drive:
    """Per-attempt state shared by the phase helpers."""

    run: Run
    workspace: Workspace
    organization: str | None
    lifecycle: RunLifecycle
    cancel: CancelToken


def _with_context(exc: RemoteServiceError, message: str, **context: object) -> RemoteServiceError:
    """Re-raiseable copy of ``exc`` (same class) carrying extra context."""
    return type(exc)(
        f"{message}: {exc}",
        status_code=exc.status_code,
        context={**exc.context, **context},
        cause=exc,
    )


class RunController:
    """Controller creating a run and driving it through plan, confirm and apply."""

    def __init__(
        self,
        service: RemoteRunService,
        options: ControllerOptions | None = None,
    ) -> None:
        self._service = service
        self._options = options or ControllerOptions()
        self._poller = StatusPoller(
            service,
            settings=self._options.poll_settings,
            progress_callback=self._options.progress_callback,
        )
        self.lifecycle = RunLifecycle()

    def execute(
        self,
        request: RunRequest,
        *,
        is_destroy: bool = False,
        attempt: int = 0,
        cancel: CancelToken | None = None,
    ) -> str | None:
        """
        Create a run for the request and drive it to a terminal state.

        Args:
            request: Validated run request.
            is_destroy: Use the ``destroy`` block and create a destroy run.
            attempt: Starting retry attempt, 0 for a fresh drive.
            cancel: Token observed by every wait, transport retries included; a
                private one is used if omitted.

        Returns:
            The ID of the last created run, or None when the selected block is
            not configured.

        Raises:
            RunFailedError: the run errored and the retry budget is exhausted.
            UnexpectedRunStatusError: the run stopped in an unclassified status.
            RunCancelledError: a wait was cancelled.
            RemoteServiceError: a remote call failed.
        """
        kind = "destroy" if is_destroy else "apply"
        run_options = request.options_for(is_destroy)
        if run_options is None:
            logger.info("No %s options configured, nothing to run", kind)
            return None
        if attempt < 0:
            raise ValueError(f"attempt must be >= 0, got {attempt}")

        cancel = cancel or CancelToken()
        lifecycle = RunLifecycle(max_attempts=run_options.retry_attempts, attempt=attempt)
        self.lifecycle = lifecycle

        self._service.bind_cancel(cancel)
        try:
            return self._run_attempts(request, run_options, is_destroy, lifecycle, cancel)
        finally:
            self._service.bind_cancel(None)

    def _run_attempts(
        self,
        request: RunRequest,
        run_options: RunOptions,
        is_destroy: bool,
        lifecycle: RunLifecycle,
        cancel: CancelToken,
    ) -> str:
        kind = "destroy" if is_destroy else "apply"
        while True:
            with bind_run_context(operation=kind, attempt=lifecycle.attempt):
                try:
                    result = self._attempt(request, run_options, is_destroy, lifecycle, cancel)
                except WRError as exc:
                    logger.error(
                        "Run drive aborted during %s: %s", lifecycle.phase.value, exc
                    )
                    lifecycle.mark_failed()
                    raise

                if result.succeeded:
                    logger.info("Run %s completed successfully", result.run.id)
                    lifecycle.finish()
                    return result.run.id

                if lifecycle.can_retry(run_options.retry):
                    logger.warning(
                        "Run %s ended with status %s during %s, retrying (%d/%d)",
                        result.run.id,
                        result.run.status_label,
                        result.phase.value,
                        lifecycle.attempt + 1,
                        run_options.retry_attempts,
                    )
                    lifecycle.mark_retry()
                    continue

                logger.error(
                    "Run %s ended with status %s during %s, not retrying (retry=%s, attempt %d/%d)",
                    result.run.id,
                    result.run.status_label,
                    result.phase.value,
                    run_options.retry,
                    lifecycle.attempt,
                    run_options.retry_attempts,
                )
                lifecycle.mark_failed()
                raise RunFailedError(
                    f"run errored during {result.phase.value}, "
                    f"use the run ID {result.run.id} to debug error",
                    context={
                        "run_id": result.run.id,
                        "phase": result.phase.value,
                        "status": result.run.status_label,
                        "attempt": lifecycle.attempt,
                        "retry_attempts": run_options.retry_attempts,
                    },
                )

    def refresh(self, run_id: str) -> Optional[Run]:
        """Return the current run, or None once the remote no longer knows it."""
        try:
            return self._service.read_run(run_id)
        except RemoteNotFoundError:
            logger.warning("Run %s not found, clearing it", run_id)
            return None

    def _attempt(
        self,
        request: RunRequest,
        run_options: RunOptions,
        is_destroy: bool,
        lifecycle: RunLifecycle,
        cancel: CancelToken,
    ) -> _AttemptResult:
        if lifecycle.attempt > 0:
            lifecycle.start_phase(RunPhase.RETRY_BACKOFF)
            delay = backoff_seconds(
                run_options.retry_backoff_min,
                run_options.retry_backoff_max,
                lifecycle.attempt,
            )
            logger.info("Waiting %.2fs before retry attempt %d", delay, lifecycle.attempt)
            cancel.sleep_or_raise(delay, phase=RunPhase.RETRY_BACKOFF.value, attempt=lifecycle.attempt)

        lifecycle.start_phase(RunPhase.CREATE)
        workspace = self._resolve_workspace(request)
        message = request.message or f"{RUN_MESSAGE_PREFIX} on {self._options.timestamp()}"
        try:
            run = self._service.create_run(
                workspace,
                is_destroy=is_destroy,
                auto_apply=run_options.auto_apply,
                message=message,
            )
        except RemoteServiceError as exc:
            raise _with_context(
                exc,
                f"error creating run in workspace {workspace.name}",
                workspace_id=workspace.id,
                phase=RunPhase.CREATE.value,
            ) from exc
        lifecycle.run_id = run.id
        logger.info("Created run %s in workspace %s", run.id, workspace.name)

        if not run_options.wait_for_run:
            logger.info("Not waiting for run %s", run.id)
            return _AttemptResult(run, RunPhase.CREATE, succeeded=True)

        drive = _Drive(
            run=run,
            workspace=workspace,
            organization=request.organization or workspace.organization,
            lifecycle=lifecycle,
            cancel=cancel,
        )
        with bind_run_context(run_id=run.id, workspace_id=workspace.id):
            return self._drive(drive, run_options)

    def _drive(self, drive: _Drive, run_options: RunOptions) -> _AttemptResult:
        drive.lifecycle.start_phase(RunPhase.PLAN)
        run = self._settle_plan(drive)
        if run.status in PLAN_FAILED:
            return _AttemptResult(run, RunPhase.PLAN, succeeded=False)
        if run.status == RunStatus.PLANNED_AND_FINISHED:
            logger.info("Run %s planned with nothing to apply", run.id)
            return _AttemptResult(run, RunPhase.PLAN, succeeded=True)

        if run.status in CONFIRMATION_DONE:
            logger.info("Run %s already confirmed (%s)", run.id, run.status_label)
        else:
            drive.lifecycle.start_phase(RunPhase.CONFIRM)
            self._confirm(drive, run, run_options)

        drive.lifecycle.start_phase(RunPhase.APPLY)
        run = self._await(drive, pending=APPLY_PENDING, terminal=APPLY_DONE, plan_phase=False)
        if run.status == RunStatus.APPLIED:
            return _AttemptResult(run, RunPhase.APPLY, succeeded=True)
        return _AttemptResult(run, RunPhase.APPLY, succeeded=False)

    def _settle_plan(self, drive: _Drive) -> Run:
        """Wait until the plan either failed, finished, or is ready to confirm."""
        run = self._await(drive, pending=PLAN_PENDING, terminal=PLAN_TERMINAL, plan_phase=True)
        while True:
            status = run.status
            if status in PLAN_FAILED or status == RunStatus.PLANNED_AND_FINISHED:
                return run

            if status == RunStatus.POLICY_OVERRIDE:
                drive.lifecycle.start_phase(RunPhase.POLICY_OVERRIDE)
                logger.info("Run %s is waiting for a policy override", run.id)
                run = self._await(
                    drive,
                    pending=POLICY_OVERRIDE_PENDING,
                    terminal=POLICY_OVERRIDDEN,
                    plan_phase=True,
                )
                continue

            if status in CONFIRMATION_DONE:
                return run

            if not run.has_changes and not run.allow_empty_apply:
                logger.info("Run %s has no changes, waiting for it to finish", run.id)
                run = self._await(
                    drive,
                    pending=CONFIRMATION_PENDING,
                    terminal=frozenset({RunStatus.PLANNED_AND_FINISHED}),
                    plan_phase=True,
                )
                continue

            if run.is_confirmable:
                return run

            logger.info("Run %s is not confirmable yet (%s)", run.id, run.status_label)
            run = self._await(
                drive,
                pending=_AWAIT_CONFIRMABLE_PENDING,
                terminal=_AWAIT_CONFIRMABLE_TERMINAL,
                plan_phase=True,
                is_done=lambda current: current.is_confirmable,
            )

    def _confirm(self, drive: _Drive, run: Run, run_options: RunOptions) -> None:
        if run_options.manual_confirm:
            logger.info("Waiting for run %s to be confirmed", run.id)
            self._await(
                drive,
                pending=frozenset({run.status}),
                terminal=CONFIRMATION_DONE,
                plan_phase=True,
            )
            return

        comment = f"{CONFIRM_COMMENT_PREFIX} on {self._options.timestamp()}"
        try:
            self._service.apply_run(run.id, comment)
        except RemoteServiceError as exc:
            context: dict[str, object] = {
                "run_id": run.id,
                "phase": RunPhase.CONFIRM.value,
                "expected_status": run.status_label,
            }
            try:
                current = self._service.read_run(run.id)
            except RemoteServiceError as read_exc:
                logger.warning("Unable to re-read run %s after a failed apply: %s", run.id, read_exc)
                context["read_error"] = str(read_exc)
                detail = (
                    f"waited for status {run.status_label}; additionally, "
                    f"got an error while reading the run: {read_exc}"
                )
            else:
                context["status"] = current.status_label
                detail = (
                    f"waited for status {run.status_label}, current status is "
                    f"{current.status_label}"
                )
            raise RemoteServiceError(
                f"run errored while applying run {run.id} ({detail}): {exc}",
                status_code=exc.status_code,
                context=context,
                cause=exc,
            ) from exc
        logger.info("Confirmed run %s", run.id)

    def _await(
        self,
        drive: _Drive,
        *,
        pending: frozenset[RunStatus],
        terminal: frozenset[RunStatus],
        plan_phase: bool,
        is_done: Callable[[Run], bool] | None = None,
    ) -> Run:
        result = self._poller.await_run(
            drive.run.id,
            drive.workspace.id,
            drive.organization,
            plan_phase=plan_phase,
            pending=pending,
            terminal=terminal,
            cancel=drive.cancel,
            is_done=is_done,
        )
        run = result.run
        if result.unclassified:
            phase = drive.lifecycle.phase.value
            raise UnexpectedRunStatusError(
                f"run {run.id} entered unexpected status {run.status_label} during {phase}, "
                f"use the run ID {run.id} to debug error",
                context={
                    "run_id": run.id,
                    "phase": phase,
                    "status": run.status_label,
                    "attempt": drive.lifecycle.attempt,
                },
            )
        drive.run = run
        return run

    def _resolve_workspace(self, request: RunRequest) -> Workspace:
        try:
            if request.workspace_id:
                return self._service.read_workspace_by_id(request.workspace_id)
            if not request.organization or not request.workspace:
                raise ConfigurationError(
                    "run request needs a workspace_id or an organization and workspace name"
                )
            return self._service.read_workspace(request.organization, request.workspace)
        except RemoteServiceError as exc:
            target = request.workspace_id or f"{request.organization}/{request.workspace}"
            raise _with_context(
                exc,
                f"error reading workspace {target}",
                workspace=target,
                phase=RunPhase.CREATE.value,
            ) from exc
