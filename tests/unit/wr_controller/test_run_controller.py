"""Tests for the run lifecycle controller."""

from __future__ import annotations

import threading
import time
from datetime import datetime, timezone

import pytest

from tests.helpers.fake_service import FakeRunService, make_run
from wr_client.models import Page, RunStatus
from wr_common.errors import (
    ConfigurationError,
    RemoteServiceError,
    RunCancelledError,
    RunFailedError,
    UnexpectedRunStatusError,
)
from wr_controller.cancel import CancelToken
from wr_controller.controller import RunController
from wr_controller.lifecycle import RunPhase
from wr_controller.models import ControllerOptions, RunOptions, RunRequest
from wr_controller.poller import PollSettings, ProgressKind, QueueProgress


pytestmark = pytest.mark.unit_controller

FIXED_NOW = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def _request(*, destroy: bool = False, **options) -> RunRequest:
    values = {"manual_confirm": False, "retry_backoff_min": 0, "retry_backoff_max": 0}
    values.update(options)
    block = RunOptions(**values)
    if destroy:
        return RunRequest(organization="acme", workspace="app", destroy=block)
    return RunRequest(organization="acme", workspace="app", apply=block)


def _controller(service: FakeRunService, progress_callback=None) -> RunController:
    options = ControllerOptions(
        poll_settings=PollSettings(min_ms=0, max_ms=0),
        progress_callback=progress_callback,
        clock=lambda: FIXED_NOW,
    )
    return RunController(service, options)


class RecordingToken(CancelToken):
    """Cancel token that records requested waits and never actually sleeps."""

    def __init__(self) -> None:
        super().__init__()
        self.waits: list[tuple[float, dict[str, object]]] = []

    def sleep_or_raise(self, seconds: float, **context: object) -> None:
        self.waits.append((seconds, context))
        super().sleep_or_raise(0, **context)


def test_planned_and_finished_succeeds_without_confirmation() -> None:
    service = FakeRunService(scripts=[[RunStatus.PLANNING, RunStatus.PLANNED_AND_FINISHED]])
    controller = _controller(service)

    run_id = controller.execute(_request())

    assert run_id == "run-1"
    assert service.count("apply_run") == 0
    assert service.count("create_run") == 1
    assert controller.lifecycle.phase == RunPhase.FINISHED


def test_plan_errors_are_retried_until_budget_is_exhausted() -> None:
    service = FakeRunService(scripts=[[RunStatus.ERRORED]] * 3)
    controller = _controller(service)

    with pytest.raises(RunFailedError) as excinfo:
        controller.execute(_request(retry=True, retry_attempts=2))

    assert service.count("create_run") == 3
    assert service.count("apply_run") == 0
    err = excinfo.value
    assert err.run_id == "run-3"
    assert err.context["phase"] == "plan"
    assert err.context["status"] == "errored"
    assert err.context["attempt"] == 2
    assert err.context["retry_attempts"] == 2
    assert "use the run ID run-3 to debug error" in str(err)
    assert controller.lifecycle.attempt == 2
    assert controller.lifecycle.phase == RunPhase.FAILED


def test_plan_error_without_retry_fails_immediately() -> None:
    service = FakeRunService(scripts=[[RunStatus.POLICY_SOFT_FAILED], [RunStatus.PLANNED_AND_FINISHED]])

    with pytest.raises(RunFailedError):
        _controller(service).execute(_request(retry=False, retry_attempts=2))

    assert service.count("create_run") == 1


def test_automatic_confirmation_issues_one_apply_call() -> None:
    service = FakeRunService(
        scripts=[[RunStatus.PLANNING, RunStatus.PLANNED, RunStatus.APPLYING, RunStatus.APPLIED]]
    )

    run_id = _controller(service).execute(_request(manual_confirm=False))

    assert run_id == "run-1"
    applies = [args for name, args in service.calls if name == "apply_run"]
    assert applies == [("run-1", "Run confirmed by workspace-run-lib on 2024-01-02 03:04:05 UTC")]


def test_manual_confirmation_waits_for_external_change() -> None:
    service = FakeRunService(
        scripts=[
            [
                RunStatus.PLANNED,
                RunStatus.PLANNED,
                RunStatus.CONFIRMED,
                RunStatus.APPLYING,
                RunStatus.APPLIED,
            ]
        ]
    )

    run_id = _controller(service).execute(_request(manual_confirm=True))

    assert run_id == "run-1"
    assert service.count("apply_run") == 0
    assert service.count("read_run") == 5


def test_discarded_run_fails_without_retry() -> None:
    service = FakeRunService(scripts=[[RunStatus.PLANNING, RunStatus.DISCARDED]] * 3)

    with pytest.raises(UnexpectedRunStatusError) as excinfo:
        _controller(service).execute(_request(retry=True, retry_attempts=2))

    assert service.count("create_run") == 1
    assert excinfo.value.context["status"] == "discarded"
    assert excinfo.value.context["phase"] == "plan"


def test_canceled_during_apply_is_unexpected() -> None:
    service = FakeRunService(scripts=[[RunStatus.PLANNED, RunStatus.APPLYING, RunStatus.CANCELED]])

    with pytest.raises(UnexpectedRunStatusError) as excinfo:
        _controller(service).execute(_request(retry=True))

    assert excinfo.value.context["phase"] == "apply"
    assert service.count("create_run") == 1


def test_apply_error_is_retried_with_a_fresh_run() -> None:
    service = FakeRunService(
        scripts=[
            [RunStatus.PLANNED, RunStatus.ERRORED],
            [RunStatus.PLANNED_AND_FINISHED],
        ]
    )

    run_id = _controller(service).execute(_request(retry=True, retry_attempts=1))

    assert run_id == "run-2"
    assert service.count("create_run") == 2
    assert service.count("apply_run") == 1


def test_policy_override_is_awaited_before_confirmation() -> None:
    service = FakeRunService(
        scripts=[
            [
                RunStatus.POLICY_OVERRIDE,
                RunStatus.POLICY_OVERRIDE,
                RunStatus.POLICY_CHECKED,
                RunStatus.APPLYING,
                RunStatus.APPLIED,
            ]
        ]
    )
    controller = _controller(service)

    assert controller.execute(_request()) == "run-1"
    assert service.count("apply_run") == 1
    phases = [phase for phase, _ in controller.lifecycle.history]
    assert RunPhase.POLICY_OVERRIDE in phases
    assert phases.index(RunPhase.POLICY_OVERRIDE) < phases.index(RunPhase.CONFIRM)


def test_externally_confirmed_run_skips_confirmation() -> None:
    service = FakeRunService(
        scripts=[[RunStatus.POLICY_OVERRIDE, RunStatus.APPLY_QUEUED, RunStatus.APPLIED]]
    )

    assert _controller(service).execute(_request()) == "run-1"
    assert service.count("apply_run") == 0


def test_plan_without_changes_waits_for_finish() -> None:
    service = FakeRunService(
        scripts=[
            [
                make_run("run-1", RunStatus.PLANNED, has_changes=False),
                RunStatus.PLANNED_AND_FINISHED,
            ]
        ]
    )

    assert _controller(service).execute(_request()) == "run-1"
    assert service.count("apply_run") == 0


def test_waits_until_run_is_confirmable() -> None:
    service = FakeRunService(
        scripts=[
            [
                make_run("run-1", RunStatus.COST_ESTIMATED, is_confirmable=False),
                make_run("run-1", RunStatus.POLICY_CHECKED, is_confirmable=True),
                RunStatus.APPLYING,
                RunStatus.APPLIED,
            ]
        ]
    )

    assert _controller(service).execute(_request()) == "run-1"
    assert service.count("apply_run") == 1


def test_failed_confirmation_reports_current_status() -> None:
    service = FakeRunService(
        scripts=[[RunStatus.PLANNED, RunStatus.DISCARDED]],
        apply_error=RemoteServiceError("conflict", status_code=409),
    )

    with pytest.raises(RemoteServiceError) as excinfo:
        _controller(service).execute(_request())

    err = excinfo.value
    assert err.status_code == 409
    assert "waited for status planned" in str(err)
    assert "current status is discarded" in str(err)
    assert err.context["phase"] == "confirm"


def test_no_wait_returns_after_creation() -> None:
    service = FakeRunService(scripts=[[RunStatus.PLANNING]])

    run_id = _controller(service).execute(_request(wait_for_run=False, manual_confirm=False))

    assert run_id == "run-1"
    assert service.count("read_run") == 0
    _, (workspace_id, is_destroy, auto_apply, message) = service.calls[-1]
    assert workspace_id == "ws-1"
    assert is_destroy is False
    assert auto_apply is True
    assert message == "Triggered by workspace-run-lib on 2024-01-02 03:04:05 UTC"


def test_wait_mode_never_requests_auto_apply() -> None:
    service = FakeRunService(scripts=[[RunStatus.PLANNED_AND_FINISHED]])

    _controller(service).execute(_request(wait_for_run=True))

    create_args = [args for name, args in service.calls if name == "create_run"][0]
    assert create_args[2] is False


def test_destroy_uses_destroy_block_and_flag() -> None:
    service = FakeRunService(scripts=[[RunStatus.PLANNED_AND_FINISHED]])
    request = _request(destroy=True)
    request = request.model_copy(update={"message": "tear down"})

    assert _controller(service).execute(request, is_destroy=True) == "run-1"
    create_args = [args for name, args in service.calls if name == "create_run"][0]
    assert create_args[1] is True
    assert create_args[3] == "tear down"


def test_missing_block_is_a_noop() -> None:
    service = FakeRunService()

    assert _controller(service).execute(_request(), is_destroy=True) is None
    assert service.calls == []


def test_workspace_lookup_failure_is_fatal() -> None:
    service = FakeRunService(scripts=[[RunStatus.PLANNED_AND_FINISHED]], fail_workspace_reads=True)

    with pytest.raises(RemoteServiceError) as excinfo:
        _controller(service).execute(_request(retry=True))

    assert service.count("create_run") == 0
    assert excinfo.value.context["workspace"] == "acme/app"


def test_workspace_id_skips_name_lookup() -> None:
    service = FakeRunService(scripts=[[RunStatus.PLANNED_AND_FINISHED]])
    request = RunRequest(workspace_id="ws-1", apply=RunOptions(manual_confirm=False))

    _controller(service).execute(request)

    assert service.count("read_workspace") == 0
    assert ("read_workspace_by_id", ("ws-1",)) in service.calls


def test_cancellation_during_retry_backoff() -> None:
    service = FakeRunService(scripts=[[RunStatus.ERRORED], [RunStatus.PLANNED_AND_FINISHED]])
    cancel = CancelToken()
    threading.Timer(0.05, cancel.request_cancel, kwargs={"reason": "user abort"}).start()

    started = time.monotonic()
    with pytest.raises(RunCancelledError):
        _controller(service).execute(
            _request(retry=True, retry_attempts=1, retry_backoff_min=60_000, retry_backoff_max=60_000),
            cancel=cancel,
        )

    assert time.monotonic() - started < 5
    assert service.count("create_run") == 1


def test_refresh_clears_missing_runs() -> None:
    service = FakeRunService(scripts=[[RunStatus.APPLIED]])
    controller = _controller(service)
    run_id = controller.execute(_request(wait_for_run=False))

    assert controller.refresh(run_id).status is RunStatus.APPLIED  # type: ignore[union-attr]
    assert controller.refresh("run-404") is None


def test_failed_confirmation_keeps_apply_error_when_reread_fails() -> None:
    service = FakeRunService(
        scripts=[[RunStatus.PLANNED]],
        apply_error=RemoteServiceError("apply conflict", status_code=409),
        read_error=RemoteServiceError("read failed", status_code=503),
    )

    with pytest.raises(RemoteServiceError) as excinfo:
        _controller(service).execute(_request())

    err = excinfo.value
    assert err.status_code == 409
    assert "apply conflict" in str(err)
    assert "additionally, got an error while reading the run: read failed" in str(err)
    assert err.run_id == "run-1"
    assert err.context["phase"] == "confirm"
    assert err.context["read_error"] == "read failed"
    assert "status" not in err.context


def test_retry_backoff_window_is_in_milliseconds() -> None:
    service = FakeRunService(scripts=[[RunStatus.ERRORED], [RunStatus.PLANNED_AND_FINISHED]])
    token = RecordingToken()

    run_id = _controller(service).execute(
        RunRequest(
            organization="acme",
            workspace="app",
            apply=RunOptions(manual_confirm=False, retry=True, retry_attempts=1),
        ),
        cancel=token,
    )

    assert run_id == "run-2"
    retry_waits = [seconds for seconds, ctx in token.waits if ctx.get("phase") == "retry_backoff"]
    assert retry_waits == [0.001]


def test_cancel_token_is_bound_to_service_for_the_drive() -> None:
    service = FakeRunService(scripts=[[RunStatus.PLANNED_AND_FINISHED]])
    token = CancelToken()

    _controller(service).execute(_request(), cancel=token)

    assert service.cancel_bindings == [token, None]


def test_cancel_token_is_unbound_when_the_drive_fails() -> None:
    service = FakeRunService(scripts=[[RunStatus.ERRORED]])
    token = CancelToken()

    with pytest.raises(RunFailedError):
        _controller(service).execute(_request(retry=False), cancel=token)

    assert service.cancel_bindings == [token, None]


def test_manual_confirmation_wait_skips_planned_runs_in_workspace_queue() -> None:
    progress: list[QueueProgress] = []
    service = FakeRunService(
        scripts=[[RunStatus.PLANNED, RunStatus.PLANNED, RunStatus.CONFIRMED, RunStatus.APPLIED]],
        run_pages=[
            Page(items=[make_run("run-1", RunStatus.PLANNED), make_run("run-0", RunStatus.PLANNED)])
        ],
    )

    run_id = _controller(service, progress.append).execute(_request(manual_confirm=True))

    assert run_id == "run-1"
    assert [item.kind for item in progress] == [ProgressKind.WAITING]


def test_name_lookup_requires_organization_and_workspace() -> None:
    service = FakeRunService(scripts=[[RunStatus.PLANNED_AND_FINISHED]])
    request = RunRequest(workspace_id="ws-1", apply=RunOptions(manual_confirm=False))
    request = request.model_copy(update={"workspace_id": None})

    with pytest.raises(ConfigurationError):
        _controller(service).execute(request)

    assert service.count("read_workspace") == 0
    assert service.count("create_run") == 0
