"""Tests for run lifecycle bookkeeping."""

from __future__ import annotations

import pytest

from wr_controller.lifecycle import RunLifecycle, RunPhase


pytestmark = pytest.mark.unit_controller


def test_retry_budget_is_bounded() -> None:
    lifecycle = RunLifecycle(max_attempts=2)
    assert lifecycle.can_retry(True)
    assert lifecycle.mark_retry() == 1
    assert lifecycle.mark_retry() == 2
    assert not lifecycle.can_retry(True)
    with pytest.raises(ValueError):
        lifecycle.mark_retry()
    assert lifecycle.attempt == 2


def test_retry_disabled_never_retries() -> None:
    assert not RunLifecycle(max_attempts=5).can_retry(False)


def test_phase_history_tracks_run_identity() -> None:
    lifecycle = RunLifecycle(max_attempts=1)
    lifecycle.start_phase(RunPhase.CREATE, "run-1")
    lifecycle.start_phase(RunPhase.PLAN)
    lifecycle.mark_retry()
    assert lifecycle.run_id is None
    lifecycle.finish()

    assert lifecycle.history == [
        (RunPhase.CREATE, "run-1"),
        (RunPhase.PLAN, "run-1"),
        (RunPhase.FINISHED, None),
    ]
    assert lifecycle.is_terminal
