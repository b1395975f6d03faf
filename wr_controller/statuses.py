"""Named run-status sets used to classify polling outcomes per phase."""

from __future__ import annotations

from enum import Enum

from wr_client.models import RunStatus, StatusValue

PLAN_PENDING: frozenset[RunStatus] = frozenset(
    {
        RunStatus.PENDING,
        RunStatus.PLAN_QUEUED,
        RunStatus.PLANNING,
        RunStatus.COST_ESTIMATING,
        RunStatus.POLICY_CHECKING,
        RunStatus.QUEUING,
        RunStatus.FETCHING,
        RunStatus.FETCHING_COMPLETED,
        RunStatus.PRE_PLAN_RUNNING,
        RunStatus.PRE_PLAN_COMPLETED,
        RunStatus.POST_PLAN_RUNNING,
    }
)

PLAN_TERMINAL: frozenset[RunStatus] = frozenset(
    {
        RunStatus.PLANNED,
        RunStatus.PLANNED_AND_FINISHED,
        RunStatus.ERRORED,
        RunStatus.COST_ESTIMATED,
        RunStatus.POLICY_CHECKED,
        RunStatus.POLICY_SOFT_FAILED,
        RunStatus.POLICY_OVERRIDE,
        RunStatus.POST_PLAN_COMPLETED,
    }
)

# Plan outcomes that count against the retry budget.
PLAN_FAILED: frozenset[RunStatus] = frozenset(
    {RunStatus.ERRORED, RunStatus.POLICY_SOFT_FAILED}
)

POLICY_OVERRIDE_PENDING: frozenset[RunStatus] = frozenset({RunStatus.POLICY_OVERRIDE})

POLICY_OVERRIDDEN: frozenset[RunStatus] = frozenset(
    {
        RunStatus.POLICY_CHECKED,
        RunStatus.CONFIRMED,
        RunStatus.APPLY_QUEUED,
        RunStatus.APPLYING,
        RunStatus.QUEUING_APPLY,
        RunStatus.PRE_APPLY_RUNNING,
        RunStatus.PRE_APPLY_COMPLETED,
    }
)

CONFIRMATION_PENDING: frozenset[RunStatus] = frozenset(
    {
        RunStatus.PLANNED,
        RunStatus.COST_ESTIMATED,
        RunStatus.POLICY_CHECKED,
        RunStatus.POST_PLAN_COMPLETED,
    }
)

CONFIRMATION_DONE: frozenset[RunStatus] = frozenset(
    {
        RunStatus.CONFIRMED,
        RunStatus.APPLY_QUEUED,
        RunStatus.APPLYING,
        RunStatus.QUEUING_APPLY,
        RunStatus.PRE_APPLY_RUNNING,
        RunStatus.PRE_APPLY_COMPLETED,
    }
)

APPLY_PENDING: frozenset[RunStatus] = frozenset(
    {
        RunStatus.CONFIRMED,
        RunStatus.APPLY_QUEUED,
        RunStatus.APPLYING,
        RunStatus.QUEUING,
        RunStatus.FETCHING,
        RunStatus.QUEUING_APPLY,
        RunStatus.PRE_APPLY_RUNNING,
        RunStatus.PRE_APPLY_COMPLETED,
    }
)

APPLY_DONE: frozenset[RunStatus] = frozenset({RunStatus.APPLIED, RunStatus.ERRORED})

# Finished runs that never block a queued run in the same workspace.
WORKSPACE_QUEUE_IGNORED: frozenset[RunStatus] = frozenset(
    {
        RunStatus.APPLIED,
        RunStatus.CANCELED,
        RunStatus.FORCE_CANCELED,
        RunStatus.DISCARDED,
        RunStatus.ERRORED,
        RunStatus.PLANNED_AND_FINISHED,
    }
)


class StatusClass(str, Enum):
    PENDING = "pending"
    TERMINAL = "terminal"
    UNCLASSIFIED = "unclassified"


def classify(
    status: StatusValue,
    pending: frozenset[RunStatus],
    terminal: frozenset[RunStatus],
) -> StatusClass:
    """Place ``status`` in the terminal set, the pending set, or neither.

    Terminal wins when a status belongs to both sets.
    """
    if status in terminal:
        return StatusClass.TERMINAL
    if status in pending:
        return StatusClass.PENDING
    return StatusClass.UNCLASSIFIED
