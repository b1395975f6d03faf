"""Remote control plane object model (read-only snapshots)."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar, Union


class RunStatus(str, Enum):
    """Every run status the control plane reports."""

    PENDING = "pending"
    FETCHING = "fetching"
    FETCHING_COMPLETED = "fetching_completed"
    QUEUING = "queuing"
    PRE_PLAN_RUNNING = "pre_plan_running"
    PRE_PLAN_COMPLETED = "pre_plan_completed"
    PLAN_QUEUED = "plan_queued"
    PLANNING = "planning"
    PLANNED = "planned"
    POST_PLAN_RUNNING = "post_plan_running"
    POST_PLAN_COMPLETED = "post_plan_completed"
    COST_ESTIMATING = "cost_estimating"
    COST_ESTIMATED = "cost_estimated"
    POLICY_CHECKING = "policy_checking"
    POLICY_CHECKED = "policy_checked"
    POLICY_OVERRIDE = "policy_override"
    POLICY_SOFT_FAILED = "policy_soft_failed"
    PLANNED_AND_FINISHED = "planned_and_finished"
    CONFIRMED = "confirmed"
    QUEUING_APPLY = "queuing_apply"
    PRE_APPLY_RUNNING = "pre_apply_running"
    PRE_APPLY_COMPLETED = "pre_apply_completed"
    APPLY_QUEUED = "apply_queued"
    APPLYING = "applying"
    APPLIED = "applied"
    ERRORED = "errored"
    CANCELED = "canceled"
    FORCE_CANCELED = "force_canceled"
    DISCARDED = "discarded"

    @classmethod
    def parse(cls, value: "str | RunStatus") -> "StatusValue":
        """Return the enum member for ``value`` or the raw string if unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value))
        except ValueError:
            return str(value)


# Unknown statuses stay raw strings so they never match a status set.
StatusValue = Union[RunStatus, str]


def status_label(status: StatusValue) -> str:
    return status.value if isinstance(status, RunStatus) else str(status)


@dataclass(frozen=True)
class Run:
    """Snapshot of a remote run as last observed."""

    id: str
    status: StatusValue
    workspace_id: str | None = None
    is_destroy: bool = False
    auto_apply: bool = False
    has_changes: bool = True
    allow_empty_apply: bool = False
    is_confirmable: bool = False
    message: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", RunStatus.parse(self.status))

    @property
    def status_label(self) -> str:
        return status_label(self.status)


@dataclass(frozen=True)
class Workspace:
    """Snapshot of a workspace and its current run pointer."""

    id: str
    name: str
    organization: str | None = None
    locked: bool = False
    current_run_id: str | None = None


@dataclass(frozen=True)
class QueueItem:
    """An entry of an organization-wide run queue."""

    id: str
    status: StatusValue
    position_in_queue: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", RunStatus.parse(self.status))


@dataclass(frozen=True)
class OrganizationCapacity:
    organization: str
    pending: int = 0
    running: int = 0


T = TypeVar("T")


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of a paginated listing."""

    items: list[T] = field(default_factory=list)
    current_page: int = 1
    total_pages: int = 1
    next_page: int | None = None

    @property
    def is_last(self) -> bool:
        return self.current_page >= self.total_pages or self.next_page is None
