"""Remote Run Service capability set consumed by the controller."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from wr_client.models import OrganizationCapacity, Page, QueueItem, Run, Workspace


class RetryWaiter(Protocol):
    """Cancellable sleep used between transport retries."""

    def sleep_or_raise(self, seconds: float, **context: object) -> None: ...


@runtime_checkable
class RemoteRunService(Protocol):
    """Network operations the run controller depends on.

    Every method may raise ``RemoteServiceError``; lookups of missing
    objects raise ``RemoteNotFoundError``.

    Waits between transport retries go through the waiter given to
    ``bind_cancel``, which raises ``RunCancelledError`` once it trips.
    """

    def create_run(
        self,
        workspace: Workspace,
        *,
        is_destroy: bool,
        auto_apply: bool,
        message: str,
    ) -> Run: ...

    def read_run(self, run_id: str) -> Run: ...

    def apply_run(self, run_id: str, comment: str) -> None: ...

    def list_runs(self, workspace_id: str, page: int | None = None) -> Page[Run]: ...

    def read_workspace(self, organization: str, name: str) -> Workspace: ...

    def read_workspace_by_id(self, workspace_id: str) -> Workspace: ...

    def list_organization_run_queue(
        self, organization: str, page: int | None = None
    ) -> Page[QueueItem]: ...

    def read_organization_capacity(self, organization: str) -> OrganizationCapacity: ...

    def bind_cancel(self, cancel: RetryWaiter | None) -> None: ...
