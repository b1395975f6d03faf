"""Paginated searches computing where a run sits in its queues."""

from __future__ import annotations

import logging

from wr_client.models import RunStatus
from wr_client.service import RemoteRunService
from wr_common.errors import RemoteServiceError
from wr_controller.statuses import WORKSPACE_QUEUE_IGNORED

logger = logging.getLogger(__name__)


def organization_queue_position(
    service: RemoteRunService, run_id: str, organization: str
) -> int:
    """Return the queue-assigned position of ``run_id`` in the organization queue.

    Zero means the run is not queued at the organization level (for
    example because it is already running).
    """
    page_number: int | None = None
    while True:
        try:
            page = service.list_organization_run_queue(organization, page_number)
        except RemoteServiceError as exc:
            raise RemoteServiceError(
                f"unable to read run queue for organization {organization}: {exc}",
                context={"organization": organization, "run_id": run_id, "page": page_number},
                cause=exc,
            ) from exc

        for item in page.items:
            if item.id == run_id:
                return item.position_in_queue

        if page.is_last:
            return 0
        page_number = page.next_page


def workspace_queue_position(
    service: RemoteRunService,
    run_id: str,
    workspace_id: str,
    *,
    plan_phase: bool,
    current_run_id: str | None,
) -> int:
    """Count the unfinished runs listed after ``run_id`` in its workspace.

    Entries before the target are skipped. Finished runs never count, and a
    ``planned`` run only counts while waiting on the apply phase. The scan
    stops at the workspace's current run, which is the last one blocking us.
    """
    position = 0
    found = False
    page_number: int | None = None
    while True:
        try:
            page = service.list_runs(workspace_id, page_number)
        except RemoteServiceError as exc:
            raise RemoteServiceError(
                f"unable to read run list for workspace {workspace_id}: {exc}",
                context={"workspace_id": workspace_id, "run_id": run_id, "page": page_number},
                cause=exc,
            ) from exc

        for item in page.items:
            if not found:
                found = item.id == run_id
                continue

            if item.status in WORKSPACE_QUEUE_IGNORED:
                continue
            if plan_phase and item.status == RunStatus.PLANNED:
                continue

            position += 1
            if current_run_id is not None and item.id == current_run_id:
                return position

        if page.is_last:
            return position
        page_number = page.next_page
