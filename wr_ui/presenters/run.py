"""Presenter for run snapshots."""

from __future__ import annotations

from wr_client.models import Run

RUN_COLUMNS = ["Field", "Value"]


def _flag(value: bool) -> str:
    return "yes" if value else "no"


def build_run_rows(run: Run) -> list[list[str]]:
    """Transform a run snapshot into key/value table rows."""
    return [
        ["ID", run.id],
        ["Status", run.status_label],
        ["Workspace", run.workspace_id or "-"],
        ["Destroy", _flag(run.is_destroy)],
        ["Auto apply", _flag(run.auto_apply)],
        ["Has changes", _flag(run.has_changes)],
        ["Confirmable", _flag(run.is_confirmable)],
        ["Message", run.message or "-"],
    ]
