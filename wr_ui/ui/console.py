"""Rich-based console output used by the CLI."""

from __future__ import annotations

import sys
from typing import IO, Sequence

from rich.console import Console
from rich.table import Table
from rich.theme import Theme

from wr_controller.poller import ProgressKind, QueueProgress

THEME = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "red",
        "success": "green",
        "accent": "#3ea6ff",
    }
)

_PROGRESS_STYLES = {
    ProgressKind.WORKSPACE_LOCKED: "warning",
    ProgressKind.ORGANIZATION_QUEUE: "info",
    ProgressKind.WORKSPACE_QUEUE: "info",
    ProgressKind.WAITING: "dim",
}


class ConsoleUI:
    """ANSI-friendly output with Rich tables."""

    def __init__(self, stream: IO[str] | None = None):
        self.console = Console(
            theme=THEME,
            file=stream or sys.stdout,
            highlight=False,
            soft_wrap=True,
        )

    def show_warning(self, message: str) -> None:
        self.console.print(message, style="warning")

    def show_error(self, message: str) -> None:
        self.console.print(message, style="error")

    def show_success(self, message: str) -> None:
        self.console.print(message, style="success")

    def show_progress(self, progress: QueueProgress) -> None:
        self.console.print(progress.describe(), style=_PROGRESS_STYLES[progress.kind])

    def show_table(self, title: str, columns: Sequence[str], rows: list[Sequence[str]]) -> None:
        table = Table(
            title=f"[b]{title}[/b]",
            border_style="accent",
            header_style="bold white",
            row_styles=("", "dim"),
        )
        for column in columns:
            table.add_column(column, overflow="fold")
        for row in rows:
            table.add_row(*[str(cell) for cell in row])
        self.console.print(table)
