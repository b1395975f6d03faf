from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.markup import escape

from wr_common.errors import RunCancelledError, WRError, error_to_payload
from wr_controller.api import CancelToken, RunRequest
from wr_ui.presenters.run import RUN_COLUMNS, build_run_rows
from wr_ui.wiring.dependencies import UIContext

logger = logging.getLogger(__name__)

EXIT_FAILURE = 1
EXIT_CANCELLED = 130
CONFIG_HELP = "Run request file (JSON or YAML)."


def register_run_commands(app: typer.Typer, ctx: UIContext) -> None:
    """Register apply, destroy and show on the given Typer app."""

    def _execute(config: Path, *, is_destroy: bool) -> None:
        kind = "destroy" if is_destroy else "apply"
        try:
            request = RunRequest.load(config)
            controller = ctx.build_controller()
            with CancelToken(enable_signals=True) as cancel:
                run_id = controller.execute(request, is_destroy=is_destroy, cancel=cancel)
        except RunCancelledError as exc:
            ctx.ui.show_warning(f"Cancelled: {escape(str(exc))}")
            raise typer.Exit(EXIT_CANCELLED)
        except WRError as exc:
            logger.debug("%s failed: %s", kind, error_to_payload(exc), exc_info=True)
            ctx.ui.show_error(f"{exc.error_type}: {escape(str(exc))}")
            raise typer.Exit(EXIT_FAILURE)

        if run_id is None:
            ctx.ui.show_warning(f"No '{kind}' block in {config}, nothing to do.")
            return
        ctx.ui.show_success(f"Run {run_id} finished ({kind}).")
        typer.echo(run_id)

    @app.command("apply")
    def apply(config: Path = typer.Option(..., "--config", "-c", help=CONFIG_HELP)) -> None:
        """Create an apply run for the configured workspace and drive it to completion."""
        _execute(config, is_destroy=False)

    @app.command("destroy")
    def destroy(config: Path = typer.Option(..., "--config", "-c", help=CONFIG_HELP)) -> None:
        """Create a destroy run for the configured workspace and drive it to completion."""
        _execute(config, is_destroy=True)

    @app.command("show")
    def show(run_id: str = typer.Argument(..., help="Run ID to inspect.")) -> None:
        """Show the current state of a run."""
        try:
            run = ctx.build_controller().refresh(run_id)
        except WRError as exc:
            ctx.ui.show_error(f"{exc.error_type}: {escape(str(exc))}")
            raise typer.Exit(EXIT_FAILURE)
        if run is None:
            ctx.ui.show_warning(f"Run {run_id} not found.")
            raise typer.Exit(EXIT_FAILURE)
        ctx.ui.show_table(f"Run {run.id}", RUN_COLUMNS, build_run_rows(run))
