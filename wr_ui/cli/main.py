"""
Command-line interface for workspace-run-lib.

Creates runs in a remote workspace and follows them through plan, confirm
and apply, reporting queue progress along the way.
"""

from __future__ import annotations

from typing import Optional

import typer

from wr_common.logging import configure_logging
from wr_ui.cli.commands.run import register_run_commands
from wr_ui.wiring.dependencies import UIContext

# Initialize global context (lazy)
ctx_store = UIContext()

app = typer.Typer(help="Drive remote workspace runs from plan to apply.", no_args_is_help=True)


@app.callback()
def entry(
    debug: bool = typer.Option(False, "--debug", help="Enable verbose debug logging."),
    log_json: bool = typer.Option(False, "--log-json", help="Emit logs as JSON lines."),
    hostname: Optional[str] = typer.Option(
        None,
        "--hostname",
        help="Control plane hostname; defaults to TFE_HOSTNAME or app.terraform.io.",
    ),
) -> None:
    """Global options shared by every command."""
    configure_logging(debug=debug, json=log_json or None, force=True)
    if hostname:
        ctx_store.hostname = hostname


register_run_commands(app, ctx_store)


def main() -> None:
    """Console script entrypoint (Typer app)."""
    app()


if __name__ == "__main__":
    main()
