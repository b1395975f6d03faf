"""Shared helpers for workspace-run-lib."""

from wr_common.api import WRError, bind_run_context, configure_logging

__all__ = ["WRError", "bind_run_context", "configure_logging"]
