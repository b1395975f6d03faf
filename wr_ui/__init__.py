"""Command-line front end for workspace-run-lib."""
