"""Command line utilities for ev-regen."""

from ev_regen.cli.app import main, run_cli

__all__ = ["main", "run_cli"]
