"""Logging utilities for ev-regen."""

from ev_regen.logging.config import JsonFormatter, setup_logging

__all__ = ["JsonFormatter", "setup_logging"]
