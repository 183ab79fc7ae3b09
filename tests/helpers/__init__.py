"""Convenience re-exports for test helpers."""

from __future__ import annotations

from tests.helpers.builders import (
    build_braking_inputs,
    build_damper_inputs,
    build_integrated_inputs,
    build_suspension_inputs,
    build_system_inputs,
)
from tests.helpers.cli import run_cli_in_tmp, write_input_file

__all__ = [
    "build_braking_inputs",
    "build_damper_inputs",
    "build_integrated_inputs",
    "build_suspension_inputs",
    "build_system_inputs",
    "run_cli_in_tmp",
    "write_input_file",
]
