"""Argument parsing for the ev-regen CLI."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any, Mapping, Optional

from ..configuration import section
from .commands import handle_braking, handle_damper, handle_integrated, handle_profiles


def _add_common_arguments(parser: argparse.ArgumentParser, *, default_profile: Any) -> None:
    parser.add_argument(
        "--input",
        dest="input",
        type=Path,
        default=None,
        help="YAML or JSON file describing the cycle inputs.",
    )
    parser.add_argument(
        "--profile",
        dest="profile",
        default=default_profile,
        help="Packaged vehicle profile (see the 'profiles' command).",
    )


def build_parser(config: Optional[Mapping[str, Any]] = None) -> argparse.ArgumentParser:
    config = dict(config or {})
    logging_cfg = section(config, "logging")
    default_profile = section(config, "vehicle").get("profile")

    parser = argparse.ArgumentParser(
        prog="ev-regen",
        description="Regenerative braking and suspension energy-recovery control cycles.",
    )
    parser.add_argument(
        "--config",
        dest="config_path",
        type=Path,
        default=None,
        help="Path to the pyproject.toml holding a [tool.ev_regen] table.",
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        default=logging_cfg.get("level", "info"),
        help="Logging level (e.g. debug, info, warning).",
    )
    parser.add_argument(
        "--log-output",
        dest="log_output",
        default=logging_cfg.get("output", "stderr"),
        help="Logging destination (stdout, stderr or a file path).",
    )
    parser.add_argument(
        "--log-format",
        dest="log_format",
        choices=("json", "text"),
        default=logging_cfg.get("format", "json"),
        help="Logging formatter (json or text).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    braking_parser = subparsers.add_parser(
        "braking",
        help="Evaluate the fuzzy braking controller and the motor torque split.",
    )
    _add_common_arguments(braking_parser, default_profile=default_profile)
    braking_parser.add_argument("--speed", dest="driving_speed", type=float, default=None,
                                help="Driving speed in km/h.")
    braking_parser.add_argument("--intensity", dest="braking_intensity", type=float,
                                default=None, help="Braking intensity in [0, 1].")
    braking_parser.add_argument("--soc", dest="battery_soc", type=float, default=None,
                                help="Battery state of charge in [0, 1].")
    braking_parser.add_argument("--motor-temperature", dest="motor_temperature", type=float,
                                default=None, help="Motor temperature in °C.")
    braking_parser.set_defaults(handler=handle_braking)

    damper_parser = subparsers.add_parser(
        "damper",
        help="Evaluate the hydraulic electromagnetic damper model for one corner.",
    )
    _add_common_arguments(damper_parser, default_profile=default_profile)
    damper_parser.add_argument("--velocity", dest="compression_velocity", type=float,
                               default=None, help="Compression velocity in m/s.")
    damper_parser.add_argument("--displacement", dest="displacement", type=float,
                               default=None, help="Damper displacement in m.")
    damper_parser.add_argument("--speed", dest="vehicle_speed", type=float, default=None,
                               help="Vehicle speed in km/h.")
    damper_parser.add_argument("--roughness", dest="road_roughness", type=float,
                               default=None, help="Road roughness in [0, 1].")
    damper_parser.add_argument("--temperature", dest="damper_temperature", type=float,
                               default=None, help="Damper temperature in °C.")
    damper_parser.add_argument("--soc", dest="battery_soc", type=float, default=None,
                               help="Battery state of charge in [0, 1].")
    damper_parser.add_argument("--load", dest="load_factor", type=float, default=None,
                               help="Load factor in [0, 1].")
    damper_parser.set_defaults(handler=handle_damper)

    integrated_parser = subparsers.add_parser(
        "integrated",
        help="Run integrated braking and suspension cycles from an input file.",
    )
    _add_common_arguments(integrated_parser, default_profile=default_profile)
    integrated_parser.add_argument(
        "--cycles",
        dest="cycles",
        type=int,
        default=1,
        help="Number of identical cycles to run (default: 1).",
    )
    integrated_parser.add_argument(
        "--max-combined-power",
        dest="max_combined_power",
        type=float,
        default=None,
        help="Override the combined power cap in watts.",
    )
    integrated_parser.set_defaults(handler=handle_integrated)

    profiles_parser = subparsers.add_parser(
        "profiles",
        help="List the packaged vehicle profiles.",
    )
    profiles_parser.set_defaults(handler=handle_profiles)

    return parser


__all__ = ["build_parser"]
