"""Command line application entry point for ev-regen."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import NoReturn, Optional, Sequence

from ..logging.config import setup_logging
from .commands import run_handler
from .errors import CliError, log_cli_error
from .io import load_cli_config
from .parser import build_parser


def _exit_with(exc: CliError) -> NoReturn:
    if not exc.logged:
        log_cli_error(exc.payload, exc_info=exc)
        exc.logged = True
    message = exc.payload.message
    if message:
        sys.stdout.write(message)
        if not message.endswith("\n"):
            sys.stdout.write("\n")
    raise SystemExit(exc.status_code) from exc


def run_cli(args: Optional[Sequence[str]] = None) -> str:
    """Execute the ev-regen command line interface and return its output."""

    config_parser = argparse.ArgumentParser(add_help=False)
    config_parser.add_argument(
        "--config",
        dest="config_path",
        type=Path,
        default=None,
        help="Path to the pyproject.toml holding a [tool.ev_regen] table.",
    )
    config_parser.add_argument(
        "--log-level",
        dest="log_level",
        default=None,
        help="Logging level (default: info).",
    )
    config_parser.add_argument(
        "--log-output",
        dest="log_output",
        default=None,
        help="Logging destination (stdout, stderr or a file path).",
    )
    config_parser.add_argument(
        "--log-format",
        dest="log_format",
        choices=("json", "text"),
        default=None,
        help="Logging formatter (json or text).",
    )
    preliminary, remaining = config_parser.parse_known_args(args)

    try:
        config = load_cli_config(preliminary.config_path)
    except CliError as exc:
        _exit_with(exc)
    logging_config = dict(config.get("logging", {}))
    if preliminary.log_level is not None:
        logging_config["level"] = preliminary.log_level
    if preliminary.log_output is not None:
        logging_config["output"] = preliminary.log_output
    if preliminary.log_format is not None:
        logging_config["format"] = preliminary.log_format
    logging_config.setdefault("level", "info")
    logging_config.setdefault("output", "stderr")
    logging_config.setdefault("format", "json")
    config["logging"] = logging_config
    setup_logging(config)

    parser = build_parser(config)
    parser.set_defaults(config_path=preliminary.config_path)
    namespace = parser.parse_args(list(remaining), namespace=preliminary)
    namespace.config = config

    handler = getattr(namespace, "handler", None)
    if handler is None:
        raise CliError(
            f"Unknown command '{getattr(namespace, 'command', None)}'.",
            category="usage",
            context={"command": getattr(namespace, "command", None)},
        )

    try:
        result = run_handler(handler, namespace, config)
    except CliError as exc:
        _exit_with(exc)
    if result:
        sys.stdout.write(result)
        if not result.endswith("\n"):
            sys.stdout.write("\n")
    return result


def main() -> None:  # pragma: no cover - thin wrapper
    run_cli()


if __name__ == "__main__":  # pragma: no cover - CLI invocation guard
    main()
