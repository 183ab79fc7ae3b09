"""Root logger configuration driven by the ``[logging]`` configuration table."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

__all__ = ["JsonFormatter", "setup_logging"]


DEFAULT_LEVEL = "info"
DEFAULT_OUTPUT = "stderr"
DEFAULT_FORMAT = "json"
TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RESERVED_ATTRIBUTES = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime"}

_HANDLER_MARKER = "_ev_regen_handler"


def _json_default(value: Any) -> Any:
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    if isinstance(value, Path):
        return str(value)
    return repr(value)


class JsonFormatter(logging.Formatter):
    """Render each record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRIBUTES or key.startswith("_"):
                continue
            payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=_json_default, sort_keys=False)


def _resolve_level(level: Any) -> int:
    if isinstance(level, int):
        return level
    name = str(level).strip().upper()
    resolved = logging.getLevelName(name)
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown logging level '{level}'")
    return resolved


def _build_handler(output: str) -> logging.Handler:
    target = output.strip()
    if target.lower() == "stdout":
        return logging.StreamHandler(sys.stdout)
    if target.lower() == "stderr":
        return logging.StreamHandler(sys.stderr)
    path = Path(target).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(path, encoding="utf-8")


def setup_logging(config: Mapping[str, Any] | None = None) -> logging.Handler:
    """Install the ev-regen handler on the root logger.

    ``config`` is the full configuration mapping; only its ``logging`` table
    is read, with keys ``level``, ``output`` (``stdout``, ``stderr`` or a file
    path) and ``format`` (``json`` or ``text``). Calling the function again
    replaces the handler installed by the previous call and leaves any other
    handler on the root logger alone.
    """

    section = dict((config or {}).get("logging", {}) or {})
    level = _resolve_level(section.get("level", DEFAULT_LEVEL))
    output = str(section.get("output", DEFAULT_OUTPUT))
    format_name = str(section.get("format", DEFAULT_FORMAT)).strip().lower()
    if format_name not in {"json", "text"}:
        raise ValueError(f"Unknown logging format '{format_name}'; expected json or text")

    handler = _build_handler(output)
    if format_name == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    setattr(handler, _HANDLER_MARKER, True)

    root = logging.getLogger()
    for existing in list(root.handlers):
        if getattr(existing, _HANDLER_MARKER, False):
            root.removeHandler(existing)
            existing.close()
    root.addHandler(handler)
    root.setLevel(level)
    return handler
