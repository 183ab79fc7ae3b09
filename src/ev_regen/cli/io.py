"""Configuration, input-file and output helpers for the ev-regen CLI."""

from __future__ import annotations

import json
import math
import os
from collections.abc import Mapping as MappingABC
from dataclasses import fields, is_dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import numpy as np
import yaml

from ..configuration import load_project_config, resolve_pyproject_path
from ..errors import ConfigurationError
from .errors import CliError

__all__ = [
    "CONFIG_ENV_VAR",
    "load_cli_config",
    "load_input_file",
    "render_payload",
    "to_payload",
]


CONFIG_ENV_VAR = "EV_REGEN_CONFIG"


def _iter_unique_paths(candidates: List[Path]) -> List[Path]:
    seen: Dict[Path, None] = {}
    ordered: List[Path] = []
    for candidate in candidates:
        resolved = candidate.expanduser().resolve(strict=False)
        if resolved in seen:
            continue
        seen[resolved] = None
        ordered.append(resolved)
    return ordered


def load_cli_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load CLI defaults from the ``[tool.ev_regen]`` table of ``pyproject.toml``.

    ``path`` takes precedence over :data:`CONFIG_ENV_VAR`, which takes
    precedence over the current working directory. The resolved file is
    recorded under ``_config_path``.
    """

    bases: List[Path] = []
    if path is not None:
        bases.append(path)
    env_config = os.environ.get(CONFIG_ENV_VAR)
    if env_config:
        bases.append(Path(env_config))
    bases.append(Path.cwd())

    candidates = [
        resolved for resolved in map(resolve_pyproject_path, bases) if resolved is not None
    ]
    for candidate in _iter_unique_paths(candidates):
        try:
            loaded = load_project_config(candidate)
        except ConfigurationError as exc:
            raise CliError.from_exception(exc) from exc
        if not loaded:
            continue
        payload, resolved = loaded
        data = {str(key): value for key, value in payload.items()}
        data["_config_path"] = str(resolved)
        return data

    return {"_config_path": None}


def load_input_file(path: Path) -> Dict[str, Any]:
    """Read a YAML or JSON mapping describing one control cycle."""

    source = path.expanduser()
    if not source.exists():
        raise CliError(
            f"Input file {source} does not exist",
            category="not_found",
            context={"path": str(source)},
        )
    try:
        text = source.read_text(encoding="utf-8")
    except OSError as exc:
        raise CliError(
            f"Unable to read input file {source}: {exc}",
            category="io",
            context={"path": str(source)},
        ) from exc
    try:
        if source.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise CliError(
            f"Input file {source} is not valid {source.suffix.lstrip('.') or 'YAML'}",
            category="io",
            context={"path": str(source)},
        ) from exc
    if not isinstance(data, MappingABC):
        raise CliError(
            f"Input file {source} must contain a mapping",
            category="usage",
            context={"path": str(source)},
        )
    return dict(data)


def to_payload(value: Any) -> Any:
    """Convert dataclasses, mappings and numpy scalars into JSON-ready values."""

    if is_dataclass(value) and not isinstance(value, type):
        return {item.name: to_payload(getattr(value, item.name)) for item in fields(value)}
    if isinstance(value, MappingABC):
        return {str(key): to_payload(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_payload(item) for item in value]
    if isinstance(value, np.ndarray):
        return [to_payload(item) for item in value.tolist()]
    if isinstance(value, np.generic):
        return to_payload(value.item())
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def render_payload(payload: Mapping[str, Any]) -> str:
    return json.dumps(to_payload(payload), indent=2, sort_keys=True)
