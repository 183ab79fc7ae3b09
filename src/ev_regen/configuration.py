"""Helpers to load project-level configuration and merge partial overrides.

Project defaults live in the ``[tool.ev_regen]`` table of ``pyproject.toml``.
Each sub-table feeds one component and is merged field by field onto the
component's defaults with :func:`merge_dataclass`.
"""

from __future__ import annotations

import math
from collections.abc import Mapping as ABCMapping
from dataclasses import fields, is_dataclass, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, TypeVar

try:  # Python 3.11+
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover - Python < 3.11 fallback
    import tomli as tomllib  # type: ignore

from .errors import ConfigurationError, ConfigurationKeyError

__all__ = [
    "PROJECT_SECTION",
    "PROJECT_TABLES",
    "load_project_config",
    "merge_dataclass",
    "normalise_weights",
    "resolve_pyproject_path",
    "section",
]


PROJECT_SECTION = "ev_regen"
PROJECT_FILENAME = "pyproject.toml"

# Sub-tables of ``[tool.ev_regen]`` and the component each one configures.
PROJECT_TABLES: Mapping[str, str] = MappingProxyType(
    {
        "vehicle": "vehicle profile and parameters",
        "system": "integrated power arbitration",
        "damper": "damper configuration",
        "suspension": "adaptive suspension controller",
        "logging": "logging setup",
    }
)

T = TypeVar("T")


def _plain(payload: ABCMapping[str, Any]) -> dict[str, Any]:
    return {
        str(key): _plain(value) if isinstance(value, ABCMapping) else value
        for key, value in payload.items()
    }


def resolve_pyproject_path(candidate: Path) -> Path | None:
    """Return the ``pyproject.toml`` addressed by ``candidate``.

    ``candidate`` may name the file or the directory holding it. Paths to
    any other file yield ``None``.
    """

    candidate = candidate.expanduser()
    if candidate.name == PROJECT_FILENAME:
        return candidate
    if candidate.suffix:
        return None
    return candidate / PROJECT_FILENAME


def load_project_config(path: Path) -> tuple[dict[str, Any], Path] | None:
    """Load the ``[tool.ev_regen]`` section from ``pyproject.toml``.

    Returns ``None`` when the file or the section is missing. A file that is
    not valid TOML, or a section holding a table no component reads, raises
    :class:`~ev_regen.errors.ConfigurationError`.
    """

    pyproject_path = resolve_pyproject_path(path)
    if pyproject_path is None:
        return None
    pyproject_path = pyproject_path.resolve(strict=False)
    if not pyproject_path.is_file():
        return None

    with pyproject_path.open("rb") as handle:
        try:
            document = tomllib.load(handle)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigurationError(f"Malformed {pyproject_path}: {exc}") from exc

    tool = document.get("tool")
    payload = tool.get(PROJECT_SECTION) if isinstance(tool, ABCMapping) else None
    if not isinstance(payload, ABCMapping):
        return None
    for key in payload:
        if key not in PROJECT_TABLES:
            raise ConfigurationKeyError(
                key, target=f"[tool.{PROJECT_SECTION}] in {pyproject_path}", known=PROJECT_TABLES
            )
    return _plain(payload), pyproject_path


def _coerce(name: str, current: Any, value: Any, target: str) -> Any:
    if isinstance(current, bool):
        if not isinstance(value, bool):
            raise ConfigurationError(
                f"{target}.{name} expects a boolean (got {value!r})"
            )
        return value
    if isinstance(current, (int, float)):
        if isinstance(value, bool):
            raise ConfigurationError(f"{target}.{name} expects a number (got {value!r})")
        try:
            numeric = float(value)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(
                f"{target}.{name} expects a number (got {value!r})"
            ) from exc
        if not math.isfinite(numeric):
            raise ConfigurationError(f"{target}.{name} must be finite (got {value!r})")
        if isinstance(current, int):
            if not numeric.is_integer():
                raise ConfigurationError(
                    f"{target}.{name} expects an integer (got {value!r})"
                )
            return int(numeric)
        return numeric
    if is_dataclass(current) and not isinstance(current, type):
        if not isinstance(value, ABCMapping):
            raise ConfigurationError(
                f"{target}.{name} expects a mapping of overrides (got {value!r})"
            )
        return merge_dataclass(current, value)
    return value


def merge_dataclass(base: T, overrides: Mapping[str, Any] | None) -> T:
    """Return ``base`` updated with the fields named in ``overrides``.

    Unspecified fields keep their current values. Unknown keys raise
    :class:`ConfigurationKeyError`; values are coerced to the type of the field
    they replace, and nested dataclasses are merged recursively.
    """

    if not overrides:
        return base
    if not is_dataclass(base) or isinstance(base, type):
        raise TypeError("merge_dataclass expects a dataclass instance")
    target = type(base).__name__
    known = {field.name: field for field in fields(base) if field.init}
    updates: dict[str, Any] = {}
    for raw_key, value in overrides.items():
        key = str(raw_key)
        if key not in known:
            raise ConfigurationKeyError(key, target=target, known=known)
        updates[key] = _coerce(key, getattr(base, key), value, target)
    return replace(base, **updates)


def normalise_weights(weights: Mapping[str, float]) -> dict[str, float]:
    """Scale non-negative ``weights`` so they sum to one."""

    values: dict[str, float] = {}
    for key, value in weights.items():
        try:
            numeric = float(value)
        except (TypeError, ValueError):
            numeric = math.nan
        if not math.isfinite(numeric) or numeric < 0.0:
            raise ConfigurationError(
                f"Weight '{key}' must be a finite non-negative number (got {value!r})"
            )
        values[str(key)] = numeric
    total = math.fsum(values.values())
    if total <= 0.0:
        raise ConfigurationError("At least one weight must be positive")
    return {key: value / total for key, value in values.items()}


def section(config: Mapping[str, Any], *path: str) -> dict[str, Any]:
    """Return the nested mapping at ``path`` or an empty dictionary."""

    node: Any = config
    for key in path:
        if not isinstance(node, ABCMapping):
            return {}
        node = node.get(key)
    if isinstance(node, ABCMapping):
        return dict(node)
    return {}

