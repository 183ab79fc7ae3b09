"""Range checks applied to per-cycle input snapshots."""

from __future__ import annotations

import math
from typing import Any

from .errors import InputValidationError

__all__ = ["require_finite", "require_non_negative", "require_range"]


def _format_bound(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


def require_finite(field: str, value: Any, *, label: str | None = None) -> float:
    """Return ``value`` as a float, rejecting non-numeric and non-finite input."""

    name = label or field
    try:
        numeric = float(value)
    except (TypeError, ValueError) as exc:
        raise InputValidationError(
            f"{name} must be a number (got {value!r})", field=field, value=value
        ) from exc
    if not math.isfinite(numeric):
        raise InputValidationError(
            f"{name} must be finite (got {value!r})", field=field, value=value
        )
    return numeric


def require_range(
    field: str,
    value: Any,
    minimum: float,
    maximum: float,
    *,
    label: str | None = None,
    unit: str = "",
) -> float:
    """Validate that ``minimum <= value <= maximum`` and return the float value.

    Parameters
    ----------
    field:
        Attribute name of the offending field, recorded on the error.
    value:
        Raw value read from the input snapshot.
    minimum, maximum:
        Inclusive bounds.
    label:
        Human readable name used in the message. Defaults to ``field``.
    unit:
        Optional unit suffix appended to the bound, e.g. ``" km/h"``.
    """

    name = label or field
    numeric = require_finite(field, value, label=name)
    if numeric < minimum or numeric > maximum:
        raise InputValidationError(
            f"{name} must be between {_format_bound(minimum)} and "
            f"{_format_bound(maximum)}{unit} (got {numeric:g})",
            field=field,
            value=numeric,
            minimum=minimum,
            maximum=maximum,
        )
    return numeric


def require_non_negative(
    field: str, value: Any, *, label: str | None = None, unit: str = ""
) -> float:
    name = label or field
    numeric = require_finite(field, value, label=name)
    if numeric < 0.0:
        raise InputValidationError(
            f"{name} must be non-negative (got {numeric:g}{unit})",
            field=field,
            value=numeric,
            minimum=0.0,
        )
    return numeric
