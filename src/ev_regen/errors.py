"""Exception hierarchy shared by the energy-recovery controllers."""

from __future__ import annotations

from typing import Any, Iterable, Optional

__all__ = [
    "ConfigurationError",
    "ConfigurationKeyError",
    "InputValidationError",
    "MotorNotFoundError",
    "ProfileNotFoundError",
]


class InputValidationError(ValueError):
    """Raised when a per-cycle input field falls outside its valid range.

    The whole control cycle is rejected; no partial output is produced and no
    controller state is mutated.
    """

    def __init__(
        self,
        message: str,
        *,
        field: str,
        value: Any = None,
        minimum: Optional[float] = None,
        maximum: Optional[float] = None,
    ) -> None:
        super().__init__(message)
        self.field = field
        self.value = value
        self.minimum = minimum
        self.maximum = maximum

    def as_context(self) -> dict[str, Any]:
        return {
            "field": self.field,
            "value": self.value,
            "minimum": self.minimum,
            "maximum": self.maximum,
        }


class ConfigurationError(ValueError):
    """Raised when a configuration override cannot be applied."""


def _known(names: Iterable[str]) -> str:
    return ", ".join(sorted(str(name) for name in names))


class ConfigurationKeyError(ConfigurationError, KeyError):
    """Raised when a partial update names a field that does not exist."""

    def __init__(self, key: str, *, target: str, known: Iterable[str]) -> None:
        message = (
            f"Configuration field '{key}' not found in {target}; "
            f"expected one of: {_known(known)}"
        )
        super().__init__(message)
        self.key = key
        self.target = target

    def __str__(self) -> str:  # KeyError quotes its argument otherwise
        return str(self.args[0])


class ProfileNotFoundError(ConfigurationError, LookupError):
    """Raised when a named vehicle profile is not available."""

    def __init__(self, name: str, *, known: Iterable[str]) -> None:
        super().__init__(
            f"Vehicle profile '{name}' not found; available profiles: {_known(known)}"
        )
        self.name = name


class MotorNotFoundError(LookupError):
    """Raised when a motor identifier is not part of the configured layout."""

    def __init__(self, motor_id: str, *, known: Iterable[str]) -> None:
        super().__init__(
            f"Motor '{motor_id}' not found; configured motors: {_known(known)}"
        )
        self.motor_id = motor_id

    def __str__(self) -> str:
        return str(self.args[0])
