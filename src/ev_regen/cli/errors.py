"""Error helpers for the ev-regen command line."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from ..errors import (
    ConfigurationError,
    InputValidationError,
    MotorNotFoundError,
    ProfileNotFoundError,
)

__all__ = [
    "CliError",
    "ErrorPayload",
    "build_error_payload",
    "log_cli_error",
]


_CATEGORY_STATUS_CODES: Mapping[str, int] = {
    "runtime": 1,
    "usage": 2,
    "io": 3,
    "not_found": 4,
}

_DEFAULT_CATEGORY = "runtime"
_DEFAULT_LOGGER_NAME = "ev_regen.cli"


@dataclass(frozen=True, slots=True)
class ErrorPayload:
    """Structured description of a CLI failure."""

    status_code: int
    category: str
    message: str
    context: Mapping[str, Any]

    def as_dict(self) -> Mapping[str, Any]:
        return {
            "status_code": self.status_code,
            "category": self.category,
            "message": self.message,
            "context": dict(self.context),
        }


def _normalise_context(context: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    if not context:
        return {}
    return {
        str(key): value if isinstance(value, (str, int, float, bool)) or value is None else str(value)
        for key, value in context.items()
    }


def build_error_payload(
    message: str,
    *,
    category: str = _DEFAULT_CATEGORY,
    context: Optional[Mapping[str, Any]] = None,
) -> ErrorPayload:
    resolved = category if category in _CATEGORY_STATUS_CODES else _DEFAULT_CATEGORY
    return ErrorPayload(
        status_code=_CATEGORY_STATUS_CODES[resolved],
        category=resolved,
        message=message,
        context=_normalise_context(context),
    )


def log_cli_error(
    payload: ErrorPayload,
    *,
    logger: Optional[logging.Logger] = None,
    exc_info: Optional[BaseException] = None,
) -> None:
    """Emit ``payload`` through ``logger.error`` with structured context."""

    target = logger or logging.getLogger(_DEFAULT_LOGGER_NAME)
    target.error(
        payload.message,
        extra={
            "event": "cli.error",
            "category": payload.category,
            "status_code": payload.status_code,
            "context": dict(payload.context),
        },
        exc_info=exc_info,
    )


class CliError(RuntimeError):
    """Error raised by command handlers; carries the process exit status."""

    def __init__(
        self,
        message: str,
        *,
        category: str = _DEFAULT_CATEGORY,
        context: Optional[Mapping[str, Any]] = None,
        logged: bool = False,
    ) -> None:
        super().__init__(message)
        self.payload = build_error_payload(message, category=category, context=context)
        self.category = self.payload.category
        self.status_code = self.payload.status_code
        self.context = dict(self.payload.context)
        self.logged = logged

    @classmethod
    def from_exception(cls, exc: Exception) -> "CliError":
        """Translate a library error into the matching CLI category."""

        if isinstance(exc, InputValidationError):
            return cls(str(exc), category="usage", context=exc.as_context())
        if isinstance(exc, ProfileNotFoundError):
            return cls(str(exc), category="not_found", context={"profile": exc.name})
        if isinstance(exc, MotorNotFoundError):
            return cls(str(exc), category="not_found", context={"motor": exc.motor_id})
        if isinstance(exc, ConfigurationError):
            return cls(str(exc), category="usage")
        return cls(str(exc) or type(exc).__name__, category="runtime")
