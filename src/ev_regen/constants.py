"""Shared physical constants and vehicle corner identifiers."""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Tuple

GRAVITY = 9.81
KMH_TO_MS = 1.0 / 3.6

CORNERS: Tuple[str, ...] = ("front_left", "front_right", "rear_left", "rear_right")
FRONT_CORNERS: Tuple[str, ...] = CORNERS[:2]
REAR_CORNERS: Tuple[str, ...] = CORNERS[2:]

# Motor identifiers per supported motor count.
MOTOR_LAYOUTS: Mapping[int, Tuple[str, ...]] = MappingProxyType(
    {
        2: FRONT_CORNERS,
        4: CORNERS,
    }
)


def motor_layout(motor_count: int) -> Tuple[str, ...]:
    try:
        return MOTOR_LAYOUTS[int(motor_count)]
    except KeyError as exc:
        supported = ", ".join(str(count) for count in sorted(MOTOR_LAYOUTS))
        raise ValueError(
            f"Unsupported motor count {motor_count}; expected one of {supported}"
        ) from exc


__all__ = [
    "CORNERS",
    "FRONT_CORNERS",
    "GRAVITY",
    "KMH_TO_MS",
    "MOTOR_LAYOUTS",
    "REAR_CORNERS",
    "motor_layout",
]
