"""Trapezoidal fuzzy sets and weighted-average defuzzification.

Sets are described by four breakpoints ``(a, b, c, d)``: membership rises
linearly from ``a`` to ``b``, stays at one on ``[b, c]`` and falls back to zero
at ``d``. A set whose first two breakpoints coincide is a left shoulder and
saturates at one below ``b``; the mirror case is a right shoulder. This keeps
the extremes of each input range fully covered, e.g. zero speed is entirely
"very low" rather than belonging to no set at all.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping, Sequence, Tuple

__all__ = [
    "FuzzySet",
    "FuzzyVariable",
    "trapezoid",
    "weighted_defuzzify",
]


def trapezoid(x: float, a: float, b: float, c: float, d: float) -> float:
    """Return the membership of ``x`` in the trapezoid ``(a, b, c, d)``."""

    if b <= x <= c:
        return 1.0
    if x < b:
        if a == b:
            return 1.0
        if x <= a:
            return 0.0
        return (x - a) / (b - a)
    if c == d:
        return 1.0
    if x >= d:
        return 0.0
    return (d - x) / (d - c)


@dataclass(frozen=True)
class FuzzySet:
    """Named trapezoidal set."""

    name: str
    points: Tuple[float, float, float, float]

    def __post_init__(self) -> None:
        if len(self.points) != 4:
            raise ValueError(f"Fuzzy set '{self.name}' requires four breakpoints")
        a, b, c, d = self.points
        if not a <= b <= c <= d:
            raise ValueError(
                f"Fuzzy set '{self.name}' breakpoints must be non-decreasing: {self.points}"
            )

    def membership(self, x: float) -> float:
        return trapezoid(x, *self.points)

    @property
    def centroid(self) -> float:
        """Centre of area of the trapezoid."""

        a, b, c, d = self.points
        denominator = 3.0 * (d + c - a - b)
        if math.isclose(denominator, 0.0):
            return (b + c) / 2.0
        numerator = d * d + c * c + c * d - a * a - b * b - a * b
        return numerator / denominator


class FuzzyVariable:
    """Linguistic variable grouping the sets defined over one input."""

    def __init__(self, name: str, sets: Iterable[FuzzySet]) -> None:
        self.name = name
        ordered = {item.name: item for item in sets}
        if not ordered:
            raise ValueError(f"Fuzzy variable '{name}' requires at least one set")
        self._sets: Mapping[str, FuzzySet] = MappingProxyType(ordered)

    @classmethod
    def from_points(
        cls, name: str, points: Mapping[str, Sequence[float]]
    ) -> "FuzzyVariable":
        return cls(
            name,
            (FuzzySet(label, tuple(float(value) for value in bounds)) for label, bounds in points.items()),
        )

    @property
    def sets(self) -> Mapping[str, FuzzySet]:
        return self._sets

    def __getitem__(self, label: str) -> FuzzySet:
        try:
            return self._sets[label]
        except KeyError as exc:
            raise KeyError(f"Unknown fuzzy set '{label}' for variable '{self.name}'") from exc

    def fuzzify(self, x: float) -> Mapping[str, float]:
        """Return the membership of ``x`` in every set of the variable."""

        return {label: item.membership(x) for label, item in self._sets.items()}

    def centroid(self, label: str) -> float:
        return self[label].centroid


def weighted_defuzzify(
    activations: Iterable[tuple[float, float]], default: float
) -> float:
    """Collapse ``(strength, centroid)`` pairs into a crisp value.

    ``default`` is returned when no rule fires.
    """

    numerator = 0.0
    denominator = 0.0
    for strength, centroid in activations:
        if strength <= 0.0:
            continue
        numerator += strength * centroid
        denominator += strength
    if denominator <= 0.0:
        return default
    return numerator / denominator
