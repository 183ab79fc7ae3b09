"""Piecewise-linear derating curves shared by motors, dampers and batteries."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence, Tuple

import numpy as np

__all__ = ["DeratingCurve"]


@dataclass(frozen=True)
class DeratingCurve:
    """Scale factor interpolated between ``(input, factor)`` breakpoints.

    Inputs outside the breakpoint range hold the first or last factor. The
    curve is evaluated with :func:`numpy.interp`, so breakpoints must be sorted
    by strictly increasing input.

    Parameters
    ----------
    breakpoints:
        Sorted ``(input, factor)`` pairs. Factors are expected in ``[0, 1]``
        but the curve does not enforce it, allowing boosts where needed.
    name:
        Label used in diagnostics and error messages.
    """

    breakpoints: Tuple[Tuple[float, float], ...]
    name: str = "derating"

    def __post_init__(self) -> None:
        if len(self.breakpoints) < 2:
            raise ValueError(f"Derating curve '{self.name}' requires at least two breakpoints")
        inputs = [float(point[0]) for point in self.breakpoints]
        if any(later <= earlier for earlier, later in zip(inputs, inputs[1:])):
            raise ValueError(
                f"Derating curve '{self.name}' breakpoints must be strictly increasing"
            )
        object.__setattr__(self, "_xs", np.asarray(inputs, dtype=float))
        object.__setattr__(
            self, "_ys", np.asarray([float(point[1]) for point in self.breakpoints], dtype=float)
        )

    @classmethod
    def from_pairs(
        cls, pairs: Iterable[Sequence[float]], *, name: str = "derating"
    ) -> "DeratingCurve":
        return cls(tuple((float(x), float(y)) for x, y in pairs), name=name)

    def factor(self, value: float) -> float:
        """Return the derating factor for ``value``."""

        return float(np.interp(float(value), self._xs, self._ys))  # type: ignore[attr-defined]

    def apply(self, output: float, value: float) -> float:
        """Scale ``output`` by the factor at ``value``."""

        return output * self.factor(value)

    def is_derating(self, value: float) -> bool:
        """Return ``True`` when ``value`` falls in a region with factor below one."""

        return self.factor(value) < 1.0
