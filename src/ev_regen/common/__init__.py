"""Building blocks shared by the braking and suspension controllers."""

from ev_regen.common.derating import DeratingCurve
from ev_regen.common.fuzzy import FuzzySet, FuzzyVariable, trapezoid, weighted_defuzzify
from ev_regen.common.ring_buffer import RingBuffer

__all__ = [
    "DeratingCurve",
    "FuzzySet",
    "FuzzyVariable",
    "RingBuffer",
    "trapezoid",
    "weighted_defuzzify",
]
