"""Fuzzy rule base of the regenerative suspension controller.

Rules are enumerated by :class:`RuleId` so that learned weights live in a
fixed-size :mod:`numpy` array indexed by rule, rather than in a mapping that
could grow new keys at runtime.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from types import MappingProxyType
from typing import Mapping, Tuple

import numpy as np

from ..common.fuzzy import FuzzyVariable, weighted_defuzzify

__all__ = [
    "DEFAULT_OUTPUTS",
    "INPUT_VARIABLES",
    "OUTPUT_VARIABLES",
    "RULES",
    "RULE_NAMES",
    "RuleEvaluation",
    "RuleId",
    "SuspensionRule",
    "evaluate_rules",
    "initial_weights",
]


INPUT_VARIABLES: Mapping[str, FuzzyVariable] = MappingProxyType(
    {
        "vehicle_speed": FuzzyVariable.from_points(
            "vehicle_speed",
            {
                "low": (0.0, 0.0, 30.0, 50.0),
                "medium": (30.0, 50.0, 80.0, 100.0),
                "high": (80.0, 100.0, 300.0, 300.0),
            },
        ),
        "road_roughness": FuzzyVariable.from_points(
            "road_roughness",
            {
                "smooth": (0.0, 0.0, 0.2, 0.3),
                "moderate": (0.2, 0.3, 0.6, 0.7),
                "rough": (0.6, 0.7, 1.0, 1.0),
            },
        ),
        # Magnitude of the suspension velocity in m/s.
        "suspension_velocity": FuzzyVariable.from_points(
            "suspension_velocity",
            {
                "slow": (0.0, 0.0, 0.1, 0.2),
                "medium": (0.1, 0.2, 0.3, 0.4),
                "fast": (0.3, 0.4, 5.0, 5.0),
            },
        ),
        "acceleration_pattern": FuzzyVariable.from_points(
            "acceleration_pattern",
            {
                "gentle": (0.0, 0.0, 0.3, 0.4),
                "moderate": (0.3, 0.4, 0.6, 0.7),
                "aggressive": (0.6, 0.7, 1.0, 1.0),
            },
        ),
        "energy_storage_level": FuzzyVariable.from_points(
            "energy_storage_level",
            {
                "low": (0.0, 0.0, 0.2, 0.3),
                "medium": (0.2, 0.3, 0.7, 0.8),
                "high": (0.7, 0.8, 1.0, 1.0),
            },
        ),
    }
)

OUTPUT_VARIABLES: Mapping[str, FuzzyVariable] = MappingProxyType(
    {
        "damping": FuzzyVariable.from_points(
            "damping_coefficient",
            {
                "soft": (500.0, 500.0, 1500.0, 2000.0),
                "medium": (1500.0, 2000.0, 3000.0, 3500.0),
                "firm": (3000.0, 3500.0, 5000.0, 5000.0),
            },
        ),
        "energy": FuzzyVariable.from_points(
            "energy_recovery_rate",
            {
                "low": (0.0, 0.0, 200.0, 400.0),
                "medium": (200.0, 400.0, 800.0, 1000.0),
                "high": (800.0, 1000.0, 1500.0, 1500.0),
            },
        ),
        "valve": FuzzyVariable.from_points(
            "valve_position",
            {
                "closed": (0.0, 0.0, 0.2, 0.3),
                "partial": (0.2, 0.3, 0.7, 0.8),
                "open": (0.7, 0.8, 1.0, 1.0),
            },
        ),
    }
)

DEFAULT_OUTPUTS: Mapping[str, float] = MappingProxyType(
    {"damping": 2500.0, "energy": 500.0, "valve": 0.5}
)


class RuleId(IntEnum):
    SMOOTH_ROAD_SOFT = 0
    COMFORT_SMOOTH_GENTLE = 1
    COMFORT_LOW_SPEED = 2
    MODERATE_ROAD_MEDIUM = 3
    PERFORMANCE_MEDIUM_SPEED = 4
    ROUGH_ROAD_FIRM = 5
    SAFETY_FAST_ROUGH = 6
    SPORT_AGGRESSIVE_HIGH_SPEED = 7
    STABILITY_AGGRESSIVE_ROUGH = 8
    PERFORMANCE_AGGRESSIVE_SMOOTH = 9
    ENERGY_FAST_LOW_STORAGE = 10
    ENERGY_LOW_STORAGE = 11
    ENERGY_ROUGH_ROAD = 12
    ENERGY_MODERATE_ROAD = 13
    ENERGY_SMOOTH_ROAD = 14
    ENERGY_HIGH_STORAGE = 15
    VALVE_FAST_LOW_STORAGE = 16
    VALVE_SLOW_HIGH_STORAGE = 17
    VALVE_ROUGH_MEDIUM_STORAGE = 18


@dataclass(frozen=True)
class SuspensionRule:
    rule_id: RuleId
    conditions: Tuple[Tuple[str, str], ...]
    output: str
    conclusion: str
    weight: float

    @property
    def name(self) -> str:
        return self.rule_id.name.lower()


def _rule(
    rule_id: RuleId, conditions: Mapping[str, str], output: str, conclusion: str, weight: float
) -> SuspensionRule:
    return SuspensionRule(rule_id, tuple(conditions.items()), output, conclusion, weight)


RULES: Tuple[SuspensionRule, ...] = (
    _rule(RuleId.SMOOTH_ROAD_SOFT, {"road_roughness": "smooth"}, "damping", "soft", 0.8),
    _rule(
        RuleId.COMFORT_SMOOTH_GENTLE,
        {"road_roughness": "smooth", "acceleration_pattern": "gentle"},
        "damping", "soft", 0.8,
    ),
    _rule(
        RuleId.COMFORT_LOW_SPEED,
        {"road_roughness": "smooth", "vehicle_speed": "low"},
        "damping", "soft", 0.9,
    ),
    _rule(RuleId.MODERATE_ROAD_MEDIUM, {"road_roughness": "moderate"}, "damping", "medium", 0.8),
    _rule(
        RuleId.PERFORMANCE_MEDIUM_SPEED,
        {"road_roughness": "moderate", "vehicle_speed": "medium"},
        "damping", "medium", 0.7,
    ),
    _rule(RuleId.ROUGH_ROAD_FIRM, {"road_roughness": "rough"}, "damping", "firm", 0.85),
    _rule(
        RuleId.SAFETY_FAST_ROUGH,
        {"suspension_velocity": "fast", "road_roughness": "rough"},
        "damping", "firm", 0.95,
    ),
    _rule(
        RuleId.SPORT_AGGRESSIVE_HIGH_SPEED,
        {"acceleration_pattern": "aggressive", "vehicle_speed": "high"},
        "damping", "firm", 0.9,
    ),
    _rule(
        RuleId.STABILITY_AGGRESSIVE_ROUGH,
        {"acceleration_pattern": "aggressive", "road_roughness": "rough"},
        "damping", "firm", 0.9,
    ),
    _rule(
        RuleId.PERFORMANCE_AGGRESSIVE_SMOOTH,
        {"acceleration_pattern": "aggressive", "road_roughness": "smooth"},
        "damping", "medium", 0.8,
    ),
    _rule(
        RuleId.ENERGY_FAST_LOW_STORAGE,
        {"suspension_velocity": "fast", "energy_storage_level": "low"},
        "energy", "high", 0.9,
    ),
    _rule(RuleId.ENERGY_LOW_STORAGE, {"energy_storage_level": "low"}, "energy", "high", 0.8),
    _rule(
        RuleId.ENERGY_ROUGH_ROAD,
        {"road_roughness": "rough", "energy_storage_level": "medium"},
        "energy", "high", 0.8,
    ),
    _rule(
        RuleId.ENERGY_MODERATE_ROAD,
        {"road_roughness": "moderate", "energy_storage_level": "medium"},
        "energy", "medium", 0.8,
    ),
    _rule(
        RuleId.ENERGY_SMOOTH_ROAD,
        {"road_roughness": "smooth", "energy_storage_level": "medium"},
        "energy", "low", 0.7,
    ),
    _rule(RuleId.ENERGY_HIGH_STORAGE, {"energy_storage_level": "high"}, "energy", "low", 0.7),
    _rule(
        RuleId.VALVE_FAST_LOW_STORAGE,
        {"suspension_velocity": "fast", "energy_storage_level": "low"},
        "valve", "open", 0.8,
    ),
    _rule(
        RuleId.VALVE_SLOW_HIGH_STORAGE,
        {"suspension_velocity": "slow", "energy_storage_level": "high"},
        "valve", "closed", 0.7,
    ),
    _rule(
        RuleId.VALVE_ROUGH_MEDIUM_STORAGE,
        {"road_roughness": "rough", "energy_storage_level": "medium"},
        "valve", "partial", 0.75,
    ),
)

assert tuple(rule.rule_id for rule in RULES) == tuple(RuleId)

RULE_NAMES: Tuple[str, ...] = tuple(rule.name for rule in RULES)

# Conclusion centroids and output index per rule, resolved once.
_CENTROIDS = np.array(
    [OUTPUT_VARIABLES[rule.output].centroid(rule.conclusion) for rule in RULES], dtype=float
)
_OUTPUTS: Tuple[str, ...] = tuple(OUTPUT_VARIABLES)
_OUTPUT_MASKS: Mapping[str, np.ndarray] = MappingProxyType(
    {
        output: np.array([rule.output == output for rule in RULES], dtype=bool)
        for output in _OUTPUTS
    }
)


def initial_weights() -> np.ndarray:
    return np.array([rule.weight for rule in RULES], dtype=float)


@dataclass(frozen=True)
class RuleEvaluation:
    """Crisp outputs of one inference pass and the per-rule firing strengths."""

    damping: float
    energy: float
    valve: float
    activations: np.ndarray


def evaluate_rules(crisp_inputs: Mapping[str, float], weights: np.ndarray) -> RuleEvaluation:
    """Fire every rule against ``crisp_inputs`` using ``weights``.

    Each rule's activation is the minimum membership across its conditions;
    its strength in the weighted average is the activation times its weight.
    """

    memberships = {
        name: variable.fuzzify(float(crisp_inputs[name]))
        for name, variable in INPUT_VARIABLES.items()
    }
    activations = np.array(
        [
            min(memberships[variable][label] for variable, label in rule.conditions)
            for rule in RULES
        ],
        dtype=float,
    )
    strengths = activations * weights
    crisp: dict[str, float] = {}
    for output in _OUTPUTS:
        mask = _OUTPUT_MASKS[output]
        crisp[output] = weighted_defuzzify(
            zip(strengths[mask].tolist(), _CENTROIDS[mask].tolist()),
            default=DEFAULT_OUTPUTS[output],
        )
    return RuleEvaluation(
        damping=crisp["damping"],
        energy=crisp["energy"],
        valve=crisp["valve"],
        activations=activations,
    )
