"""Fuzzy controller deciding the regenerative share of a braking request.

Inference runs in two stages. The first rule base maps vehicle speed and
braking intensity to a *potential* regenerative ratio and a motor torque
level. The second stage fuzzifies battery state of charge and motor
temperature into acceptance factors that scale the potential ratio down as
the battery fills up or the motor heats up. Splitting the stages keeps the
ratio monotone in SOC and temperature for every speed/intensity pair.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Sequence, Tuple

from ..common.derating import DeratingCurve
from ..common.fuzzy import FuzzyVariable, weighted_defuzzify
from ..validation import require_range

logger = logging.getLogger(__name__)

__all__ = [
    "BrakingControllerConfig",
    "BrakingControllerStatus",
    "BrakingInputs",
    "BrakingOutputs",
    "BrakingRule",
    "FuzzyBrakingController",
    "RULES",
]


SPEED = FuzzyVariable.from_points(
    "driving_speed",
    {
        "very_low": (0.0, 0.0, 10.0, 20.0),
        "low": (10.0, 20.0, 30.0, 40.0),
        "medium": (30.0, 40.0, 60.0, 80.0),
        "high": (60.0, 80.0, 100.0, 120.0),
        "very_high": (100.0, 120.0, 200.0, 200.0),
    },
)

INTENSITY = FuzzyVariable.from_points(
    "braking_intensity",
    {
        "light": (0.0, 0.0, 0.2, 0.4),
        "moderate": (0.2, 0.4, 0.6, 0.8),
        "heavy": (0.6, 0.8, 1.0, 1.0),
    },
)

STATE_OF_CHARGE = FuzzyVariable.from_points(
    "battery_soc",
    {
        "low": (0.0, 0.0, 0.2, 0.4),
        "medium": (0.2, 0.4, 0.6, 0.8),
        "high": (0.6, 0.8, 0.85, 0.95),
        "full": (0.85, 0.95, 1.0, 1.0),
    },
)

MOTOR_TEMPERATURE = FuzzyVariable.from_points(
    "motor_temperature",
    {
        "normal": (-40.0, -40.0, 60.0, 90.0),
        "warm": (60.0, 90.0, 90.0, 120.0),
        "hot": (90.0, 120.0, 200.0, 200.0),
    },
)

# Crisp output levels (fractions of full ratio or full torque).
OUTPUT_LEVELS: Mapping[str, float] = MappingProxyType(
    {
        "very_low": 0.05,
        "low": 0.25,
        "medium": 0.5,
        "high": 0.75,
        "very_high": 0.95,
    }
)

SOC_ACCEPTANCE: Mapping[str, float] = MappingProxyType(
    {"low": 1.0, "medium": 0.85, "high": 0.5, "full": 0.05}
)

THERMAL_ACCEPTANCE: Mapping[str, float] = MappingProxyType(
    {"normal": 1.0, "warm": 0.75, "hot": 0.1}
)


@dataclass(frozen=True)
class BrakingRule:
    """``speed`` and ``intensity`` antecedents with ratio and torque consequents."""

    speed: str
    intensity: str
    ratio: str
    torque: str

    @property
    def name(self) -> str:
        return f"{self.speed}_speed_{self.intensity}_braking"


def _rule_table(rows: Sequence[Tuple[str, str, str, str]]) -> Tuple[BrakingRule, ...]:
    return tuple(BrakingRule(*row) for row in rows)


RULES: Tuple[BrakingRule, ...] = _rule_table(
    (
        ("very_low", "light", "low", "very_low"),
        ("very_low", "moderate", "very_low", "very_low"),
        ("very_low", "heavy", "very_low", "low"),
        ("low", "light", "medium", "very_low"),
        ("low", "moderate", "low", "low"),
        ("low", "heavy", "very_low", "medium"),
        ("medium", "light", "very_high", "low"),
        ("medium", "moderate", "very_high", "medium"),
        ("medium", "heavy", "medium", "high"),
        ("high", "light", "very_high", "medium"),
        ("high", "moderate", "high", "high"),
        ("high", "heavy", "low", "very_high"),
        ("very_high", "light", "high", "medium"),
        ("very_high", "moderate", "medium", "high"),
        ("very_high", "heavy", "low", "very_high"),
    )
)

# Share of braking energy the drivetrain can return at a given speed (km/h).
_RECOVERY_EFFICIENCY = DeratingCurve.from_pairs(
    ((0.0, 0.3), (20.0, 0.6), (45.0, 0.95), (65.0, 0.95), (120.0, 0.7), (200.0, 0.5)),
    name="speed_recovery_efficiency",
)


@dataclass(frozen=True)
class BrakingInputs:
    """Per-cycle snapshot consumed by :class:`FuzzyBrakingController`."""

    driving_speed: float
    braking_intensity: float
    battery_soc: float
    motor_temperature: float


@dataclass(frozen=True)
class BrakingOutputs:
    """Braking decision for one control cycle.

    ``motor_torque`` is the per-motor torque command in N·m,
    ``regenerative_force`` the force the motors contribute at the wheel and
    ``mechanical_force`` the friction-brake make-up so that both add up to
    ``demanded_force``.
    """

    regenerative_ratio: float
    motor_torque: float
    regenerative_force: float
    mechanical_force: float
    demanded_force: float
    recovery_efficiency: float


@dataclass(frozen=True)
class BrakingControllerConfig:
    """Tuning constants for :class:`FuzzyBrakingController`.

    Parameters
    ----------
    max_motor_torque:
        Ceiling applied to the per-motor torque command (N·m).
    wheel_radius:
        Effective rolling radius (m) used to convert torque to force.
    max_braking_force:
        Force (N) requested at full braking intensity.
    heavy_braking_threshold:
        Intensity from which the ratio is capped to keep a minimum share of
        friction braking for deceleration authority.
    heavy_braking_ratio_cap:
        Maximum regenerative ratio during heavy braking.
    thermal_torque_derating:
        ``(temperature, factor)`` breakpoints derating torque as the motor
        heats up.
    """

    max_motor_torque: float = 800.0
    wheel_radius: float = 0.35
    max_braking_force: float = 15_000.0
    heavy_braking_threshold: float = 0.8
    heavy_braking_ratio_cap: float = 0.6
    thermal_torque_derating: Tuple[Tuple[float, float], ...] = (
        (120.0, 1.0),
        (150.0, 0.3),
        (200.0, 0.1),
    )


@dataclass(frozen=True)
class BrakingControllerStatus:
    is_operational: bool
    active_rules: int
    last_calculation_time: float
    cycles: int
    diagnostics: Tuple[str, ...]


@dataclass
class FuzzyBrakingController:
    """Map driving, battery and thermal state to a regenerative ratio."""

    config: BrakingControllerConfig = field(default_factory=BrakingControllerConfig)
    _torque_derating: DeratingCurve = field(init=False, repr=False)
    _active_rules: int = field(init=False, repr=False, default=0)
    _last_calculation_time: float = field(init=False, repr=False, default=0.0)
    _cycles: int = field(init=False, repr=False, default=0)
    _diagnostics: Tuple[str, ...] = field(init=False, repr=False, default=())

    def __post_init__(self) -> None:
        self._torque_derating = DeratingCurve.from_pairs(
            self.config.thermal_torque_derating, name="braking_motor_torque"
        )

    def calculate_optimal_braking(self, inputs: BrakingInputs) -> BrakingOutputs:
        """Return the regenerative ratio and torque command for ``inputs``."""

        speed = require_range(
            "driving_speed", inputs.driving_speed, 0.0, 200.0,
            label="Driving speed", unit=" km/h",
        )
        intensity = require_range(
            "braking_intensity", inputs.braking_intensity, 0.0, 1.0,
            label="Braking intensity",
        )
        soc = require_range(
            "battery_soc", inputs.battery_soc, 0.0, 1.0, label="Battery SOC"
        )
        temperature = require_range(
            "motor_temperature", inputs.motor_temperature, -40.0, 200.0,
            label="Motor temperature", unit="°C",
        )

        started = time.perf_counter()
        speed_memberships = SPEED.fuzzify(speed)
        intensity_memberships = INTENSITY.fuzzify(intensity)

        ratio_pairs: list[tuple[float, float]] = []
        torque_pairs: list[tuple[float, float]] = []
        active = 0
        for rule in RULES:
            strength = min(
                speed_memberships[rule.speed], intensity_memberships[rule.intensity]
            )
            if strength <= 0.0:
                continue
            active += 1
            ratio_pairs.append((strength, OUTPUT_LEVELS[rule.ratio]))
            torque_pairs.append((strength, OUTPUT_LEVELS[rule.torque]))

        potential_ratio = weighted_defuzzify(ratio_pairs, default=0.5)
        torque_level = weighted_defuzzify(torque_pairs, default=0.5)

        soc_factor = weighted_defuzzify(
            (
                (membership, SOC_ACCEPTANCE[label])
                for label, membership in STATE_OF_CHARGE.fuzzify(soc).items()
            ),
            default=1.0,
        )
        thermal_factor = weighted_defuzzify(
            (
                (membership, THERMAL_ACCEPTANCE[label])
                for label, membership in MOTOR_TEMPERATURE.fuzzify(temperature).items()
            ),
            default=1.0,
        )

        ratio = potential_ratio * soc_factor * thermal_factor
        notes: list[str] = []
        if intensity >= self.config.heavy_braking_threshold:
            if ratio > self.config.heavy_braking_ratio_cap:
                notes.append("heavy braking: regenerative ratio capped")
            ratio = min(ratio, self.config.heavy_braking_ratio_cap)
        ratio = max(0.0, min(1.0, ratio))
        if soc_factor < 1.0:
            notes.append(f"battery SOC {soc:.2f}: regeneration reduced")
        if thermal_factor < 1.0:
            notes.append(f"motor temperature {temperature:.0f}°C: regeneration reduced")

        max_torque = self.config.max_motor_torque
        torque = torque_level * max_torque * self._torque_derating.factor(temperature)
        if intensity <= 0.0:
            torque = 0.0
        torque = max(0.0, min(max_torque, torque))

        demanded = intensity * self.config.max_braking_force
        regenerative = min(torque * ratio / self.config.wheel_radius, demanded)
        mechanical = max(0.0, demanded - regenerative)

        self._cycles += 1
        self._active_rules = active
        self._diagnostics = tuple(notes)
        self._last_calculation_time = (time.perf_counter() - started) * 1_000.0

        outputs = BrakingOutputs(
            regenerative_ratio=ratio,
            motor_torque=torque,
            regenerative_force=regenerative,
            mechanical_force=mechanical,
            demanded_force=demanded,
            recovery_efficiency=_RECOVERY_EFFICIENCY.factor(speed),
        )
        logger.debug(
            "Braking decision computed.",
            extra={
                "event": "braking.cycle",
                "regenerative_ratio": ratio,
                "motor_torque": torque,
                "active_rules": active,
            },
        )
        return outputs

    def get_system_status(self) -> BrakingControllerStatus:
        """Return a snapshot describing the most recent cycle."""

        return BrakingControllerStatus(
            is_operational=True,
            active_rules=self._active_rules,
            last_calculation_time=self._last_calculation_time,
            cycles=self._cycles,
            diagnostics=self._diagnostics,
        )
