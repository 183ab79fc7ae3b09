"""Adaptive, predictive and multi-objective control of a regenerative damper.

Each cycle runs the following pipeline:

1. Validate the corner snapshot and record the roughness, suspension velocity
   and driving aggression in a bounded history.
2. Evaluate the weighted fuzzy rule base into damping, energy-recovery and
   valve commands, then shape them by driving mode, road surface, available
   mechanical energy and fluid temperature.
3. Extrapolate the roughness trend over the prediction horizon and, when the
   fit is trustworthy and the road is getting rougher, stiffen ahead of time.
4. Blend per-objective targets with the normalised objective weights.
5. Nudge the blend with the recent performance window and clamp the result
   to the actuator limits.
6. Derive the actuator set points and quality indices, then feed the cycle's
   performance back into the rule weights.

Only step 6 mutates learned state, and only after every other step has
succeeded.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple

import numpy as np

from ..common.derating import DeratingCurve
from ..common.ring_buffer import RingBuffer
from ..configuration import merge_dataclass, normalise_weights
from ..errors import InputValidationError
from ..validation import require_finite, require_non_negative, require_range
from .rules import RULE_NAMES, RuleEvaluation, evaluate_rules, initial_weights
from .types import (
    DRIVING_MODES,
    SURFACE_TYPES,
    AdaptiveParameters,
    AdaptiveSnapshot,
    DrivingPatternData,
    OptimizationObjectives,
    PerformanceDiagnostics,
    PredictiveParameters,
    RoadConditionData,
    SuspensionInputs,
    SuspensionOutputs,
)

logger = logging.getLogger(__name__)

__all__ = ["AdaptiveSuspensionController", "PerformanceRecord"]


MIN_DAMPING = 500.0
MAX_DAMPING = 5_000.0
MAX_ENERGY_RECOVERY = 1_500.0
FULL_STORAGE_ENERGY_RECOVERY = 500.0
FULL_STORAGE_LEVEL = 0.9
MIN_RULE_WEIGHT = 0.1
MAX_RULE_WEIGHT = 1.0
PERFORMANCE_HISTORY = 1_000
MIN_ADAPTIVE_SAMPLES = 10
TREND_SAMPLES = 25
TREND_THRESHOLD = 0.05

# (damping factor, energy factor) per driving mode.
MODE_FACTORS: Mapping[str, Tuple[float, float]] = MappingProxyType(
    {
        "eco": (0.85, 1.15),
        "comfort": (0.9, 1.0),
        "sport": (1.25, 0.9),
        "off_road": (1.1, 1.05),
    }
)

SURFACE_FACTORS: Mapping[str, Tuple[float, float]] = MappingProxyType(
    {
        "asphalt": (1.0, 1.0),
        "concrete": (1.0, 1.0),
        "gravel": (1.1, 1.05),
        "dirt": (1.1, 1.05),
        "wet": (1.05, 1.0),
        "snow": (0.9, 0.9),
        "ice": (0.9, 0.9),
    }
)

FLUID_TEMPERATURE_DERATING = DeratingCurve.from_pairs(
    ((90.0, 1.0), (120.0, 0.3)), name="suspension_fluid_temperature"
)

ANTICIPATORY_DAMPING_GAIN = 1_500.0
ANTICIPATORY_ENERGY_GAIN = 300.0

GENERATOR_RPM = 1_500.0
MAX_GENERATOR_TORQUE = 50.0
MAX_FLOW_RATE = 50.0
MAX_ACCUMULATOR_CHARGE_RATE = 5.0
BASE_PUMP_SPEED = 1_000.0
MAX_PUMP_SPEED = 3_000.0


@dataclass(frozen=True)
class PerformanceRecord:
    comfort_index: float
    energy_efficiency: float
    system_efficiency: float
    damping_coefficient: float
    energy_recovery_rate: float


@dataclass(frozen=True)
class _Conditions:
    """Validated cycle inputs with look-ahead data folded in."""

    inputs: SuspensionInputs
    velocity: float
    roughness: float
    aggression: float
    damping_factor: float
    energy_factor: float
    look_ahead_roughness: Optional[float] = None


def _optimal_damping(roughness: float, speed: float, aggression: float) -> float:
    return 2_000.0 + 1_000.0 * roughness + 500.0 * speed / 100.0 + 600.0 * aggression


def _damping_mode(damping: float) -> str:
    if damping < 2_000.0:
        return "soft"
    if damping < 3_500.0:
        return "medium"
    return "firm"


def _clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


@dataclass
class AdaptiveSuspensionController:
    """Per-corner suspension controller with online rule-weight learning.

    Instances are not safe for concurrent use: every call to
    :meth:`calculate_advanced_optimal_control` reads and then rewrites the
    rule weights and histories.
    """

    adaptive: AdaptiveParameters = field(default_factory=AdaptiveParameters)
    predictive: PredictiveParameters = field(default_factory=PredictiveParameters)
    objectives: OptimizationObjectives = field(default_factory=OptimizationObjectives)
    _initial_weights: np.ndarray = field(init=False, repr=False)
    _weights: np.ndarray = field(init=False, repr=False)
    _samples: RingBuffer[Tuple[float, float, float]] = field(init=False, repr=False)
    _history: RingBuffer[PerformanceRecord] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.objectives = OptimizationObjectives(**normalise_weights(self.objectives.as_dict()))
        self._initial_weights = initial_weights()
        self.reset_learning()

    # ------------------------------------------------------------------
    # Public API
    def reset_learning(self) -> None:
        """Restore the initial rule weights and forget every history."""

        self._weights = self._initial_weights.copy()
        self._samples = RingBuffer(self.predictive.history_size)
        self._history = RingBuffer(PERFORMANCE_HISTORY)
        self._activation_totals = np.zeros_like(self._initial_weights)
        self._performance_estimate = 0.0
        self._cycles = 0

    def calculate_optimal_control(self, inputs: SuspensionInputs) -> SuspensionOutputs:
        """Base fuzzy control without prediction, blending or learning.

        The call leaves the controller state untouched.
        """

        conditions = self._conditions(inputs, None, None)
        evaluation = evaluate_rules(self._crisp_inputs(conditions), self._weights)
        damping, energy, valve = self._shape(conditions, evaluation)
        damping, energy, valve = self._apply_safety_constraints(conditions, damping, energy, valve)
        return self._assemble(conditions, damping, energy, valve, predicted=False)

    def calculate_advanced_optimal_control(
        self,
        inputs: SuspensionInputs,
        road_condition: Optional[RoadConditionData] = None,
        driving_pattern: Optional[DrivingPatternData] = None,
    ) -> SuspensionOutputs:
        """Run one full adaptive cycle and update the learned state."""

        conditions = self._conditions(inputs, road_condition, driving_pattern)
        self._samples.append(
            (conditions.inputs.road_roughness, conditions.velocity, conditions.aggression)
        )

        evaluation = evaluate_rules(self._crisp_inputs(conditions), self._weights)
        damping, energy, valve = self._shape(conditions, evaluation)

        anticipated = self._anticipated_roughness(conditions)
        rise = anticipated - conditions.roughness
        predicted = rise > 0.0
        planning = conditions
        if predicted:
            damping += ANTICIPATORY_DAMPING_GAIN * rise * conditions.damping_factor
            energy += ANTICIPATORY_ENERGY_GAIN * rise
            logger.debug(
                "Anticipatory stiffening applied.",
                extra={
                    "event": "suspension.prediction",
                    "current_roughness": conditions.roughness,
                    "anticipated_roughness": anticipated,
                },
            )
            planning = replace(conditions, roughness=anticipated)

        damping, energy, valve = self._blend_objectives(planning, damping, energy, valve)
        damping, energy = self._apply_adaptive_factors(planning, damping, energy)
        damping, energy, valve = self._apply_safety_constraints(conditions, damping, energy, valve)
        outputs = self._assemble(conditions, damping, energy, valve, predicted=predicted)

        self._learn(evaluation, outputs)
        return outputs

    def validate_inputs(
        self,
        inputs: SuspensionInputs,
        road_condition: Optional[RoadConditionData] = None,
        driving_pattern: Optional[DrivingPatternData] = None,
    ) -> None:
        """Raise :class:`~ev_regen.errors.InputValidationError` for invalid input."""

        self._conditions(inputs, road_condition, driving_pattern)

    def update_optimization_objectives(
        self, overrides: Mapping[str, Any]
    ) -> OptimizationObjectives:
        """Merge ``overrides`` into the objective weights and renormalise them."""

        merged = merge_dataclass(self.objectives, overrides)
        self.objectives = OptimizationObjectives(**normalise_weights(merged.as_dict()))
        logger.info(
            "Optimisation objectives updated.",
            extra={"event": "suspension.objectives", **self.objectives.as_dict()},
        )
        return self.objectives

    def get_adaptive_parameters(self) -> AdaptiveSnapshot:
        return AdaptiveSnapshot(
            adaptive_parameters=self.adaptive,
            predictive_parameters=self.predictive,
            optimization_objectives=self.objectives,
            rule_weights=MappingProxyType(
                {name: float(weight) for name, weight in zip(RULE_NAMES, self._weights)}
            ),
            performance_estimate=self._performance_estimate,
            cycles=self._cycles,
        )

    def get_performance_diagnostics(self) -> PerformanceDiagnostics:
        if not self._history:
            return PerformanceDiagnostics.empty(RULE_NAMES)
        records = list(self._history)
        efficiency = np.array([record.system_efficiency for record in records], dtype=float)
        comfort = np.array([record.comfort_index for record in records], dtype=float)

        trend = "stable"
        if len(records) >= 2 * TREND_SAMPLES:
            delta = float(efficiency[-TREND_SAMPLES:].mean() - efficiency[:TREND_SAMPLES].mean())
            if delta > TREND_THRESHOLD:
                trend = "improving"
            elif delta < -TREND_THRESHOLD:
                trend = "declining"

        utilization = self._activation_totals / max(self._cycles, 1)
        return PerformanceDiagnostics(
            average_efficiency=float(efficiency.mean()),
            average_comfort=float(comfort.mean()),
            performance_trend=trend,  # type: ignore[arg-type]
            rule_utilization=MappingProxyType(
                {name: float(value) for name, value in zip(RULE_NAMES, utilization)}
            ),
            history_length=len(self._history),
            discarded_entries=self._history.dropped,
        )

    @staticmethod
    def failsafe_outputs(inputs: SuspensionInputs) -> SuspensionOutputs:
        """Medium damping with energy recovery disabled.

        Hosts command these outputs when a cycle is rejected.
        """

        damping = 2_500.0
        velocity = abs(float(inputs.suspension_velocity))
        if not math.isfinite(velocity):
            velocity = 0.0
        return SuspensionOutputs(
            damping_coefficient=damping,
            damping_force=damping * velocity,
            damping_mode="medium",
            energy_recovery_rate=0.0,
            valve_position=0.5,
            hydraulic_flow_rate=10.0,
            generator_torque=0.0,
            accumulator_charge_rate=0.0,
            pump_speed=BASE_PUMP_SPEED,
            comfort_index=0.5,
            energy_efficiency=0.0,
            system_efficiency=0.5,
        )

    # ------------------------------------------------------------------
    # Pipeline stages
    def _conditions(
        self,
        inputs: SuspensionInputs,
        road_condition: Optional[RoadConditionData],
        driving_pattern: Optional[DrivingPatternData],
    ) -> _Conditions:
        velocity = abs(self._validate(inputs))
        aggression = inputs.aggression
        if driving_pattern is not None and driving_pattern.aggression_level is not None:
            level = require_range(
                "aggression_level", driving_pattern.aggression_level, 0.0, 1.0,
                label="Aggression level",
            )
            aggression = max(aggression, level)
        surface = inputs.surface_type
        look_ahead: Optional[float] = None
        if road_condition is not None:
            if road_condition.surface_type is not None:
                _require_surface(road_condition.surface_type)
                surface = road_condition.surface_type
            if road_condition.roughness_index is not None:
                look_ahead = require_range(
                    "roughness_index", road_condition.roughness_index, 0.0, 1.0,
                    label="Roughness index",
                )
        mode_damping, mode_energy = MODE_FACTORS[inputs.driving_mode]
        surface_damping, surface_energy = SURFACE_FACTORS[surface]
        return _Conditions(
            inputs=inputs,
            velocity=velocity,
            roughness=float(inputs.road_roughness),
            aggression=aggression,
            damping_factor=mode_damping * surface_damping,
            energy_factor=mode_energy * surface_energy,
            look_ahead_roughness=look_ahead,
        )

    @staticmethod
    def _crisp_inputs(conditions: _Conditions) -> dict[str, float]:
        inputs = conditions.inputs
        return {
            "vehicle_speed": float(inputs.vehicle_speed),
            "road_roughness": conditions.roughness,
            "suspension_velocity": conditions.velocity,
            "acceleration_pattern": max(float(inputs.acceleration_pattern), conditions.aggression),
            "energy_storage_level": float(inputs.energy_storage_level),
        }

    @staticmethod
    def _shape(
        conditions: _Conditions, evaluation: RuleEvaluation
    ) -> Tuple[float, float, float]:
        inputs = conditions.inputs
        damping = evaluation.damping * conditions.damping_factor
        # Rougher roads carry more mechanical energy to harvest.
        availability = 0.6 + 0.6 * conditions.roughness
        energy = (
            evaluation.energy
            * conditions.energy_factor
            * availability
            * FLUID_TEMPERATURE_DERATING.factor(inputs.fluid_temperature)
        )
        return damping, energy, evaluation.valve

    def _anticipated_roughness(self, conditions: _Conditions) -> float:
        anticipated = conditions.roughness
        slope, confidence = self._roughness_trend()
        if confidence >= self.predictive.confidence_threshold and slope > 0.0:
            projected = slope * self.predictive.update_frequency * self.predictive.prediction_horizon
            anticipated = min(1.0, conditions.roughness + projected)
        if conditions.look_ahead_roughness is not None:
            anticipated = max(anticipated, conditions.look_ahead_roughness)
        return anticipated

    def _roughness_trend(self) -> Tuple[float, float]:
        """Least-squares roughness slope per sample and its confidence."""

        samples = self._samples.tail(self.predictive.trend_window)
        if len(samples) < max(self.predictive.min_samples, 2):
            return 0.0, 0.0
        values = np.array([sample[0] for sample in samples], dtype=float)
        positions = np.arange(values.size, dtype=float)
        slope, intercept = np.polyfit(positions, values, 1)
        residual = values - (slope * positions + intercept)
        total = float(np.sum((values - values.mean()) ** 2))
        if total <= 0.0:
            return 0.0, 0.0
        r_squared = max(0.0, 1.0 - float(np.sum(residual ** 2)) / total)
        coverage = min(1.0, values.size / self.predictive.trend_window)
        return float(slope), r_squared * coverage

    def _blend_objectives(
        self, conditions: _Conditions, damping: float, energy: float, valve: float
    ) -> Tuple[float, float, float]:
        inputs = conditions.inputs
        optimal = (
            _optimal_damping(conditions.roughness, inputs.vehicle_speed, conditions.aggression)
            * conditions.damping_factor
        )
        targets = {
            "comfort": (optimal, 0.7 * energy, 0.8 * valve),
            "energy": (0.95 * damping, 1.4 * energy, min(1.0, valve + 0.2)),
            "stability": (
                1.15 * damping + 400.0 * conditions.aggression * conditions.damping_factor,
                0.85 * energy,
                valve,
            ),
            "efficiency": (damping, energy, valve),
        }
        weights = self.objectives.as_dict()
        blended = np.zeros(3, dtype=float)
        for objective, target in targets.items():
            blended += weights[objective] * np.asarray(target, dtype=float)
        return float(blended[0]), float(blended[1]), float(blended[2])

    def _apply_adaptive_factors(
        self, conditions: _Conditions, damping: float, energy: float
    ) -> Tuple[float, float]:
        recent = self._history.tail(self.adaptive.performance_window)
        if len(recent) < MIN_ADAPTIVE_SAMPLES:
            return damping, energy
        comfort = float(np.mean([record.comfort_index for record in recent]))
        efficiency = float(np.mean([record.energy_efficiency for record in recent]))
        if comfort < 0.6:
            optimal = (
                _optimal_damping(
                    conditions.roughness, conditions.inputs.vehicle_speed, conditions.aggression
                )
                * conditions.damping_factor
            )
            damping += 0.1 * (optimal - damping)
        if efficiency < 0.5 and conditions.inputs.energy_storage_level < FULL_STORAGE_LEVEL:
            energy *= 1.1
        return damping, energy

    @staticmethod
    def _apply_safety_constraints(
        conditions: _Conditions, damping: float, energy: float, valve: float
    ) -> Tuple[float, float, float]:
        ceiling = MAX_ENERGY_RECOVERY
        if conditions.inputs.energy_storage_level >= FULL_STORAGE_LEVEL:
            ceiling = FULL_STORAGE_ENERGY_RECOVERY
        return (
            _clamp(damping, MIN_DAMPING, MAX_DAMPING),
            _clamp(energy, 0.0, ceiling),
            _clamp(valve, 0.0, 1.0),
        )

    def _assemble(
        self,
        conditions: _Conditions,
        damping: float,
        energy: float,
        valve: float,
        *,
        predicted: bool,
    ) -> SuspensionOutputs:
        inputs = conditions.inputs
        velocity = conditions.velocity
        roughness = conditions.roughness
        speed = float(inputs.vehicle_speed)
        storage = float(inputs.energy_storage_level)

        flow = min(
            velocity * 10.0 * (1.0 + speed / 100.0 * 0.3) * (1.0 + roughness * 0.5),
            MAX_FLOW_RATE,
        )
        torque = min(energy * 60.0 / (2.0 * math.pi * GENERATOR_RPM), MAX_GENERATOR_TORQUE)
        charge_rate = MAX_ACCUMULATOR_CHARGE_RATE * energy / MAX_ENERGY_RECOVERY * (1.0 - storage)
        pressure_factor = max(0.0, (200.0 - float(inputs.hydraulic_pressure)) / 200.0)
        pump = min(BASE_PUMP_SPEED * (1.0 + 2.0 * velocity + pressure_factor), MAX_PUMP_SPEED)

        optimal = (
            _optimal_damping(roughness, speed, conditions.aggression) * conditions.damping_factor
        )
        comfort = 1.0 - 0.3 * roughness - min(0.5 * velocity, 0.4)
        comfort -= 0.2 * abs(damping - optimal) / optimal
        comfort = _clamp(comfort, 0.0, 1.0)

        available = MAX_ENERGY_RECOVERY * min(1.0, 0.25 + velocity + 0.5 * roughness)
        energy_efficiency = _clamp(energy / available, 0.0, 1.0)

        required = 1_500.0 + 2_000.0 * roughness + 1_000.0 * conditions.aggression
        stability = _clamp(damping / required, 0.0, 1.0)
        scores = {
            "comfort": comfort,
            "energy": energy_efficiency,
            "stability": stability,
            "efficiency": 0.6 * energy_efficiency + 0.4 * comfort,
        }
        weights = self.objectives.as_dict()
        system_efficiency = _clamp(
            math.fsum(weights[name] * score for name, score in scores.items()), 0.0, 1.0
        )

        return SuspensionOutputs(
            damping_coefficient=damping,
            damping_force=damping * velocity,
            damping_mode="adaptive" if predicted else _damping_mode(damping),  # type: ignore[arg-type]
            energy_recovery_rate=energy,
            valve_position=valve,
            hydraulic_flow_rate=flow,
            generator_torque=torque,
            accumulator_charge_rate=charge_rate,
            pump_speed=pump,
            comfort_index=comfort,
            energy_efficiency=energy_efficiency,
            system_efficiency=system_efficiency,
        )

    def _learn(self, evaluation: RuleEvaluation, outputs: SuspensionOutputs) -> None:
        params = self.adaptive
        self._history.append(
            PerformanceRecord(
                comfort_index=outputs.comfort_index,
                energy_efficiency=outputs.energy_efficiency,
                system_efficiency=outputs.system_efficiency,
                damping_coefficient=outputs.damping_coefficient,
                energy_recovery_rate=outputs.energy_recovery_rate,
            )
        )
        self._activation_totals += evaluation.activations
        self._cycles += 1

        performance = outputs.system_efficiency
        if self._cycles == 1:
            self._performance_estimate = performance
        else:
            self._performance_estimate = (
                params.forgetting_factor * self._performance_estimate
                + (1.0 - params.forgetting_factor) * performance
            )

        window = self._history.tail(params.performance_window)
        error = float(np.mean([record.system_efficiency for record in window])) - (
            params.target_performance
        )
        if abs(error) <= params.adaptation_threshold:
            return
        drift = params.forgetting_factor * (self._weights - self._initial_weights)
        updated = (
            self._initial_weights
            + drift
            + params.learning_rate * error * evaluation.activations
        )
        self._weights = np.clip(updated, MIN_RULE_WEIGHT, MAX_RULE_WEIGHT)

    @staticmethod
    def _validate(inputs: SuspensionInputs) -> float:
        require_range(
            "vehicle_speed", inputs.vehicle_speed, 0.0, 300.0,
            label="Vehicle speed", unit=" km/h",
        )
        velocity = require_range(
            "suspension_velocity", inputs.suspension_velocity, -5.0, 5.0,
            label="Suspension velocity", unit=" m/s",
        )
        for name, label in (
            ("road_roughness", "Road roughness"),
            ("energy_storage_level", "Energy storage level"),
            ("acceleration_pattern", "Acceleration pattern"),
            ("braking_pattern", "Braking pattern"),
            ("cornering_pattern", "Cornering pattern"),
        ):
            require_range(name, getattr(inputs, name), 0.0, 1.0, label=label)
        require_range(
            "hydraulic_pressure", inputs.hydraulic_pressure, 0.0, 300.0,
            label="Hydraulic pressure", unit=" bar",
        )
        require_range(
            "accumulator_pressure", inputs.accumulator_pressure, 0.0, 300.0,
            label="Accumulator pressure", unit=" bar",
        )
        require_range(
            "fluid_temperature", inputs.fluid_temperature, -40.0, 200.0,
            label="Fluid temperature", unit="°C",
        )
        require_range(
            "ambient_temperature", inputs.ambient_temperature, -40.0, 60.0,
            label="Ambient temperature", unit="°C",
        )
        require_non_negative("vehicle_load", inputs.vehicle_load, label="Vehicle load", unit=" kg")
        for name in ("vertical_acceleration", "suspension_displacement", "road_gradient"):
            require_finite(name, getattr(inputs, name))
        if inputs.driving_mode not in DRIVING_MODES:
            raise InputValidationError(
                f"Unknown driving mode '{inputs.driving_mode}'; expected one of: "
                + ", ".join(DRIVING_MODES),
                field="driving_mode",
                value=inputs.driving_mode,
            )
        _require_surface(inputs.surface_type)
        return velocity


def _require_surface(surface: Any) -> None:
    if surface not in SURFACE_TYPES:
        raise InputValidationError(
            f"Unknown surface type '{surface}'; expected one of: " + ", ".join(SURFACE_TYPES),
            field="surface_type",
            value=surface,
        )
