"""Input, output and parameter records for the suspension controller."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Literal, Mapping, Optional, Tuple

from ..errors import ConfigurationError

__all__ = [
    "AdaptiveParameters",
    "AdaptiveSnapshot",
    "DRIVING_MODES",
    "DrivingMode",
    "DrivingPatternData",
    "OptimizationObjectives",
    "PerformanceDiagnostics",
    "PredictiveParameters",
    "RoadConditionData",
    "SURFACE_TYPES",
    "SurfaceType",
    "SuspensionInputs",
    "SuspensionOutputs",
]


DrivingMode = Literal["eco", "comfort", "sport", "off_road"]
SurfaceType = Literal["asphalt", "concrete", "gravel", "dirt", "wet", "snow", "ice"]
DampingMode = Literal["soft", "medium", "firm", "adaptive"]

DRIVING_MODES: Tuple[str, ...] = ("eco", "comfort", "sport", "off_road")
SURFACE_TYPES: Tuple[str, ...] = (
    "asphalt",
    "concrete",
    "gravel",
    "dirt",
    "wet",
    "snow",
    "ice",
)


@dataclass(frozen=True)
class SuspensionInputs:
    """Sensor snapshot for one suspension corner.

    Speeds are in km/h, suspension kinematics in m and m/s, pressures in bar
    and temperatures in °C. Driving-style patterns and the energy-storage
    level are normalised to ``[0, 1]``.
    """

    vehicle_speed: float
    suspension_velocity: float
    road_roughness: float
    energy_storage_level: float
    vertical_acceleration: float = 0.0
    suspension_displacement: float = 0.0
    road_gradient: float = 0.0
    surface_type: SurfaceType = "asphalt"
    acceleration_pattern: float = 0.3
    braking_pattern: float = 0.3
    cornering_pattern: float = 0.3
    driving_mode: DrivingMode = "comfort"
    hydraulic_pressure: float = 150.0
    accumulator_pressure: float = 150.0
    fluid_temperature: float = 40.0
    ambient_temperature: float = 20.0
    vehicle_load: float = 400.0

    @property
    def aggression(self) -> float:
        """Mean of the three driving-style descriptors."""

        return (self.acceleration_pattern + self.braking_pattern + self.cornering_pattern) / 3.0


@dataclass(frozen=True)
class SuspensionOutputs:
    """Actuator commands and quality indices for one corner."""

    damping_coefficient: float
    damping_force: float
    damping_mode: DampingMode
    energy_recovery_rate: float
    valve_position: float
    hydraulic_flow_rate: float
    generator_torque: float
    accumulator_charge_rate: float
    pump_speed: float
    comfort_index: float
    energy_efficiency: float
    system_efficiency: float


@dataclass(frozen=True)
class RoadConditionData:
    """Look-ahead road information supplied by an external analyser."""

    roughness_index: Optional[float] = None
    surface_type: Optional[SurfaceType] = None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "RoadConditionData":
        return cls(
            roughness_index=payload.get("roughness_index"),
            surface_type=payload.get("surface_type"),
        )


@dataclass(frozen=True)
class DrivingPatternData:
    """Driving-style estimate supplied by an external analyser."""

    aggression_level: Optional[float] = None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "DrivingPatternData":
        return cls(
            aggression_level=payload.get("aggression_level"),
        )


@dataclass(frozen=True)
class AdaptiveParameters:
    """Online learning parameters.

    Parameters
    ----------
    learning_rate:
        Step applied to the error signal when nudging rule weights.
    forgetting_factor:
        Share of the current deviation from the initial weight retained per
        cycle; it also discounts the running performance estimate.
    adaptation_threshold:
        Minimum absolute performance error before weights are adjusted.
    performance_window:
        Number of recent cycles averaged into the performance signal.
    target_performance:
        Performance score the controller steers towards.
    """

    learning_rate: float = 0.1
    forgetting_factor: float = 0.95
    adaptation_threshold: float = 0.05
    performance_window: int = 50
    target_performance: float = 0.85

    def __post_init__(self) -> None:
        if self.learning_rate < 0.0:
            raise ConfigurationError("learning_rate must be non-negative")
        if not 0.0 <= self.forgetting_factor <= 1.0:
            raise ConfigurationError("forgetting_factor must lie within [0, 1]")
        if self.adaptation_threshold < 0.0:
            raise ConfigurationError("adaptation_threshold must be non-negative")
        if self.performance_window < 1:
            raise ConfigurationError("performance_window must be at least 1")
        if not 0.0 <= self.target_performance <= 1.0:
            raise ConfigurationError("target_performance must lie within [0, 1]")


@dataclass(frozen=True)
class PredictiveParameters:
    """Short-horizon trend extrapolation settings.

    ``update_frequency`` is the control rate in Hz, used to convert the
    per-sample trend into a rate per second before projecting it over
    ``prediction_horizon`` seconds.
    """

    prediction_horizon: float = 2.0
    confidence_threshold: float = 0.8
    update_frequency: float = 10.0
    history_size: int = 100
    trend_window: int = 10
    min_samples: int = 3

    def __post_init__(self) -> None:
        for name in ("prediction_horizon", "update_frequency"):
            if getattr(self, name) <= 0.0:
                raise ConfigurationError(f"{name} must be positive")
        for name in ("history_size", "trend_window", "min_samples"):
            if getattr(self, name) < 1:
                raise ConfigurationError(f"{name} must be at least 1")
        if self.confidence_threshold < 0.0:
            raise ConfigurationError("confidence_threshold must be non-negative")


@dataclass(frozen=True)
class OptimizationObjectives:
    """Weights of the four control objectives; always normalised to sum 1."""

    comfort: float = 0.3
    energy: float = 0.3
    stability: float = 0.25
    efficiency: float = 0.15

    def as_dict(self) -> dict[str, float]:
        return {
            "comfort": self.comfort,
            "energy": self.energy,
            "stability": self.stability,
            "efficiency": self.efficiency,
        }


@dataclass(frozen=True)
class AdaptiveSnapshot:
    """Read-only view of the learned state of a controller."""

    adaptive_parameters: AdaptiveParameters
    predictive_parameters: PredictiveParameters
    optimization_objectives: OptimizationObjectives
    rule_weights: Mapping[str, float]
    performance_estimate: float
    cycles: int


@dataclass(frozen=True)
class PerformanceDiagnostics:
    average_efficiency: float
    average_comfort: float
    performance_trend: Literal["improving", "stable", "declining"]
    rule_utilization: Mapping[str, float]
    history_length: int
    discarded_entries: int

    @classmethod
    def empty(cls, rule_names: Tuple[str, ...]) -> "PerformanceDiagnostics":
        return cls(
            average_efficiency=0.0,
            average_comfort=0.0,
            performance_trend="stable",
            rule_utilization=MappingProxyType({name: 0.0 for name in rule_names}),
            history_length=0,
            discarded_entries=0,
        )
