"""Vehicle-level braking control cycle.

:class:`BrakingControlSystem` turns a sensor snapshot into motor torque and
friction-brake commands. It derives the braking demand from the pedal and the
road gradient, asks the fuzzy controller for a regenerative ratio, adjusts
that ratio for road surface, visibility and ambient temperature, distributes
torque across the motors (switching to the stability-optimised split while
cornering) and finally enforces the safety limits.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Literal, Mapping, Optional, Tuple

from ..common.ring_buffer import RingBuffer
from ..configuration import merge_dataclass
from ..constants import GRAVITY
from ..errors import InputValidationError
from ..validation import require_range
from .controller import (
    BrakingControllerStatus,
    BrakingInputs,
    BrakingOutputs,
    FuzzyBrakingController,
)
from .torque import (
    BrakingDemand,
    TorqueDiagnostics,
    TorqueDistribution,
    TorqueDistributionModel,
    VehicleParameters,
)

logger = logging.getLogger(__name__)

__all__ = [
    "BrakingControlSystem",
    "BrakingPerformanceMetrics",
    "BrakingSystemDiagnostics",
    "MotorTemperatures",
    "SafetyLimits",
    "SystemInputs",
    "SystemOutputs",
]


RoadSurface = Literal["dry", "wet", "snow", "ice"]
Visibility = Literal["clear", "rain", "fog", "snow"]
SystemStatus = Literal["normal", "degraded", "fault"]
ThermalStatus = Literal["normal", "warm", "hot"]

MAX_BRAKING_FORCE = 15_000.0

SURFACE_FACTORS: Mapping[str, float] = MappingProxyType(
    {"dry": 1.0, "wet": 0.9, "snow": 0.7, "ice": 0.5}
)
VISIBILITY_LEVELS = frozenset({"clear", "rain", "fog", "snow"})
POOR_VISIBILITY_FACTOR = 0.95

STABILITY_LATERAL_THRESHOLD = 2.0  # m/s²
STABILITY_YAW_THRESHOLD = 0.5  # rad/s

WARM_MOTOR_TEMPERATURE = 100.0
HOT_MOTOR_TEMPERATURE = 130.0


@dataclass(frozen=True)
class MotorTemperatures:
    """Measured motor temperatures in °C; rear motors are optional."""

    front_left: float
    front_right: float
    rear_left: Optional[float] = None
    rear_right: Optional[float] = None

    def as_mapping(self) -> Mapping[str, float]:
        payload = {"front_left": self.front_left, "front_right": self.front_right}
        if self.rear_left is not None:
            payload["rear_left"] = self.rear_left
        if self.rear_right is not None:
            payload["rear_right"] = self.rear_right
        return payload

    def maximum(self) -> float:
        return max(self.as_mapping().values())


@dataclass(frozen=True)
class SystemInputs:
    """Sensor snapshot for one braking control cycle.

    ``road_gradient`` is expressed in degrees; positive values are uphill.
    """

    vehicle_speed: float
    brake_pedal_position: float
    battery_soc: float
    motor_temperatures: MotorTemperatures
    accelerator_pedal_position: float = 0.0
    steering_angle: float = 0.0
    lateral_acceleration: float = 0.0
    longitudinal_acceleration: float = 0.0
    yaw_rate: float = 0.0
    road_gradient: float = 0.0
    battery_voltage: float = 400.0
    battery_current: float = 0.0
    battery_temperature: float = 25.0
    ambient_temperature: float = 20.0
    road_surface: RoadSurface = "dry"
    visibility: Visibility = "clear"


@dataclass(frozen=True)
class SafetyLimits:
    """Hard limits enforced after torque distribution.

    Parameters
    ----------
    max_regenerative_ratio:
        Upper bound on the regenerative ratio handed to the torque model.
    max_motor_torque:
        Per-motor torque ceiling in N·m.
    max_motor_temperature:
        Temperature at which a motor is considered faulty.
    max_battery_charge_current:
        Charge current ceiling in amperes; regeneration is scaled down to
        respect it at the present battery voltage.
    min_mechanical_ratio:
        Minimum share of friction braking during emergency braking.
    emergency_pedal_threshold:
        Pedal position above which emergency braking is assumed.
    """

    max_regenerative_ratio: float = 0.8
    max_motor_torque: float = 800.0
    max_motor_temperature: float = 150.0
    max_battery_charge_current: float = 200.0
    min_mechanical_ratio: float = 0.2
    emergency_pedal_threshold: float = 0.9


@dataclass(frozen=True)
class BrakingPerformanceMetrics:
    total_braking_force: float
    braking_efficiency: float
    thermal_status: ThermalStatus


@dataclass(frozen=True)
class SystemOutputs:
    """Actuator commands and status for one braking control cycle."""

    motor_torques: Mapping[str, float]
    mechanical_braking_force: float
    regenerative_ratio: float
    regenerated_power: float
    energy_recovery_efficiency: float
    system_status: SystemStatus
    active_warnings: Tuple[str, ...]
    performance_metrics: BrakingPerformanceMetrics
    stability_mode: bool = False

    @property
    def total_motor_torque(self) -> float:
        return math.fsum(self.motor_torques.values())


@dataclass(frozen=True)
class BrakingSystemDiagnostics:
    controller_status: BrakingControllerStatus
    torque_model: TorqueDiagnostics
    system_faults: Tuple[str, ...]
    efficiency_history: Tuple[float, ...]
    average_efficiency: float
    safety_limits: SafetyLimits


def thermal_status(temperature: float) -> ThermalStatus:
    if temperature > HOT_MOTOR_TEMPERATURE:
        return "hot"
    if temperature > WARM_MOTOR_TEMPERATURE:
        return "warm"
    return "normal"


@dataclass
class BrakingControlSystem:
    """Coordinate the fuzzy controller, the torque model and safety limits."""

    vehicle: VehicleParameters = field(default_factory=VehicleParameters)
    safety_limits: SafetyLimits = field(default_factory=SafetyLimits)
    controller: FuzzyBrakingController = field(default_factory=FuzzyBrakingController)
    torque_model: TorqueDistributionModel = field(init=False, repr=False)
    _faults: set[str] = field(init=False, repr=False, default_factory=set)
    _efficiency: RingBuffer[float] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.torque_model = TorqueDistributionModel(self.vehicle)
        self._efficiency = RingBuffer(100)

    # ------------------------------------------------------------------
    def process_control_cycle(self, inputs: SystemInputs) -> SystemOutputs:
        """Run one braking cycle.

        Invalid inputs raise :class:`~ev_regen.errors.InputValidationError`
        before any state changes; hosts should then command
        :meth:`failsafe_outputs`.
        """

        self.validate_inputs(inputs)
        temperatures = inputs.motor_temperatures.as_mapping()
        for motor in self.torque_model.motor_ids:
            if motor in temperatures:
                self.torque_model.update_motor_temperature(motor, temperatures[motor])

        demand = self._braking_demand(inputs)
        hottest = inputs.motor_temperatures.maximum()
        fuzzy = self.controller.calculate_optimal_braking(
            BrakingInputs(
                driving_speed=min(inputs.vehicle_speed, 200.0),
                braking_intensity=inputs.brake_pedal_position,
                battery_soc=inputs.battery_soc,
                motor_temperature=hottest,
            )
        )
        ratio = self._environmental_ratio(fuzzy, inputs)

        stability = (
            abs(inputs.lateral_acceleration) > STABILITY_LATERAL_THRESHOLD
            or abs(inputs.yaw_rate) > STABILITY_YAW_THRESHOLD
        )
        if stability:
            distribution = self.torque_model.calculate_stability_optimized_distribution(
                demand,
                inputs.lateral_acceleration,
                inputs.yaw_rate,
                regen_ratio=ratio,
                battery_soc=inputs.battery_soc,
            )
        else:
            distribution = self.torque_model.calculate_torque_distribution(
                demand, ratio, inputs.battery_soc
            )

        distribution = self._apply_safety_constraints(distribution, inputs)
        self._efficiency.append(distribution.energy_recovery_efficiency)
        outputs = self._system_outputs(distribution, inputs, stability)
        logger.debug(
            "Braking control cycle completed.",
            extra={
                "event": "braking.control_cycle",
                "regenerative_ratio": outputs.regenerative_ratio,
                "regenerated_power": outputs.regenerated_power,
                "system_status": outputs.system_status,
                "stability_mode": stability,
            },
        )
        return outputs

    def failsafe_outputs(self, inputs: SystemInputs) -> SystemOutputs:
        """Safe default after a failed cycle: no regeneration, full friction."""

        pedal = inputs.brake_pedal_position
        if not isinstance(pedal, (int, float)) or not math.isfinite(pedal):
            pedal = 1.0
        pedal = max(0.0, min(1.0, float(pedal)))
        force = pedal * MAX_BRAKING_FORCE
        return SystemOutputs(
            motor_torques=MappingProxyType(
                {motor: 0.0 for motor in self.torque_model.motor_ids}
            ),
            mechanical_braking_force=force,
            regenerative_ratio=0.0,
            regenerated_power=0.0,
            energy_recovery_efficiency=0.0,
            system_status="fault",
            active_warnings=("System fault - failsafe mode active",),
            performance_metrics=BrakingPerformanceMetrics(
                total_braking_force=force,
                braking_efficiency=0.0,
                thermal_status="normal",
            ),
        )

    def update_safety_limits(self, overrides: Mapping[str, Any]) -> SafetyLimits:
        self.safety_limits = merge_dataclass(self.safety_limits, overrides)
        logger.info(
            "Braking safety limits updated.",
            extra={"event": "braking.safety_limits", "fields": sorted(overrides)},
        )
        return self.safety_limits

    def reset_system_faults(self) -> None:
        self._faults.clear()

    def get_system_diagnostics(self) -> BrakingSystemDiagnostics:
        history = tuple(self._efficiency)
        average = math.fsum(history) / len(history) if history else 0.0
        return BrakingSystemDiagnostics(
            controller_status=self.controller.get_system_status(),
            torque_model=self.torque_model.get_diagnostics(),
            system_faults=tuple(sorted(self._faults)),
            efficiency_history=history,
            average_efficiency=average,
            safety_limits=self.safety_limits,
        )

    # ------------------------------------------------------------------
    def validate_inputs(self, inputs: SystemInputs) -> None:
        """Raise :class:`~ev_regen.errors.InputValidationError` for invalid ``inputs``."""

        require_range(
            "vehicle_speed", inputs.vehicle_speed, 0.0, 300.0,
            label="Vehicle speed", unit=" km/h",
        )
        require_range(
            "brake_pedal_position", inputs.brake_pedal_position, 0.0, 1.0,
            label="Brake pedal position",
        )
        require_range(
            "accelerator_pedal_position", inputs.accelerator_pedal_position, 0.0, 1.0,
            label="Accelerator pedal position",
        )
        require_range("battery_soc", inputs.battery_soc, 0.0, 1.0, label="Battery SOC")
        require_range(
            "lateral_acceleration", inputs.lateral_acceleration, -20.0, 20.0,
            label="Lateral acceleration", unit=" m/s²",
        )
        require_range("yaw_rate", inputs.yaw_rate, -5.0, 5.0, label="Yaw rate", unit=" rad/s")
        require_range(
            "road_gradient", inputs.road_gradient, -30.0, 30.0,
            label="Road gradient", unit="°",
        )
        require_range(
            "battery_voltage", inputs.battery_voltage, 0.0, 1_000.0,
            label="Battery voltage", unit=" V",
        )
        require_range(
            "ambient_temperature", inputs.ambient_temperature, -40.0, 60.0,
            label="Ambient temperature", unit="°C",
        )
        for motor, temperature in inputs.motor_temperatures.as_mapping().items():
            require_range(
                f"motor_temperatures.{motor}", temperature, -40.0, 200.0,
                label=f"Motor temperature ({motor})", unit="°C",
            )
        if inputs.road_surface not in SURFACE_FACTORS:
            raise InputValidationError(
                f"Road surface must be one of {', '.join(SURFACE_FACTORS)} "
                f"(got {inputs.road_surface!r})",
                field="road_surface",
                value=inputs.road_surface,
            )
        if inputs.visibility not in VISIBILITY_LEVELS:
            raise InputValidationError(
                f"Visibility must be one of {', '.join(sorted(VISIBILITY_LEVELS))} "
                f"(got {inputs.visibility!r})",
                field="visibility",
                value=inputs.visibility,
            )

    def _braking_demand(self, inputs: SystemInputs) -> BrakingDemand:
        # Downhill slopes add to the force needed; only applied while braking.
        base = inputs.brake_pedal_position * MAX_BRAKING_FORCE
        gradient = math.radians(inputs.road_gradient)
        total = 0.0
        if base > 0.0:
            total = max(0.0, base - math.sin(gradient) * GRAVITY * self.vehicle.mass)
        return BrakingDemand(
            total_braking_force=total,
            braking_intensity=inputs.brake_pedal_position,
            vehicle_speed=inputs.vehicle_speed,
            road_gradient=gradient,
        )

    def _environmental_ratio(self, fuzzy: BrakingOutputs, inputs: SystemInputs) -> float:
        ratio = fuzzy.regenerative_ratio * SURFACE_FACTORS[inputs.road_surface]
        if inputs.visibility != "clear":
            ratio *= POOR_VISIBILITY_FACTOR
        if inputs.ambient_temperature < -10.0:
            ratio *= 0.9
        elif inputs.ambient_temperature > 40.0:
            ratio *= 0.95
        return max(0.0, min(self.safety_limits.max_regenerative_ratio, ratio))

    def _apply_safety_constraints(
        self, distribution: TorqueDistribution, inputs: SystemInputs
    ) -> TorqueDistribution:
        limits = self.safety_limits
        torques = {
            motor: min(torque, limits.max_motor_torque)
            for motor, torque in distribution.motor_torques.items()
        }
        total = distribution.demanded_force
        radius = distribution.wheel_radius

        if inputs.brake_pedal_position > limits.emergency_pedal_threshold and total > 0.0:
            motor_force = math.fsum(torques.values()) / radius
            allowed = total * (1.0 - limits.min_mechanical_ratio)
            if motor_force > allowed > 0.0:
                scale = allowed / motor_force
                torques = {motor: torque * scale for motor, torque in torques.items()}
            elif allowed <= 0.0:
                torques = {motor: 0.0 for motor in torques}

        adjusted = self.torque_model.redistribute(torques, total, inputs.vehicle_speed)
        voltage = inputs.battery_voltage
        if voltage > 0.0 and adjusted.regenerated_power > 0.0:
            current = adjusted.regenerated_power / voltage
            if current > limits.max_battery_charge_current:
                scale = limits.max_battery_charge_current / current
                logger.debug(
                    "Regeneration limited by charge current.",
                    extra={"event": "braking.charge_current_limit", "current": current},
                )
                adjusted = self.torque_model.redistribute(
                    {motor: torque * scale for motor, torque in adjusted.motor_torques.items()},
                    total,
                    inputs.vehicle_speed,
                )
        return adjusted

    def _system_outputs(
        self, distribution: TorqueDistribution, inputs: SystemInputs, stability: bool
    ) -> SystemOutputs:
        hottest = inputs.motor_temperatures.maximum()
        limits = self.safety_limits
        warnings: list[str] = []
        if hottest >= limits.max_motor_temperature:
            self._faults.add("motor_overtemperature")
        status: SystemStatus = "normal"
        if self._faults:
            status = "fault"
            warnings.extend(sorted(self._faults))
        if hottest > limits.max_motor_temperature * 0.9:
            if status != "fault":
                status = "degraded"
            warnings.append("High motor temperature")
        if inputs.battery_soc > 0.95:
            warnings.append("Battery nearly full - reduced regeneration")
        if not 0.0 <= inputs.battery_temperature <= 45.0:
            warnings.append("Battery temperature outside charging window")
        if inputs.road_surface in ("snow", "ice"):
            warnings.append(f"Low-grip surface ({inputs.road_surface}) - regeneration reduced")

        total = distribution.demanded_force
        ratio = distribution.regenerative_force / total if total > 0.0 else 0.0
        return SystemOutputs(
            motor_torques=distribution.motor_torques,
            mechanical_braking_force=distribution.mechanical_braking_force,
            regenerative_ratio=max(0.0, min(1.0, ratio)),
            regenerated_power=distribution.regenerated_power,
            energy_recovery_efficiency=distribution.energy_recovery_efficiency,
            system_status=status,
            active_warnings=tuple(warnings),
            performance_metrics=BrakingPerformanceMetrics(
                total_braking_force=distribution.mechanical_braking_force
                + distribution.regenerative_force,
                braking_efficiency=distribution.energy_recovery_efficiency,
                thermal_status=thermal_status(hottest),
            ),
            stability_mode=stability,
        )
