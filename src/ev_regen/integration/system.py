"""Arbitration between regenerative braking and the regenerative dampers.

:class:`IntegratedDamperSystem` runs the braking control cycle once and the
suspension controller plus damper model once per corner, then reconciles the
two energy sources against a shared budget:

* thermal management derates braking by the hottest motor and each damper by
  its own temperature;
* battery back-off scales both sources down as the state of charge
  approaches the charging threshold;
* the combined power cap preserves the priority source and gives the
  remaining headroom to the other one.

Reduced braking power is handed back to the friction brakes so the braking
force balance is preserved.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

import numpy as np

from ..braking.controller import FuzzyBrakingController
from ..braking.system import (
    BrakingControlSystem,
    BrakingSystemDiagnostics,
    SafetyLimits,
    SystemInputs,
    SystemOutputs,
)
from ..braking.torque import VehicleParameters
from ..common.derating import DeratingCurve
from ..configuration import merge_dataclass
from ..constants import CORNERS
from ..errors import ConfigurationError, InputValidationError
from ..suspension.controller import AdaptiveSuspensionController
from ..suspension.damper import (
    DamperConfiguration,
    DamperConstraints,
    DamperDiagnostics,
    DamperInputs,
    DamperOutputs,
    HydraulicElectromagneticDamper,
)
from ..suspension.types import (
    DRIVING_MODES,
    AdaptiveParameters,
    DrivingMode,
    DrivingPatternData,
    OptimizationObjectives,
    PerformanceDiagnostics,
    PredictiveParameters,
    RoadConditionData,
    SuspensionInputs,
    SuspensionOutputs,
)

logger = logging.getLogger(__name__)

__all__ = [
    "CornerOutputs",
    "EnergyBalance",
    "IntegratedDamperSystem",
    "IntegratedSystemDiagnostics",
    "IntegratedSystemInputs",
    "IntegratedSystemOutputs",
    "SystemConfiguration",
]


MOTOR_THERMAL_DERATING = DeratingCurve.from_pairs(
    ((90.0, 1.0), (150.0, 0.2)), name="integration_motor_thermal"
)
DAMPER_THERMAL_DERATING = DeratingCurve.from_pairs(
    ((60.0, 1.0), (120.0, 0.3)), name="integration_damper_thermal"
)
BATTERY_BACKOFF_WINDOW = 0.15
BATTERY_BACKOFF_FLOOR = 0.1

PUMP_POWER_PER_RPM = 0.05  # W
CONTROL_ELECTRONICS_POWER = 40.0  # W

# Share of damper power that survives the valve; fully open recovers all of it.
VALVE_RECOVERY_BASE = 0.7


@dataclass(frozen=True)
class SystemConfiguration:
    """Arbitration settings of the integrated system.

    Parameters
    ----------
    prioritize_braking_over_damping:
        Preserve regenerative braking power when the combined cap is exceeded.
    max_combined_power:
        Ceiling on braking plus damper power in watts.
    battery_charging_threshold:
        State of charge at which both sources are backed off to the floor.
    thermal_management_enabled:
        Derate sources by component temperature.
    control_period:
        Seconds represented by one cycle when integrating energy and time.
    """

    prioritize_braking_over_damping: bool = True
    max_combined_power: float = 50_000.0
    battery_charging_threshold: float = 0.95
    thermal_management_enabled: bool = True
    control_period: float = 0.01

    def __post_init__(self) -> None:
        if self.max_combined_power <= 0.0:
            raise ConfigurationError("max_combined_power must be positive")
        if not 0.0 <= self.battery_charging_threshold <= 1.0:
            raise ConfigurationError("battery_charging_threshold must lie within [0, 1]")
        if self.control_period <= 0.0:
            raise ConfigurationError("control_period must be positive")

    @property
    def battery_backoff(self) -> DeratingCurve:
        threshold = self.battery_charging_threshold
        return DeratingCurve.from_pairs(
            ((threshold - BATTERY_BACKOFF_WINDOW, 1.0), (threshold, BATTERY_BACKOFF_FLOOR)),
            name="battery_backoff",
        )


@dataclass(frozen=True)
class IntegratedSystemInputs:
    """Vehicle snapshot plus the damper state of every corner."""

    braking: SystemInputs
    suspension_inputs: Mapping[str, DamperInputs]
    driving_mode: DrivingMode = "comfort"
    road_condition: Optional[RoadConditionData] = None
    driving_pattern: Optional[DrivingPatternData] = None


@dataclass(frozen=True)
class EnergyBalance:
    regenerative_braking_power: float
    damper_power: float
    power_consumption: float

    @property
    def total_generated_power(self) -> float:
        return self.regenerative_braking_power + self.damper_power

    @property
    def net_power(self) -> float:
        return self.total_generated_power - self.power_consumption


@dataclass(frozen=True)
class CornerOutputs:
    suspension: SuspensionOutputs
    damper: DamperOutputs
    harvested_power: float
    thermal_factor: float


@dataclass(frozen=True)
class IntegratedSystemOutputs:
    braking: SystemOutputs
    corners: Mapping[str, CornerOutputs]
    energy_balance: EnergyBalance
    combined_energy_efficiency: float
    braking_thermal_factor: float
    battery_backoff_factor: float
    power_limited: bool
    warnings: Tuple[str, ...]


@dataclass(frozen=True)
class IntegratedSystemDiagnostics:
    total_system_energy: float
    operation_time: float
    cycles: int
    power_limit_events: int
    thermal_derating_events: int
    battery_backoff_events: int
    configuration: SystemConfiguration
    braking: BrakingSystemDiagnostics
    dampers: Mapping[str, DamperDiagnostics]
    suspension: Mapping[str, PerformanceDiagnostics]


def _scale_braking(outputs: SystemOutputs, power: float, wheel_radius: float) -> SystemOutputs:
    """Reduce regeneration to ``power`` and hand the shed force to friction."""

    if outputs.regenerated_power <= 0.0 or power >= outputs.regenerated_power:
        return outputs
    scale = power / outputs.regenerated_power
    torques = {motor: torque * scale for motor, torque in outputs.motor_torques.items()}
    shed_force = (1.0 - scale) * outputs.total_motor_torque / wheel_radius
    return replace(
        outputs,
        motor_torques=MappingProxyType(torques),
        mechanical_braking_force=outputs.mechanical_braking_force + shed_force,
        regenerative_ratio=outputs.regenerative_ratio * scale,
        regenerated_power=power,
    )


def _fit_under(limit: float, values: Dict[str, float]) -> Dict[str, float]:
    """Scale ``values`` proportionally so their sum does not exceed ``limit``."""

    total = math.fsum(values.values())
    if total <= limit:
        return dict(values)
    if limit <= 0.0 or total <= 0.0:
        return {key: 0.0 for key in values}
    scale = limit / total
    scaled = {key: value * scale for key, value in values.items()}
    # Rounding can leave the sum an ulp above the limit.
    while math.fsum(scaled.values()) > limit and scale > 0.0:
        scale = float(np.nextafter(scale, 0.0))
        scaled = {key: value * scale for key, value in values.items()}
    return scaled


@dataclass
class IntegratedDamperSystem:
    """Braking and four regenerative dampers under one power budget."""

    vehicle: VehicleParameters = field(default_factory=VehicleParameters)
    config: SystemConfiguration = field(default_factory=SystemConfiguration)
    damper_config: DamperConfiguration = field(default_factory=DamperConfiguration)
    damper_constraints: DamperConstraints = field(default_factory=DamperConstraints)
    adaptive: AdaptiveParameters = field(default_factory=AdaptiveParameters)
    predictive: PredictiveParameters = field(default_factory=PredictiveParameters)
    objectives: OptimizationObjectives = field(default_factory=OptimizationObjectives)
    safety_limits: SafetyLimits = field(default_factory=SafetyLimits)
    braking_system: BrakingControlSystem = field(init=False, repr=False)
    suspension_controllers: Dict[str, AdaptiveSuspensionController] = field(
        init=False, repr=False
    )
    dampers: Dict[str, HydraulicElectromagneticDamper] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.braking_system = BrakingControlSystem(
            vehicle=self.vehicle,
            safety_limits=self.safety_limits,
            controller=FuzzyBrakingController(),
        )
        self.suspension_controllers = {
            corner: AdaptiveSuspensionController(
                adaptive=self.adaptive,
                predictive=self.predictive,
                objectives=self.objectives,
            )
            for corner in CORNERS
        }
        self.dampers = {
            corner: HydraulicElectromagneticDamper(
                config=self.damper_config, constraints=self.damper_constraints
            )
            for corner in CORNERS
        }
        self.reset_system_statistics()

    # ------------------------------------------------------------------
    def calculate_integrated_performance(
        self, inputs: IntegratedSystemInputs
    ) -> IntegratedSystemOutputs:
        """Run one integrated cycle.

        Every component validates its inputs before any of them mutates its
        state, so a rejected cycle leaves the whole system untouched.
        """

        suspension_inputs = self._validate(inputs)
        config = self.config
        braking = self.braking_system.process_control_cycle(inputs.braking)

        corners: Dict[str, Tuple[SuspensionOutputs, DamperOutputs]] = {}
        raw_damper: Dict[str, float] = {}
        for corner in CORNERS:
            suspension = self.suspension_controllers[corner].calculate_advanced_optimal_control(
                suspension_inputs[corner], inputs.road_condition, inputs.driving_pattern
            )
            damper = self.dampers[corner].calculate_damper_performance(
                inputs.suspension_inputs[corner]
            )
            corners[corner] = (suspension, damper)
            valve_share = VALVE_RECOVERY_BASE + (1.0 - VALVE_RECOVERY_BASE) * (
                suspension.valve_position
            )
            raw_damper[corner] = damper.generated_power * valve_share

        braking_thermal = 1.0
        damper_thermal = {corner: 1.0 for corner in CORNERS}
        if config.thermal_management_enabled:
            braking_thermal = MOTOR_THERMAL_DERATING.factor(
                inputs.braking.motor_temperatures.maximum()
            )
            damper_thermal = {
                corner: DAMPER_THERMAL_DERATING.factor(
                    inputs.suspension_inputs[corner].damper_temperature
                )
                for corner in CORNERS
            }
            hottest_damper = max(
                inputs.suspension_inputs[corner].damper_temperature for corner in CORNERS
            )
            if MOTOR_THERMAL_DERATING.is_derating(
                inputs.braking.motor_temperatures.maximum()
            ) or DAMPER_THERMAL_DERATING.is_derating(hottest_damper):
                self._thermal_events += 1

        backoff = config.battery_backoff.factor(inputs.braking.battery_soc)
        if backoff < 1.0:
            self._backoff_events += 1

        braking_power = braking.regenerated_power * braking_thermal * backoff
        damper_power = {
            corner: raw_damper[corner] * damper_thermal[corner] * backoff for corner in CORNERS
        }
        braking_power, damper_power, limited = self._apply_power_cap(braking_power, damper_power)

        braking = _scale_braking(braking, braking_power, self.vehicle.wheel_radius)

        damper_total = math.fsum(damper_power.values())
        consumption = CONTROL_ELECTRONICS_POWER + PUMP_POWER_PER_RPM * math.fsum(
            suspension.pump_speed for suspension, _ in corners.values()
        )
        balance = EnergyBalance(
            regenerative_braking_power=braking.regenerated_power,
            damper_power=damper_total,
            power_consumption=consumption,
        )

        total = balance.total_generated_power
        efficiency = 0.0
        if total > 0.0:
            weighted = braking.regenerated_power * braking.energy_recovery_efficiency
            weighted += math.fsum(
                damper_power[corner] * corners[corner][1].energy_efficiency for corner in CORNERS
            )
            efficiency = max(0.0, min(1.0, weighted / total))

        warnings = list(braking.active_warnings)
        if limited:
            warnings.append(f"Combined power limited to {config.max_combined_power:g} W")
        if backoff < 1.0:
            warnings.append("Battery near charging threshold - recovery backed off")

        self._cycles += 1
        self._operation_time += config.control_period
        self._total_energy += total * config.control_period

        outputs = IntegratedSystemOutputs(
            braking=braking,
            corners=MappingProxyType(
                {
                    corner: CornerOutputs(
                        suspension=corners[corner][0],
                        damper=corners[corner][1],
                        harvested_power=damper_power[corner],
                        thermal_factor=damper_thermal[corner],
                    )
                    for corner in CORNERS
                }
            ),
            energy_balance=balance,
            combined_energy_efficiency=efficiency,
            braking_thermal_factor=braking_thermal,
            battery_backoff_factor=backoff,
            power_limited=limited,
            warnings=tuple(warnings),
        )
        logger.debug(
            "Integrated cycle completed.",
            extra={
                "event": "integration.cycle",
                "regenerative_braking_power": balance.regenerative_braking_power,
                "damper_power": balance.damper_power,
                "power_limited": limited,
            },
        )
        return outputs

    def update_system_configuration(self, overrides: Mapping[str, Any]) -> SystemConfiguration:
        """Merge ``overrides`` into the arbitration settings."""

        self.config = merge_dataclass(self.config, overrides)
        logger.info(
            "Integrated system configuration updated.",
            extra={"event": "integration.configuration", "fields": sorted(overrides)},
        )
        return self.config

    def get_system_diagnostics(self) -> IntegratedSystemDiagnostics:
        return IntegratedSystemDiagnostics(
            total_system_energy=self._total_energy,
            operation_time=self._operation_time,
            cycles=self._cycles,
            power_limit_events=self._power_limit_events,
            thermal_derating_events=self._thermal_events,
            battery_backoff_events=self._backoff_events,
            configuration=self.config,
            braking=self.braking_system.get_system_diagnostics(),
            dampers=MappingProxyType(
                {corner: damper.get_diagnostics() for corner, damper in self.dampers.items()}
            ),
            suspension=MappingProxyType(
                {
                    corner: controller.get_performance_diagnostics()
                    for corner, controller in self.suspension_controllers.items()
                }
            ),
        )

    def reset_system_statistics(self) -> None:
        self._total_energy = 0.0
        self._operation_time = 0.0
        self._cycles = 0
        self._power_limit_events = 0
        self._thermal_events = 0
        self._backoff_events = 0
        for damper in self.dampers.values():
            damper.reset_statistics()
        self.braking_system.torque_model.reset_diagnostics()

    # ------------------------------------------------------------------
    def _validate(self, inputs: IntegratedSystemInputs) -> Dict[str, SuspensionInputs]:
        missing = [corner for corner in CORNERS if corner not in inputs.suspension_inputs]
        if missing:
            raise InputValidationError(
                "Suspension inputs missing for corners: " + ", ".join(missing),
                field="suspension_inputs",
                value=sorted(inputs.suspension_inputs),
            )
        if inputs.driving_mode not in DRIVING_MODES:
            raise InputValidationError(
                f"Unknown driving mode '{inputs.driving_mode}'; expected one of: "
                + ", ".join(DRIVING_MODES),
                field="driving_mode",
                value=inputs.driving_mode,
            )
        self.braking_system.validate_inputs(inputs.braking)
        suspension_inputs: Dict[str, SuspensionInputs] = {}
        for corner in CORNERS:
            damper_inputs = inputs.suspension_inputs[corner]
            self.dampers[corner].validate_inputs(damper_inputs)
            suspension_inputs[corner] = self._suspension_inputs(inputs, damper_inputs)
            self.suspension_controllers[corner].validate_inputs(
                suspension_inputs[corner], inputs.road_condition, inputs.driving_pattern
            )
        return suspension_inputs

    def _suspension_inputs(
        self, inputs: IntegratedSystemInputs, damper: DamperInputs
    ) -> SuspensionInputs:
        braking = inputs.braking
        return SuspensionInputs(
            vehicle_speed=damper.vehicle_speed,
            suspension_velocity=damper.compression_velocity,
            road_roughness=damper.road_roughness,
            energy_storage_level=braking.battery_soc,
            vertical_acceleration=braking.longitudinal_acceleration,
            suspension_displacement=damper.displacement,
            road_gradient=braking.road_gradient,
            acceleration_pattern=braking.accelerator_pedal_position,
            braking_pattern=braking.brake_pedal_position,
            cornering_pattern=min(1.0, abs(braking.lateral_acceleration) / 10.0),
            driving_mode=inputs.driving_mode,
            fluid_temperature=damper.damper_temperature,
            ambient_temperature=braking.ambient_temperature,
            vehicle_load=self.vehicle.mass * damper.load_factor / len(CORNERS),
        )

    def _apply_power_cap(
        self, braking_power: float, damper_power: Dict[str, float]
    ) -> Tuple[float, Dict[str, float], bool]:
        cap = self.config.max_combined_power
        if braking_power + math.fsum(damper_power.values()) <= cap:
            return braking_power, damper_power, False

        if self.config.prioritize_braking_over_damping:
            braking_power = min(braking_power, cap)
            damper_power = _fit_under(cap - braking_power, damper_power)
        else:
            damper_power = _fit_under(cap, damper_power)
            braking_power = max(0.0, min(braking_power, cap - math.fsum(damper_power.values())))
        # Guard against the last ulp when the split lands exactly on the cap.
        while braking_power + math.fsum(damper_power.values()) > cap and braking_power > 0.0:
            braking_power = float(np.nextafter(braking_power, 0.0))

        self._power_limit_events += 1
        logger.debug(
            "Combined power limited.",
            extra={
                "event": "integration.power_cap",
                "max_combined_power": cap,
                "braking_power": braking_power,
                "damper_power": math.fsum(damper_power.values()),
            },
        )
        return braking_power, damper_power, True
