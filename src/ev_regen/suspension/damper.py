"""Physical model of a hydraulic damper with an electromagnetic generator.

Fluid displaced by the damper piston drives a hydraulic motor coupled to a
permanent-magnet generator. The generator load adds an electromagnetic
damping force proportional to the compression velocity, and the electrical
power it produces is what the vehicle harvests. The hydraulic circuit
contributes the remaining damping force, shaped by the piston velocity, the
displacement, the vehicle load and the road roughness.

Power flows through a rectifier, so compression and extension both produce
positive power; only the magnitude of the velocity matters.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Any, Mapping

from ..common.derating import DeratingCurve
from ..configuration import merge_dataclass
from ..validation import require_range

logger = logging.getLogger(__name__)

__all__ = [
    "DamperConfiguration",
    "DamperConstraints",
    "DamperDiagnostics",
    "DamperInputs",
    "DamperOutputs",
    "HydraulicElectromagneticDamper",
]


# Charge acceptance of the battery as it fills up.
SOC_CHARGE_ACCEPTANCE = DeratingCurve.from_pairs(
    ((0.6, 1.0), (0.85, 0.5), (0.95, 0.1), (1.0, 0.05)),
    name="damper_soc_acceptance",
)

OPTIMAL_VELOCITY = 0.5  # m/s
HYDRAULIC_VELOCITY_GAIN = 1_000.0
HYDRAULIC_VELOCITY_EXPONENT = 1.8
HYDRAULIC_SPRING_RATE = 25_000.0  # N/m
DYNAMIC_PRESSURE_GAIN = 500.0
HYDRAULIC_FRICTION_LOSS = 100.0  # W per m/s


@dataclass(frozen=True)
class DamperInputs:
    """Kinematic and electrical state of one damper.

    ``compression_velocity`` is positive in compression and negative in
    extension.
    """

    compression_velocity: float
    displacement: float
    vehicle_speed: float
    road_roughness: float
    damper_temperature: float
    battery_soc: float
    load_factor: float


@dataclass(frozen=True)
class DamperOutputs:
    generated_power: float
    damping_force: float
    energy_efficiency: float
    electromagnetic_force: float
    hydraulic_pressure: float
    system_temperature: float
    harvested_energy: float


@dataclass(frozen=True)
class DamperConfiguration:
    """Electrical and hydraulic properties of the damper.

    Parameters
    ----------
    max_damping_force:
        Ceiling on the total damping force (N).
    max_electromagnetic_force:
        Ceiling on the generator reaction force (N).
    coil_resistance:
        Generator winding resistance (Ω).
    magnetic_flux_density:
        Air-gap flux density of the permanent magnets (T).
    coil_length:
        Effective conductor length per turn inside the field (m).
    coil_turns:
        Number of turns in the generator winding.
    motion_ratio:
        Hydraulic amplification between piston velocity and conductor velocity.
    cylinder_diameter:
        Piston diameter (m) used for the pressure estimate.
    max_operating_temperature:
        Temperature at which thermal protection cuts output to
        ``protection_factor``.
    conversion_efficiency:
        Share of the generator's mechanical input delivered as electrical power.
    thermal_capacity:
        Heat capacity (J/K) used for the per-cycle temperature rise.
    integration_interval:
        Control period (s) used to integrate harvested energy.
    """

    max_damping_force: float = 8_000.0
    max_electromagnetic_force: float = 2_000.0
    coil_resistance: float = 0.5
    magnetic_flux_density: float = 1.2
    coil_length: float = 0.15
    coil_turns: float = 50.0
    motion_ratio: float = 3.5
    cylinder_diameter: float = 0.05
    max_operating_temperature: float = 120.0
    conversion_efficiency: float = 0.85
    thermal_capacity: float = 1_000.0
    integration_interval: float = 0.01

    @property
    def electromagnetic_damping(self) -> float:
        """Generator damping coefficient (N·s/m) at the piston."""

        gain = (
            self.magnetic_flux_density * self.coil_length * self.coil_turns * self.motion_ratio
        )
        return gain * gain / self.coil_resistance


@dataclass(frozen=True)
class DamperConstraints:
    max_compression_velocity: float = 2.0
    max_extension_velocity: float = 2.0
    max_displacement: float = 0.15
    min_displacement: float = -0.15
    max_power_output: float = 1_500.0
    temperature_derating_threshold: float = 100.0
    protection_factor: float = 0.1


@dataclass(frozen=True)
class DamperDiagnostics:
    total_energy_harvested: float
    operation_cycles: int
    average_energy_per_cycle: float
    thermal_protection_events: int
    last_calculation_time: float
    configuration: DamperConfiguration
    constraints: DamperConstraints


def velocity_scaling(velocity: float) -> float:
    """Generator effectiveness relative to its optimal piston velocity."""

    if velocity < OPTIMAL_VELOCITY:
        return velocity / OPTIMAL_VELOCITY
    return max(0.3, 1.0 - (velocity - OPTIMAL_VELOCITY) * 0.2)


@dataclass
class HydraulicElectromagneticDamper:
    """Stateless damper model with cumulative energy counters."""

    config: DamperConfiguration = field(default_factory=DamperConfiguration)
    constraints: DamperConstraints = field(default_factory=DamperConstraints)
    _thermal_curve: DeratingCurve = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._rebuild_thermal_curve()
        self.reset_statistics()

    def reset_statistics(self) -> None:
        self._total_energy = 0.0
        self._cycles = 0
        self._protection_events = 0
        self._last_calculation_time = 0.0

    def update_configuration(self, overrides: Mapping[str, Any]) -> DamperConfiguration:
        self.config = merge_dataclass(self.config, overrides)
        self._rebuild_thermal_curve()
        logger.info(
            "Damper configuration updated.",
            extra={"event": "damper.configuration", "fields": sorted(overrides)},
        )
        return self.config

    def update_constraints(self, overrides: Mapping[str, Any]) -> DamperConstraints:
        self.constraints = merge_dataclass(self.constraints, overrides)
        self._rebuild_thermal_curve()
        logger.info(
            "Damper constraints updated.",
            extra={"event": "damper.constraints", "fields": sorted(overrides)},
        )
        return self.constraints

    def calculate_damper_performance(self, inputs: DamperInputs) -> DamperOutputs:
        """Return generated power, forces and thermal state for ``inputs``."""

        velocity, displacement = self.validate_inputs(inputs)
        speed = float(inputs.vehicle_speed)
        roughness = float(inputs.road_roughness)
        temperature = float(inputs.damper_temperature)
        soc = float(inputs.battery_soc)
        load = float(inputs.load_factor)
        magnitude = abs(velocity)

        config = self.config
        electromagnetic = (
            config.electromagnetic_damping * magnitude * velocity_scaling(magnitude)
        )
        electromagnetic = min(electromagnetic, config.max_electromagnetic_force)

        hydraulic = (
            math.copysign(magnitude ** HYDRAULIC_VELOCITY_EXPONENT, velocity)
            * HYDRAULIC_VELOCITY_GAIN
            + displacement * HYDRAULIC_SPRING_RATE
        )
        hydraulic = abs(hydraulic * (1.0 + 0.3 * load) * (1.0 + 0.2 * roughness))

        mechanical_input = electromagnetic * magnitude
        power = (
            mechanical_input
            * config.conversion_efficiency
            * SOC_CHARGE_ACCEPTANCE.factor(soc)
            * self._thermal_curve.factor(temperature)
        )
        power = min(power, self.constraints.max_power_output)

        losses = power * (1.0 - config.conversion_efficiency) + magnitude * HYDRAULIC_FRICTION_LOSS
        cooling = min(speed / 100.0, 1.0)
        system_temperature = temperature + losses / config.thermal_capacity * (1.0 - 0.3 * cooling)

        if system_temperature > config.max_operating_temperature:
            self._protection_events += 1
            power *= self.constraints.protection_factor
            electromagnetic *= self.constraints.protection_factor
            logger.debug(
                "Damper thermal protection engaged.",
                extra={
                    "event": "damper.thermal_protection",
                    "system_temperature": system_temperature,
                },
            )

        efficiency = 0.0
        if mechanical_input > 0.0:
            efficiency = power / mechanical_input * self._operating_efficiency(
                temperature, roughness, speed
            )

        area = math.pi * (config.cylinder_diameter / 2.0) ** 2
        pressure = hydraulic / area + magnitude * magnitude * DYNAMIC_PRESSURE_GAIN

        power = max(0.0, power)
        outputs = DamperOutputs(
            generated_power=power,
            damping_force=max(0.0, min(hydraulic + electromagnetic, config.max_damping_force)),
            energy_efficiency=max(0.0, min(1.0, efficiency)),
            electromagnetic_force=max(0.0, electromagnetic),
            hydraulic_pressure=pressure,
            system_temperature=system_temperature,
            harvested_energy=power * config.integration_interval,
        )
        self._cycles += 1
        self._total_energy += outputs.harvested_energy
        self._last_calculation_time = time.time()
        return outputs

    def get_diagnostics(self) -> DamperDiagnostics:
        average = self._total_energy / self._cycles if self._cycles else 0.0
        return DamperDiagnostics(
            total_energy_harvested=self._total_energy,
            operation_cycles=self._cycles,
            average_energy_per_cycle=average,
            thermal_protection_events=self._protection_events,
            last_calculation_time=self._last_calculation_time,
            configuration=self.config,
            constraints=self.constraints,
        )

    # ------------------------------------------------------------------
    def _rebuild_thermal_curve(self) -> None:
        threshold = self.constraints.temperature_derating_threshold
        limit = max(self.config.max_operating_temperature, threshold + 1.0)
        self._thermal_curve = DeratingCurve.from_pairs(
            ((threshold, 1.0), (limit, self.constraints.protection_factor)),
            name="damper_thermal",
        )

    @staticmethod
    def _operating_efficiency(temperature: float, roughness: float, speed: float) -> float:
        efficiency = 1.0
        if temperature > 80.0:
            efficiency *= 0.95
        elif temperature < 0.0:
            efficiency *= 0.9
        efficiency *= 1.0 - roughness * 0.1
        if speed > 120.0:
            efficiency *= 0.98
        return max(0.5, efficiency)

    def validate_inputs(self, inputs: DamperInputs) -> tuple[float, float]:
        """Return the validated velocity and displacement of ``inputs``."""

        constraints = self.constraints
        velocity = require_range(
            "compression_velocity", inputs.compression_velocity,
            -constraints.max_extension_velocity, constraints.max_compression_velocity,
            label="Compression velocity", unit=" m/s",
        )
        displacement = require_range(
            "displacement", inputs.displacement,
            constraints.min_displacement, constraints.max_displacement,
            label="Displacement", unit=" m",
        )
        require_range(
            "vehicle_speed", inputs.vehicle_speed, 0.0, 300.0,
            label="Vehicle speed", unit=" km/h",
        )
        require_range(
            "road_roughness", inputs.road_roughness, 0.0, 1.0, label="Road roughness"
        )
        require_range("battery_soc", inputs.battery_soc, 0.0, 1.0, label="Battery SOC")
        require_range("load_factor", inputs.load_factor, 0.0, 1.0, label="Load factor")
        require_range(
            "damper_temperature", inputs.damper_temperature, -40.0, 200.0,
            label="Damper temperature", unit="°C",
        )
        return velocity, displacement
