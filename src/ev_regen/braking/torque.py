"""Per-motor distribution of regenerative braking torque.

The model splits the regenerative share of a braking demand across the
drive motors, proportionally to the static axle load, and limits every motor
in turn by its torque ceiling, its power ceiling at the current wheel speed,
its thermal derating and the battery's charge acceptance. Whatever the motors
cannot absorb is handed to the friction brakes, so the two always add up to
the demanded force.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple

from ..common.derating import DeratingCurve
from ..common.ring_buffer import RingBuffer
from ..constants import FRONT_CORNERS, KMH_TO_MS, REAR_CORNERS, motor_layout
from ..errors import MotorNotFoundError
from ..validation import require_non_negative, require_range

logger = logging.getLogger(__name__)

__all__ = [
    "BrakingDemand",
    "MotorConstraints",
    "MotorStatus",
    "TorqueDiagnostics",
    "TorqueDistribution",
    "TorqueDistributionModel",
    "VehicleParameters",
    "speed_recovery_factor",
]


OPTIMAL_RECOVERY_SPEED = 15.0  # m/s
STABILITY_LATERAL_REFERENCE = 5.0  # m/s²
STABILITY_MAX_REDUCTION = 0.3
STABILITY_YAW_REFERENCE = 1.0  # rad/s


@dataclass(frozen=True)
class VehicleParameters:
    """Static vehicle description consumed by the torque model.

    Parameters
    ----------
    mass:
        Vehicle mass in kilograms.
    front_axle_weight_ratio:
        Share of the static load carried by the front axle.
    wheel_radius:
        Effective rolling radius in metres.
    motor_count:
        Number of drive motors, either two (front axle) or four (one per wheel).
    max_motor_torque:
        Continuous torque ceiling per motor in N·m.
    motor_efficiency:
        Electrical conversion efficiency of the motors when generating.
    transmission_ratio:
        Gear ratio between motor and wheel.
    """

    mass: float = 1800.0
    front_axle_weight_ratio: float = 0.6
    wheel_radius: float = 0.35
    motor_count: int = 2
    max_motor_torque: float = 400.0
    motor_efficiency: float = 0.92
    transmission_ratio: float = 1.0

    def __post_init__(self) -> None:
        motor_layout(self.motor_count)
        if not 0.0 <= self.front_axle_weight_ratio <= 1.0:
            raise ValueError("front_axle_weight_ratio must lie within [0, 1]")
        if self.wheel_radius <= 0.0:
            raise ValueError("wheel_radius must be positive")
        if self.mass <= 0.0:
            raise ValueError("mass must be positive")


@dataclass(frozen=True)
class MotorConstraints:
    """Limits applied to every motor.

    ``thermal_derating`` holds ``(temperature, factor)`` breakpoints; the
    default keeps full torque up to 135 °C and collapses to 10 % at 150 °C.
    """

    max_power: float = 40_000.0
    max_speed: float = 3_000.0  # rpm
    thermal_limit: float = 150.0
    thermal_derating: Tuple[Tuple[float, float], ...] = (
        (135.0, 1.0),
        (150.0, 0.1),
    )
    high_soc_threshold: float = 0.9
    high_soc_max_reduction: float = 0.8


@dataclass(frozen=True)
class MotorStatus:
    motor_id: str
    max_torque: float
    max_power: float
    thermal_limit: float
    current_temperature: float
    derating_factor: float


@dataclass(frozen=True)
class BrakingDemand:
    """Braking request for a single cycle.

    ``vehicle_speed`` is in km/h and ``road_gradient`` in radians.
    """

    total_braking_force: float
    braking_intensity: float
    vehicle_speed: float
    road_gradient: float = 0.0


@dataclass(frozen=True)
class TorqueDistribution:
    """Torque command per motor plus the friction-brake make-up."""

    motor_torques: Mapping[str, float]
    mechanical_braking_force: float
    regenerated_power: float
    energy_recovery_efficiency: float
    demanded_force: float
    wheel_radius: float

    @property
    def front_left(self) -> float:
        return self.motor_torques.get("front_left", 0.0)

    @property
    def front_right(self) -> float:
        return self.motor_torques.get("front_right", 0.0)

    @property
    def rear_left(self) -> Optional[float]:
        return self.motor_torques.get("rear_left")

    @property
    def rear_right(self) -> Optional[float]:
        return self.motor_torques.get("rear_right")

    @property
    def total_motor_torque(self) -> float:
        return math.fsum(self.motor_torques.values())

    @property
    def regenerative_force(self) -> float:
        return self.total_motor_torque / self.wheel_radius


@dataclass(frozen=True)
class TorqueDiagnostics:
    vehicle_parameters: VehicleParameters
    motors: Mapping[str, MotorStatus]
    cycles: int
    torque_limited_cycles: int
    power_limited_cycles: int
    thermally_derated_cycles: int
    system_health: str


def speed_recovery_factor(speed: float) -> float:
    """Return the recovery efficiency factor for ``speed`` in m/s.

    Recovery peaks at :data:`OPTIMAL_RECOVERY_SPEED` and degrades towards
    standstill (weak back-EMF) and at high speed (field weakening losses).
    """

    if speed <= 0.0:
        return 0.0
    if speed < OPTIMAL_RECOVERY_SPEED:
        return 0.5 + 0.5 * speed / OPTIMAL_RECOVERY_SPEED
    return max(0.3, 1.0 / math.sqrt(speed / OPTIMAL_RECOVERY_SPEED))


class TorqueDistributionModel:
    """Distribute regenerative torque across the configured motors."""

    def __init__(
        self,
        vehicle: VehicleParameters | None = None,
        constraints: MotorConstraints | None = None,
    ) -> None:
        self.vehicle = vehicle or VehicleParameters()
        self.constraints = constraints or MotorConstraints()
        self._motor_ids = motor_layout(self.vehicle.motor_count)
        self._thermal_curve = DeratingCurve.from_pairs(
            self.constraints.thermal_derating, name="motor_thermal"
        )
        self._temperatures: Dict[str, float] = {motor: 25.0 for motor in self._motor_ids}
        self.reset_diagnostics()

    @property
    def motor_ids(self) -> Tuple[str, ...]:
        return self._motor_ids

    def reset_diagnostics(self) -> None:
        self._cycles = 0
        self._torque_limited = 0
        self._power_limited = 0
        self._thermally_derated = 0
        self._recent_saturation: RingBuffer[bool] = RingBuffer(100)

    # ------------------------------------------------------------------
    # motor temperature feed
    def update_motor_temperature(self, motor_id: str, temperature: float) -> None:
        """Record the measured temperature of ``motor_id`` in °C."""

        if motor_id not in self._temperatures:
            raise MotorNotFoundError(motor_id, known=self._motor_ids)
        self._temperatures[motor_id] = require_range(
            "motor_temperature", temperature, -40.0, 200.0,
            label="Motor temperature", unit="°C",
        )

    def get_motor_status(self, motor_id: str) -> Optional[MotorStatus]:
        """Return the status of ``motor_id`` or ``None`` when unknown."""

        temperature = self._temperatures.get(motor_id)
        if temperature is None:
            return None
        return MotorStatus(
            motor_id=motor_id,
            max_torque=self.vehicle.max_motor_torque,
            max_power=self.constraints.max_power,
            thermal_limit=self.constraints.thermal_limit,
            current_temperature=temperature,
            derating_factor=self._thermal_curve.factor(temperature),
        )

    # ------------------------------------------------------------------
    # distribution
    def calculate_torque_distribution(
        self, demand: BrakingDemand, regen_ratio: float, battery_soc: float
    ) -> TorqueDistribution:
        """Split ``demand`` between motors and friction brakes."""

        total, speed = self._validate_demand(demand)
        ratio = require_range(
            "regen_ratio", regen_ratio, 0.0, 1.0, label="Regenerative ratio"
        )
        soc = require_range("battery_soc", battery_soc, 0.0, 1.0, label="Battery SOC")

        radius = self.vehicle.wheel_radius
        speed_ms = speed * KMH_TO_MS
        wheel_speed = speed_ms / radius

        requested: Dict[str, float] = {motor: 0.0 for motor in self._motor_ids}
        if total > 0.0 and ratio > 0.0 and speed_ms > 0.0:
            regen_force = total * ratio
            front_share = self.vehicle.front_axle_weight_ratio
            for motor in FRONT_CORNERS:
                requested[motor] = regen_force * front_share / 2.0 * radius
            if self.vehicle.motor_count == 4:
                for motor in REAR_CORNERS:
                    requested[motor] = regen_force * (1.0 - front_share) / 2.0 * radius

        soc_factor = 1.0
        if soc > self.constraints.high_soc_threshold:
            span = 1.0 - self.constraints.high_soc_threshold
            excess = (soc - self.constraints.high_soc_threshold) / span if span > 0 else 1.0
            soc_factor = 1.0 - self.constraints.high_soc_max_reduction * min(1.0, excess)

        torques: Dict[str, float] = {}
        torque_limited = power_limited = derated = False
        for motor in self._motor_ids:
            wanted = requested[motor]
            if wanted <= 0.0:
                torques[motor] = 0.0
                continue
            available = self.vehicle.max_motor_torque
            if wanted > available:
                torque_limited = True
            power_ceiling = self._power_limited_torque(wheel_speed)
            if power_ceiling < min(wanted, available):
                power_limited = True
            available = min(available, power_ceiling)
            thermal = self._thermal_curve.factor(self._temperatures[motor])
            if thermal < 1.0:
                derated = True
            available *= thermal * soc_factor
            torques[motor] = max(0.0, min(wanted, available))

        distribution = self._assemble(torques, total, speed_ms)
        self._record(torque_limited, power_limited, derated)
        logger.debug(
            "Torque distribution computed.",
            extra={
                "event": "torque.distribution",
                "total_motor_torque": distribution.total_motor_torque,
                "mechanical_force": distribution.mechanical_braking_force,
                "torque_limited": torque_limited,
                "power_limited": power_limited,
                "thermally_derated": derated,
            },
        )
        return distribution

    def calculate_stability_optimized_distribution(
        self,
        demand: BrakingDemand,
        lateral_acceleration: float,
        yaw_rate: float,
        *,
        regen_ratio: float = 0.7,
        battery_soc: float = 0.5,
    ) -> TorqueDistribution:
        """Distribution that relieves the outer wheels while cornering.

        Positive lateral acceleration denotes a left-hand turn, so the right
        side is the outer one. The reduction grows with lateral acceleration
        (saturating at 5 m/s²) and is amplified by the yaw rate; straight-line
        braking keeps left and right torques equal.
        """

        lateral = require_range(
            "lateral_acceleration", lateral_acceleration, -20.0, 20.0,
            label="Lateral acceleration", unit=" m/s²",
        )
        yaw = require_range(
            "yaw_rate", yaw_rate, -5.0, 5.0, label="Yaw rate", unit=" rad/s"
        )
        base = self.calculate_torque_distribution(demand, regen_ratio, battery_soc)
        if lateral == 0.0:
            return base

        lateral_factor = min(abs(lateral) / STABILITY_LATERAL_REFERENCE, 1.0)
        yaw_gain = 1.0 + 0.5 * min(abs(yaw) / STABILITY_YAW_REFERENCE, 1.0)
        reduction = min(0.9, STABILITY_MAX_REDUCTION * lateral_factor * yaw_gain)
        outer_side = "right" if lateral > 0.0 else "left"

        torques = dict(base.motor_torques)
        for motor in torques:
            if motor.endswith(outer_side):
                torques[motor] *= 1.0 - reduction
        logger.debug(
            "Outer wheel torque reduced for stability.",
            extra={
                "event": "torque.stability",
                "outer_side": outer_side,
                "reduction": reduction,
            },
        )
        return self.redistribute(torques, base.demanded_force, demand.vehicle_speed)

    def redistribute(
        self, torques: Mapping[str, float], demanded_force: float, vehicle_speed: float
    ) -> TorqueDistribution:
        """Rebuild a distribution from adjusted motor ``torques``.

        Friction braking, power and efficiency are recomputed so the result
        still reconstructs ``demanded_force``.
        """

        unknown = set(torques) - set(self._motor_ids)
        if unknown:
            raise MotorNotFoundError(sorted(unknown)[0], known=self._motor_ids)
        clean = {motor: max(0.0, float(torques.get(motor, 0.0))) for motor in self._motor_ids}
        return self._assemble(clean, demanded_force, vehicle_speed * KMH_TO_MS)

    # ------------------------------------------------------------------
    # diagnostics
    def get_diagnostics(self) -> TorqueDiagnostics:
        statuses = {}
        for motor in self._motor_ids:
            status = self.get_motor_status(motor)
            assert status is not None
            statuses[motor] = status
        return TorqueDiagnostics(
            vehicle_parameters=self.vehicle,
            motors=MappingProxyType(statuses),
            cycles=self._cycles,
            torque_limited_cycles=self._torque_limited,
            power_limited_cycles=self._power_limited,
            thermally_derated_cycles=self._thermally_derated,
            system_health=self._system_health(statuses),
        )

    def _system_health(self, statuses: Mapping[str, MotorStatus]) -> str:
        if any(
            status.current_temperature >= self.constraints.thermal_limit
            for status in statuses.values()
        ):
            return "critical"
        recent = list(self._recent_saturation)
        if not any(recent):
            return "excellent"
        share = sum(recent) / len(recent)
        if share < 0.25:
            return "good"
        return "degraded"

    # ------------------------------------------------------------------
    # helpers
    def _validate_demand(self, demand: BrakingDemand) -> tuple[float, float]:
        total = require_non_negative(
            "total_braking_force", demand.total_braking_force,
            label="Total braking force", unit=" N",
        )
        require_range(
            "braking_intensity", demand.braking_intensity, 0.0, 1.0,
            label="Braking intensity",
        )
        speed = require_range(
            "vehicle_speed", demand.vehicle_speed, 0.0, 300.0,
            label="Vehicle speed", unit=" km/h",
        )
        require_range(
            "road_gradient", demand.road_gradient, -0.6, 0.6,
            label="Road gradient", unit=" rad",
        )
        return total, speed

    def _power_limited_torque(self, wheel_speed: float) -> float:
        """Wheel torque available from the power ceiling at ``wheel_speed``."""

        if wheel_speed <= 0.0:
            return math.inf
        motor_rpm = wheel_speed * self.vehicle.transmission_ratio * 60.0 / (2.0 * math.pi)
        if motor_rpm > self.constraints.max_speed:
            return 0.0
        return self.constraints.max_power / wheel_speed

    def _assemble(
        self, torques: Mapping[str, float], total: float, speed_ms: float
    ) -> TorqueDistribution:
        radius = self.vehicle.wheel_radius
        total_torque = math.fsum(torques.values())
        motor_force = total_torque / radius
        mechanical = max(0.0, total - motor_force)
        wheel_speed = speed_ms / radius if radius > 0 else 0.0
        speed_factor = speed_recovery_factor(speed_ms)
        efficiency_motor = self.vehicle.motor_efficiency
        power = total_torque * wheel_speed * efficiency_motor * speed_factor
        efficiency = 0.0
        if total > 0.0:
            efficiency = (motor_force / total) * speed_factor * efficiency_motor
        return TorqueDistribution(
            motor_torques=MappingProxyType(dict(torques)),
            mechanical_braking_force=mechanical,
            regenerated_power=max(0.0, power),
            energy_recovery_efficiency=max(0.0, min(1.0, efficiency)),
            demanded_force=total,
            wheel_radius=radius,
        )

    def _record(self, torque_limited: bool, power_limited: bool, derated: bool) -> None:
        self._cycles += 1
        self._torque_limited += int(torque_limited)
        self._power_limited += int(power_limited)
        self._thermally_derated += int(derated)
        self._recent_saturation.append(torque_limited or power_limited or derated)

