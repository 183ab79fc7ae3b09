"""Constructors that merge partial overrides onto the documented defaults."""

from __future__ import annotations

from typing import Any, Mapping, Optional, Union

from .braking.torque import VehicleParameters
from .configuration import merge_dataclass
from .integration.system import IntegratedDamperSystem, SystemConfiguration
from .suspension.controller import AdaptiveSuspensionController
from .suspension.damper import (
    DamperConfiguration,
    DamperConstraints,
    HydraulicElectromagneticDamper,
)
from .suspension.types import AdaptiveParameters, OptimizationObjectives, PredictiveParameters

__all__ = [
    "DEFAULT_VEHICLE_PARAMETERS",
    "create_advanced_hrs_controller",
    "create_hydraulic_damper",
    "create_integrated_damper_system",
]


DEFAULT_VEHICLE_PARAMETERS = VehicleParameters()

Overrides = Optional[Mapping[str, Any]]


def create_advanced_hrs_controller(
    adaptive_params: Overrides = None,
    predictive_params: Overrides = None,
    optimization_objectives: Overrides = None,
) -> AdaptiveSuspensionController:
    """Build a suspension controller; objective weights are renormalised."""

    return AdaptiveSuspensionController(
        adaptive=merge_dataclass(AdaptiveParameters(), adaptive_params),
        predictive=merge_dataclass(PredictiveParameters(), predictive_params),
        objectives=merge_dataclass(OptimizationObjectives(), optimization_objectives),
    )


def create_hydraulic_damper(
    config: Overrides = None, constraints: Overrides = None
) -> HydraulicElectromagneticDamper:
    return HydraulicElectromagneticDamper(
        config=merge_dataclass(DamperConfiguration(), config),
        constraints=merge_dataclass(DamperConstraints(), constraints),
    )


def create_integrated_damper_system(
    vehicle_params: Union[VehicleParameters, Mapping[str, Any], None] = None,
    config: Overrides = None,
    *,
    damper_config: Overrides = None,
    adaptive_params: Overrides = None,
    predictive_params: Overrides = None,
    optimization_objectives: Overrides = None,
) -> IntegratedDamperSystem:
    """Build the integrated system for ``vehicle_params``.

    ``vehicle_params`` may be a :class:`VehicleParameters` instance or a
    mapping of overrides merged onto :data:`DEFAULT_VEHICLE_PARAMETERS`.
    """

    if isinstance(vehicle_params, VehicleParameters):
        vehicle = vehicle_params
    else:
        vehicle = merge_dataclass(DEFAULT_VEHICLE_PARAMETERS, vehicle_params)
    return IntegratedDamperSystem(
        vehicle=vehicle,
        config=merge_dataclass(SystemConfiguration(), config),
        damper_config=merge_dataclass(DamperConfiguration(), damper_config),
        adaptive=merge_dataclass(AdaptiveParameters(), adaptive_params),
        predictive=merge_dataclass(PredictiveParameters(), predictive_params),
        objectives=merge_dataclass(OptimizationObjectives(), optimization_objectives),
    )
