"""Regenerative braking: fuzzy ratio selection, torque split and control cycle."""

from ev_regen.braking.controller import (
    BrakingControllerConfig,
    BrakingInputs,
    BrakingOutputs,
    FuzzyBrakingController,
)
from ev_regen.braking.system import (
    BrakingControlSystem,
    MotorTemperatures,
    SafetyLimits,
    SystemInputs,
    SystemOutputs,
)
from ev_regen.braking.torque import (
    BrakingDemand,
    MotorConstraints,
    TorqueDistribution,
    TorqueDistributionModel,
    VehicleParameters,
)

__all__ = [
    "BrakingControlSystem",
    "BrakingControllerConfig",
    "BrakingDemand",
    "BrakingInputs",
    "BrakingOutputs",
    "FuzzyBrakingController",
    "MotorConstraints",
    "MotorTemperatures",
    "SafetyLimits",
    "SystemInputs",
    "SystemOutputs",
    "TorqueDistribution",
    "TorqueDistributionModel",
    "VehicleParameters",
]
