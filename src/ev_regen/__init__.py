"""Regenerative energy-recovery control for electric vehicles.

The package bundles the fuzzy regenerative-braking controller, the motor
torque distribution model, the regenerative damper model with its adaptive
suspension controller, and the layer that arbitrates both energy sources
against a shared power budget.
"""

from __future__ import annotations

from ._version import __version__
from .braking import (
    BrakingControlSystem,
    BrakingInputs,
    BrakingOutputs,
    FuzzyBrakingController,
    TorqueDistributionModel,
    VehicleParameters,
)
from .errors import (
    ConfigurationError,
    ConfigurationKeyError,
    InputValidationError,
    MotorNotFoundError,
    ProfileNotFoundError,
)
from .factories import (
    DEFAULT_VEHICLE_PARAMETERS,
    create_advanced_hrs_controller,
    create_hydraulic_damper,
    create_integrated_damper_system,
)
from .integration import IntegratedDamperSystem, IntegratedSystemInputs, SystemConfiguration
from .suspension import (
    AdaptiveSuspensionController,
    DamperInputs,
    HydraulicElectromagneticDamper,
    SuspensionInputs,
)

__all__ = [
    "AdaptiveSuspensionController",
    "BrakingControlSystem",
    "BrakingInputs",
    "BrakingOutputs",
    "ConfigurationError",
    "ConfigurationKeyError",
    "DEFAULT_VEHICLE_PARAMETERS",
    "DamperInputs",
    "FuzzyBrakingController",
    "HydraulicElectromagneticDamper",
    "InputValidationError",
    "IntegratedDamperSystem",
    "IntegratedSystemInputs",
    "MotorNotFoundError",
    "ProfileNotFoundError",
    "SuspensionInputs",
    "SystemConfiguration",
    "TorqueDistributionModel",
    "VehicleParameters",
    "__version__",
    "create_advanced_hrs_controller",
    "create_hydraulic_damper",
    "create_integrated_damper_system",
]
