"""Combined braking and suspension energy recovery under one power budget."""

from ev_regen.integration.system import (
    CornerOutputs,
    EnergyBalance,
    IntegratedDamperSystem,
    IntegratedSystemDiagnostics,
    IntegratedSystemInputs,
    IntegratedSystemOutputs,
    SystemConfiguration,
)

__all__ = [
    "CornerOutputs",
    "EnergyBalance",
    "IntegratedDamperSystem",
    "IntegratedSystemDiagnostics",
    "IntegratedSystemInputs",
    "IntegratedSystemOutputs",
    "SystemConfiguration",
]
