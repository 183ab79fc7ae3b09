"""Regenerative suspension: adaptive damping control and the damper model."""

from ev_regen.suspension.controller import AdaptiveSuspensionController, PerformanceRecord
from ev_regen.suspension.damper import (
    DamperConfiguration,
    DamperConstraints,
    DamperDiagnostics,
    DamperInputs,
    DamperOutputs,
    HydraulicElectromagneticDamper,
)
from ev_regen.suspension.rules import RULES, RuleId
from ev_regen.suspension.types import (
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

__all__ = [
    "AdaptiveParameters",
    "AdaptiveSnapshot",
    "AdaptiveSuspensionController",
    "DamperConfiguration",
    "DamperConstraints",
    "DamperDiagnostics",
    "DamperInputs",
    "DamperOutputs",
    "DrivingPatternData",
    "HydraulicElectromagneticDamper",
    "OptimizationObjectives",
    "PerformanceDiagnostics",
    "PerformanceRecord",
    "PredictiveParameters",
    "RULES",
    "RuleId",
    "RoadConditionData",
    "SuspensionInputs",
    "SuspensionOutputs",
]
