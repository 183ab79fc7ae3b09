"""Handlers behind the ev-regen subcommands.

Every handler receives the parsed namespace and the loaded configuration and
returns the JSON document to print.
"""

from __future__ import annotations

import argparse
from collections.abc import Mapping as MappingABC
from typing import Any, Dict, Mapping, Optional

from ..braking.controller import BrakingInputs, FuzzyBrakingController
from ..braking.system import MAX_BRAKING_FORCE, MotorTemperatures, SystemInputs
from ..braking.torque import BrakingDemand, TorqueDistributionModel, VehicleParameters
from ..configuration import merge_dataclass, section
from ..constants import CORNERS
from ..errors import ConfigurationError, InputValidationError
from ..factories import (
    create_hydraulic_damper,
    create_integrated_damper_system,
)
from ..integration.system import IntegratedSystemInputs
from ..profiles import VehicleProfile, get_vehicle_profile, load_vehicle_profiles
from ..suspension.damper import DamperInputs
from ..suspension.types import DrivingPatternData, RoadConditionData
from .errors import CliError
from .io import load_input_file, render_payload


__all__ = [
    "handle_braking",
    "handle_damper",
    "handle_integrated",
    "handle_profiles",
]


def _resolve_profile(
    namespace: argparse.Namespace, config: Mapping[str, Any]
) -> Optional[VehicleProfile]:
    name = getattr(namespace, "profile", None) or section(config, "vehicle").get("profile")
    if not name:
        return None
    return get_vehicle_profile(str(name))


def _resolve_vehicle(
    namespace: argparse.Namespace, config: Mapping[str, Any]
) -> tuple[VehicleParameters, Optional[VehicleProfile]]:
    profile = _resolve_profile(namespace, config)
    base = profile.vehicle if profile is not None else VehicleParameters()
    overrides = section(config, "vehicle")
    overrides.pop("profile", None)
    return merge_dataclass(base, overrides), profile


def _build(record_type: type, payload: Mapping[str, Any], *, label: str) -> Any:
    try:
        return record_type(**payload)
    except TypeError as exc:
        raise CliError(
            f"Invalid {label} description: {exc}",
            category="usage",
            context={"record": label},
        ) from exc


def handle_braking(namespace: argparse.Namespace, *, config: Mapping[str, Any]) -> str:
    payload: Dict[str, Any] = {}
    if namespace.input is not None:
        payload.update(load_input_file(namespace.input))
    for name in ("driving_speed", "braking_intensity", "battery_soc", "motor_temperature"):
        value = getattr(namespace, name, None)
        if value is not None:
            payload[name] = value
    inputs = _build(BrakingInputs, payload, label="braking input")

    vehicle, profile = _resolve_vehicle(namespace, config)
    controller = FuzzyBrakingController()
    outputs = controller.calculate_optimal_braking(inputs)
    model = TorqueDistributionModel(vehicle)
    distribution = model.calculate_torque_distribution(
        BrakingDemand(
            total_braking_force=inputs.braking_intensity * MAX_BRAKING_FORCE,
            braking_intensity=inputs.braking_intensity,
            vehicle_speed=inputs.driving_speed,
        ),
        outputs.regenerative_ratio,
        inputs.battery_soc,
    )
    return render_payload(
        {
            "profile": profile.name if profile else None,
            "inputs": inputs,
            "outputs": outputs,
            "distribution": distribution,
            "diagnostics": model.get_diagnostics(),
        }
    )


def handle_damper(namespace: argparse.Namespace, *, config: Mapping[str, Any]) -> str:
    payload: Dict[str, Any] = {}
    if namespace.input is not None:
        payload.update(load_input_file(namespace.input))
    for name in (
        "compression_velocity",
        "displacement",
        "vehicle_speed",
        "road_roughness",
        "damper_temperature",
        "battery_soc",
        "load_factor",
    ):
        value = getattr(namespace, name, None)
        if value is not None:
            payload[name] = value
    inputs = _build(DamperInputs, payload, label="damper input")

    profile = _resolve_profile(namespace, config)
    damper_overrides = dict(profile.damper) if profile else {}
    damper_overrides.update(section(config, "damper"))
    damper = create_hydraulic_damper(damper_overrides)
    outputs = damper.calculate_damper_performance(inputs)
    return render_payload({"inputs": inputs, "outputs": outputs})


def _integrated_inputs(payload: Mapping[str, Any]) -> IntegratedSystemInputs:
    braking_payload = dict(payload.get("braking") or {})
    temperatures = braking_payload.pop("motor_temperatures", None)
    if isinstance(temperatures, MappingABC):
        motor_temperatures = _build(MotorTemperatures, temperatures, label="motor temperature")
    elif temperatures is None:
        motor_temperatures = MotorTemperatures(front_left=25.0, front_right=25.0)
    else:
        motor_temperatures = MotorTemperatures(
            front_left=temperatures, front_right=temperatures
        )
    braking = _build(
        SystemInputs,
        {**braking_payload, "motor_temperatures": motor_temperatures},
        label="braking input",
    )

    suspension_payload = payload.get("suspension_inputs")
    if suspension_payload is None and isinstance(payload.get("suspension"), MappingABC):
        shared = dict(payload["suspension"])
        suspension_payload = {corner: shared for corner in CORNERS}
    if not isinstance(suspension_payload, MappingABC):
        raise CliError(
            "Integrated input requires 'suspension_inputs' per corner or a shared 'suspension'",
            category="usage",
        )
    suspension = {
        str(corner): _build(DamperInputs, dict(values), label=f"{corner} damper input")
        for corner, values in suspension_payload.items()
    }

    road = payload.get("road_condition")
    pattern = payload.get("driving_pattern")
    return IntegratedSystemInputs(
        braking=braking,
        suspension_inputs=suspension,
        driving_mode=payload.get("driving_mode", "comfort"),
        road_condition=RoadConditionData.from_mapping(road) if road else None,
        driving_pattern=DrivingPatternData.from_mapping(pattern) if pattern else None,
    )


def handle_integrated(namespace: argparse.Namespace, *, config: Mapping[str, Any]) -> str:
    if namespace.input is None:
        raise CliError("The integrated command requires --input", category="usage")
    inputs = _integrated_inputs(load_input_file(namespace.input))
    vehicle, profile = _resolve_vehicle(namespace, config)

    system_overrides = dict(profile.system) if profile else {}
    system_overrides.update(section(config, "system"))
    damper_overrides = dict(profile.damper) if profile else {}
    damper_overrides.update(section(config, "damper"))
    system = create_integrated_damper_system(
        vehicle,
        system_overrides,
        damper_config=damper_overrides,
        adaptive_params=section(config, "suspension", "adaptive"),
        predictive_params=section(config, "suspension", "predictive"),
        optimization_objectives=section(config, "suspension", "objectives"),
    )
    if namespace.max_combined_power is not None:
        system.update_system_configuration({"max_combined_power": namespace.max_combined_power})

    if namespace.cycles < 1:
        raise CliError("--cycles must be at least 1", category="usage")
    outputs = None
    for _ in range(namespace.cycles):
        outputs = system.calculate_integrated_performance(inputs)
    assert outputs is not None
    diagnostics = system.get_system_diagnostics()
    balance = outputs.energy_balance
    return render_payload(
        {
            "profile": profile.name if profile else None,
            "cycles": diagnostics.cycles,
            "energy_balance": {
                "regenerative_braking_power": balance.regenerative_braking_power,
                "damper_power": balance.damper_power,
                "total_generated_power": balance.total_generated_power,
                "power_consumption": balance.power_consumption,
                "net_power": balance.net_power,
            },
            "combined_energy_efficiency": outputs.combined_energy_efficiency,
            "power_limited": outputs.power_limited,
            "warnings": outputs.warnings,
            "braking": outputs.braking,
            "corners": {
                corner: {
                    "harvested_power": corner_outputs.harvested_power,
                    "damping_coefficient": corner_outputs.suspension.damping_coefficient,
                    "damping_mode": corner_outputs.suspension.damping_mode,
                    "system_temperature": corner_outputs.damper.system_temperature,
                }
                for corner, corner_outputs in outputs.corners.items()
            },
            "total_system_energy": diagnostics.total_system_energy,
            "operation_time": diagnostics.operation_time,
        }
    )


def handle_profiles(namespace: argparse.Namespace, *, config: Mapping[str, Any]) -> str:
    profiles = load_vehicle_profiles()
    return render_payload(
        {
            name: {"description": profile.description, "vehicle": profile.vehicle}
            for name, profile in profiles.items()
        }
    )


def run_handler(handler: Any, namespace: argparse.Namespace, config: Mapping[str, Any]) -> str:
    """Invoke ``handler`` translating library errors into :class:`CliError`."""

    try:
        return handler(namespace, config=config)
    except CliError:
        raise
    except (InputValidationError, ConfigurationError, LookupError) as exc:
        raise CliError.from_exception(exc) from exc
    except ValueError as exc:
        raise CliError(str(exc), category="usage") from exc
