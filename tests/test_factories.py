from __future__ import annotations

import pytest

from ev_regen.braking.torque import VehicleParameters
from ev_regen.errors import ConfigurationError, ConfigurationKeyError
from ev_regen.factories import (
    DEFAULT_VEHICLE_PARAMETERS,
    create_advanced_hrs_controller,
    create_hydraulic_damper,
    create_integrated_damper_system,
)


def test_controller_factory_merges_and_normalises_overrides() -> None:
    controller = create_advanced_hrs_controller(
        adaptive_params={"learning_rate": 0.2},
        predictive_params={"prediction_horizon": 1.0},
        optimization_objectives={"comfort": 1.0, "energy": 1.0, "stability": 1.0, "efficiency": 1.0},
    )

    assert controller.adaptive.learning_rate == 0.2
    assert controller.adaptive.forgetting_factor == 0.95
    assert controller.predictive.prediction_horizon == 1.0
    assert controller.objectives.as_dict() == pytest.approx(
        {"comfort": 0.25, "energy": 0.25, "stability": 0.25, "efficiency": 0.25}
    )


def test_controller_factory_rejects_unknown_keys() -> None:
    with pytest.raises(ConfigurationKeyError, match="learn_rate"):
        create_advanced_hrs_controller(adaptive_params={"learn_rate": 0.2})


def test_controller_factory_rejects_degenerate_objectives() -> None:
    with pytest.raises(ConfigurationError):
        create_advanced_hrs_controller(
            optimization_objectives={"comfort": 0, "energy": 0, "stability": 0, "efficiency": 0}
        )


def test_damper_factory_applies_partial_overrides() -> None:
    damper = create_hydraulic_damper({"coil_turns": 80}, {"max_power_output": 1_200.0})

    assert damper.config.coil_turns == 80.0
    assert damper.config.coil_resistance == 0.5
    assert damper.constraints.max_power_output == 1_200.0


def test_integrated_factory_accepts_vehicle_overrides() -> None:
    system = create_integrated_damper_system({"motor_count": 4})

    assert system.vehicle.mass == DEFAULT_VEHICLE_PARAMETERS.mass
    assert system.braking_system.torque_model.motor_ids == (
        "front_left",
        "front_right",
        "rear_left",
        "rear_right",
    )


def test_integrated_factory_accepts_vehicle_instances() -> None:
    vehicle = VehicleParameters(mass=2_000.0)

    system = create_integrated_damper_system(
        vehicle,
        {"max_combined_power": 30_000.0},
        damper_config={"coil_turns": 40},
    )

    assert system.vehicle is vehicle
    assert system.config.max_combined_power == 30_000.0
    assert all(damper.config.coil_turns == 40.0 for damper in system.dampers.values())


def test_integrated_factory_rejects_unsupported_motor_count() -> None:
    with pytest.raises(ValueError, match="motor count"):
        create_integrated_damper_system({"motor_count": 3})
