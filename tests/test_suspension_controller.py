from __future__ import annotations

import itertools

import pytest

from ev_regen.errors import ConfigurationError, InputValidationError
from ev_regen.factories import create_advanced_hrs_controller
from ev_regen.suspension.controller import AdaptiveSuspensionController
from ev_regen.suspension.rules import RuleId, initial_weights
from ev_regen.suspension.types import DrivingPatternData, RoadConditionData

from tests.helpers import build_suspension_inputs


def _run(controller: AdaptiveSuspensionController, roughness_values, **overrides):
    outputs = None
    for roughness in roughness_values:
        outputs = controller.calculate_advanced_optimal_control(
            build_suspension_inputs(road_roughness=roughness, **overrides)
        )
    return outputs


def test_base_control_does_not_touch_learned_state(
    suspension_controller: AdaptiveSuspensionController,
) -> None:
    suspension_controller.calculate_optimal_control(build_suspension_inputs())

    snapshot = suspension_controller.get_adaptive_parameters()
    assert snapshot.cycles == 0
    assert suspension_controller.get_performance_diagnostics().history_length == 0


def test_rough_roads_stiffen_damping_and_raise_recovery(
    suspension_controller: AdaptiveSuspensionController,
) -> None:
    smooth = suspension_controller.calculate_optimal_control(
        build_suspension_inputs(road_roughness=0.1)
    )
    rough = suspension_controller.calculate_optimal_control(
        build_suspension_inputs(road_roughness=0.9)
    )

    assert smooth.damping_mode == "soft"
    assert rough.damping_mode == "firm"
    assert rough.damping_coefficient > 3 * smooth.damping_coefficient
    assert rough.energy_recovery_rate > smooth.energy_recovery_rate


def test_sport_mode_is_firmer_than_comfort(
    suspension_controller: AdaptiveSuspensionController,
) -> None:
    comfort = suspension_controller.calculate_optimal_control(build_suspension_inputs())
    sport = suspension_controller.calculate_optimal_control(
        build_suspension_inputs(driving_mode="sport")
    )

    assert sport.damping_coefficient > comfort.damping_coefficient
    assert sport.energy_recovery_rate < comfort.energy_recovery_rate


def test_hot_fluid_reduces_energy_recovery(
    suspension_controller: AdaptiveSuspensionController,
) -> None:
    nominal = suspension_controller.calculate_optimal_control(build_suspension_inputs())
    hot = suspension_controller.calculate_optimal_control(
        build_suspension_inputs(fluid_temperature=120.0)
    )

    assert hot.energy_recovery_rate == pytest.approx(nominal.energy_recovery_rate * 0.3)


@pytest.mark.parametrize(
    ("roughness", "velocity", "storage", "mode"),
    list(
        itertools.product(
            (0.0, 0.5, 1.0), (-2.0, 0.0, 0.35, 5.0), (0.0, 0.5, 0.95), ("eco", "sport", "off_road")
        )
    ),
)
def test_outputs_respect_actuator_limits(
    roughness: float, velocity: float, storage: float, mode: str
) -> None:
    controller = create_advanced_hrs_controller()
    inputs = build_suspension_inputs(
        road_roughness=roughness,
        suspension_velocity=velocity,
        energy_storage_level=storage,
        driving_mode=mode,
        surface_type="gravel",
    )

    outputs = controller.calculate_advanced_optimal_control(inputs)

    assert 500.0 <= outputs.damping_coefficient <= 5_000.0
    ceiling = 500.0 if storage >= 0.9 else 1_500.0
    assert 0.0 <= outputs.energy_recovery_rate <= ceiling
    assert 0.0 <= outputs.valve_position <= 1.0
    for index in (outputs.comfort_index, outputs.energy_efficiency, outputs.system_efficiency):
        assert 0.0 <= index <= 1.0
    assert outputs.hydraulic_flow_rate <= 50.0
    assert outputs.generator_torque <= 50.0
    assert outputs.pump_speed <= 3_000.0


def test_rising_roughness_trend_stiffens_ahead_of_time() -> None:
    rising = [0.32 + 0.02 * step for step in range(10)]
    trending = _run(create_advanced_hrs_controller(), rising)
    constant = _run(create_advanced_hrs_controller(), [0.5] * 10)
    untrusted = _run(
        create_advanced_hrs_controller(predictive_params={"confidence_threshold": 2.0}), rising
    )

    assert trending.damping_mode == "adaptive"
    assert constant.damping_mode != "adaptive"
    assert untrusted.damping_mode != "adaptive"
    assert trending.damping_coefficient > constant.damping_coefficient
    assert trending.damping_coefficient > untrusted.damping_coefficient


def test_look_ahead_roughness_stiffens_a_fresh_controller() -> None:
    inputs = build_suspension_inputs(road_roughness=0.5)

    plain = create_advanced_hrs_controller().calculate_advanced_optimal_control(inputs)
    warned = create_advanced_hrs_controller().calculate_advanced_optimal_control(
        inputs, road_condition=RoadConditionData(roughness_index=0.9)
    )

    assert warned.damping_mode == "adaptive"
    assert warned.damping_coefficient > plain.damping_coefficient


def test_aggressive_driving_pattern_raises_damping() -> None:
    inputs = build_suspension_inputs()

    calm = create_advanced_hrs_controller().calculate_advanced_optimal_control(inputs)
    aggressive = create_advanced_hrs_controller().calculate_advanced_optimal_control(
        inputs, driving_pattern=DrivingPatternData(aggression_level=0.9)
    )

    assert aggressive.damping_coefficient > calm.damping_coefficient


def test_energy_objective_weight_raises_recovery() -> None:
    inputs = build_suspension_inputs()

    balanced = create_advanced_hrs_controller().calculate_advanced_optimal_control(inputs)
    harvesting = create_advanced_hrs_controller(
        optimization_objectives={"energy": 0.7}
    ).calculate_advanced_optimal_control(inputs)

    assert harvesting.energy_recovery_rate > balanced.energy_recovery_rate


def test_objective_updates_are_renormalised(
    suspension_controller: AdaptiveSuspensionController,
) -> None:
    objectives = suspension_controller.update_optimization_objectives({"energy": 0.6})

    assert sum(objectives.as_dict().values()) == pytest.approx(1.0)
    assert objectives.energy == pytest.approx(0.6 / 1.3)

    with pytest.raises(ConfigurationError):
        suspension_controller.update_optimization_objectives({"comfort": -1.0})


def test_learning_moves_only_active_rule_weights(
    suspension_controller: AdaptiveSuspensionController,
) -> None:
    _run(suspension_controller, [0.5] * 60)

    snapshot = suspension_controller.get_adaptive_parameters()
    weights = snapshot.rule_weights
    initial = initial_weights()
    assert snapshot.cycles == 60
    assert 0.1 <= weights["moderate_road_medium"] < initial[RuleId.MODERATE_ROAD_MEDIUM]
    assert weights["rough_road_firm"] == pytest.approx(initial[RuleId.ROUGH_ROAD_FIRM])
    assert all(0.1 <= value <= 1.0 for value in weights.values())
    assert 0.0 < snapshot.performance_estimate < 1.0

    diagnostics = suspension_controller.get_performance_diagnostics()
    assert diagnostics.history_length == 60
    assert diagnostics.performance_trend == "stable"
    assert diagnostics.rule_utilization["moderate_road_medium"] == pytest.approx(1.0)
    assert diagnostics.rule_utilization["rough_road_firm"] == 0.0


def test_performance_history_is_bounded(
    suspension_controller: AdaptiveSuspensionController,
) -> None:
    _run(suspension_controller, [0.5] * 1_005)

    diagnostics = suspension_controller.get_performance_diagnostics()
    assert diagnostics.history_length == 1_000
    assert diagnostics.discarded_entries == 5


def test_reset_learning_restores_initial_weights(
    suspension_controller: AdaptiveSuspensionController,
) -> None:
    _run(suspension_controller, [0.5] * 20)
    suspension_controller.reset_learning()

    snapshot = suspension_controller.get_adaptive_parameters()
    assert snapshot.cycles == 0
    assert snapshot.performance_estimate == 0.0
    assert list(snapshot.rule_weights.values()) == pytest.approx(initial_weights().tolist())


@pytest.mark.parametrize(
    ("overrides", "field"),
    [
        ({"vehicle_speed": -5.0}, "vehicle_speed"),
        ({"suspension_velocity": 6.0}, "suspension_velocity"),
        ({"road_roughness": 1.2}, "road_roughness"),
        ({"hydraulic_pressure": 400.0}, "hydraulic_pressure"),
        ({"vehicle_load": -1.0}, "vehicle_load"),
        ({"driving_mode": "track"}, "driving_mode"),
        ({"surface_type": "lava"}, "surface_type"),
        ({"vertical_acceleration": float("inf")}, "vertical_acceleration"),
    ],
)
def test_invalid_inputs_are_rejected_without_learning(
    suspension_controller: AdaptiveSuspensionController, overrides: dict, field: str
) -> None:
    with pytest.raises(InputValidationError) as excinfo:
        suspension_controller.calculate_advanced_optimal_control(
            build_suspension_inputs(**overrides)
        )

    assert excinfo.value.field == field
    assert suspension_controller.get_adaptive_parameters().cycles == 0


def test_validation_message_reports_value(
    suspension_controller: AdaptiveSuspensionController,
) -> None:
    with pytest.raises(
        InputValidationError, match=r"Vehicle speed must be between 0 and 300 km/h \(got -5\)"
    ):
        suspension_controller.calculate_optimal_control(build_suspension_inputs(vehicle_speed=-5.0))


@pytest.mark.parametrize(
    ("road_condition", "driving_pattern"),
    [
        (RoadConditionData(roughness_index=1.5), None),
        (RoadConditionData(surface_type="lava"), None),  # type: ignore[arg-type]
        (None, DrivingPatternData(aggression_level=-0.2)),
    ],
)
def test_invalid_look_ahead_data_is_rejected_before_recording(
    suspension_controller: AdaptiveSuspensionController,
    road_condition: RoadConditionData | None,
    driving_pattern: DrivingPatternData | None,
) -> None:
    with pytest.raises(InputValidationError):
        suspension_controller.calculate_advanced_optimal_control(
            build_suspension_inputs(), road_condition, driving_pattern
        )

    assert suspension_controller.get_adaptive_parameters().cycles == 0
    assert suspension_controller.get_performance_diagnostics().history_length == 0


def test_failsafe_outputs_disable_recovery() -> None:
    outputs = AdaptiveSuspensionController.failsafe_outputs(
        build_suspension_inputs(suspension_velocity=0.4)
    )

    assert outputs.damping_coefficient == 2_500.0
    assert outputs.damping_force == pytest.approx(1_000.0)
    assert outputs.damping_mode == "medium"
    assert outputs.energy_recovery_rate == 0.0
    assert outputs.generator_torque == 0.0


def test_base_control_is_repeatable(
    suspension_controller: AdaptiveSuspensionController,
) -> None:
    inputs = build_suspension_inputs(road_roughness=0.65, suspension_velocity=-0.4)

    first = suspension_controller.calculate_optimal_control(inputs)
    second = suspension_controller.calculate_optimal_control(inputs)

    assert first == second


def test_rule_weights_stay_bounded_under_varied_learning() -> None:
    controller = create_advanced_hrs_controller(
        adaptive_params={"learning_rate": 5.0, "performance_window": 5}
    )
    scenarios = itertools.cycle(
        itertools.product(
            (0.05, 0.5, 0.95), (-1.5, 0.1, 2.5), (0.1, 0.95), ("eco", "sport", "off_road")
        )
    )

    for roughness, velocity, storage, mode in itertools.islice(scenarios, 400):
        controller.calculate_advanced_optimal_control(
            build_suspension_inputs(
                road_roughness=roughness,
                suspension_velocity=velocity,
                energy_storage_level=storage,
                driving_mode=mode,
            )
        )

    weights = controller.get_adaptive_parameters().rule_weights
    assert weights != dict(zip(weights, initial_weights().tolist()))
    assert all(0.1 <= value <= 1.0 for value in weights.values())


@pytest.mark.parametrize(
    ("adaptive_params", "predictive_params"),
    [
        pytest.param({"performance_window": 0}, None, id="performance-window"),
        pytest.param({"learning_rate": -0.1}, None, id="learning-rate"),
        pytest.param({"forgetting_factor": 1.5}, None, id="forgetting-factor"),
        pytest.param({"adaptation_threshold": -0.01}, None, id="adaptation-threshold"),
        pytest.param({"target_performance": 1.2}, None, id="target-performance"),
        pytest.param(None, {"history_size": 0}, id="history-size"),
        pytest.param(None, {"trend_window": 0}, id="trend-window"),
        pytest.param(None, {"min_samples": 0}, id="min-samples"),
        pytest.param(None, {"update_frequency": 0.0}, id="update-frequency"),
        pytest.param(None, {"prediction_horizon": -1.0}, id="prediction-horizon"),
    ],
)
def test_invalid_learning_parameters_are_rejected(
    adaptive_params: dict | None, predictive_params: dict | None
) -> None:
    with pytest.raises(ConfigurationError):
        create_advanced_hrs_controller(
            adaptive_params=adaptive_params, predictive_params=predictive_params
        )
