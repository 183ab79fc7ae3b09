from __future__ import annotations

import numpy as np
import pytest

from ev_regen.suspension.rules import (
    DEFAULT_OUTPUTS,
    OUTPUT_VARIABLES,
    RULE_NAMES,
    RULES,
    RuleId,
    evaluate_rules,
    initial_weights,
)


def _crisp(**overrides: float) -> dict[str, float]:
    payload = {
        "vehicle_speed": 20.0,
        "road_roughness": 0.1,
        "suspension_velocity": 0.05,
        "acceleration_pattern": 0.1,
        "energy_storage_level": 0.5,
    }
    payload.update(overrides)
    return payload


def test_rule_base_is_indexed_by_rule_id() -> None:
    assert len(RULES) == len(RuleId) == 19
    assert len(set(RULE_NAMES)) == len(RULE_NAMES)
    assert RULES[RuleId.ROUGH_ROAD_FIRM].name == "rough_road_firm"
    weights = initial_weights()
    assert weights.shape == (19,)
    assert weights[RuleId.SAFETY_FAST_ROUGH] == pytest.approx(0.95)


def test_smooth_road_selects_soft_damping_and_low_recovery() -> None:
    evaluation = evaluate_rules(_crisp(), initial_weights())

    assert evaluation.damping == pytest.approx(OUTPUT_VARIABLES["damping"].centroid("soft"))
    assert evaluation.energy == pytest.approx(OUTPUT_VARIABLES["energy"].centroid("low"))
    # No valve rule fires on a slow corner with medium storage.
    assert evaluation.valve == DEFAULT_OUTPUTS["valve"]
    assert evaluation.activations[RuleId.COMFORT_LOW_SPEED] == 1.0
    assert evaluation.activations[RuleId.ROUGH_ROAD_FIRM] == 0.0


def test_rough_fast_corner_selects_firm_damping() -> None:
    evaluation = evaluate_rules(
        _crisp(road_roughness=0.9, suspension_velocity=0.8, energy_storage_level=0.1),
        initial_weights(),
    )

    assert evaluation.damping == pytest.approx(OUTPUT_VARIABLES["damping"].centroid("firm"))
    assert evaluation.energy == pytest.approx(OUTPUT_VARIABLES["energy"].centroid("high"))
    assert evaluation.valve == pytest.approx(OUTPUT_VARIABLES["valve"].centroid("open"))


def test_weights_shift_competing_conclusions() -> None:
    crisp = _crisp(road_roughness=0.1, acceleration_pattern=0.9)
    weights = initial_weights()
    baseline = evaluate_rules(crisp, weights)

    boosted = weights.copy()
    boosted[RuleId.PERFORMANCE_AGGRESSIVE_SMOOTH] = 1.0
    boosted[RuleId.SMOOTH_ROAD_SOFT] = 0.1
    shifted = evaluate_rules(crisp, boosted)

    assert shifted.damping > baseline.damping
    np.testing.assert_array_equal(shifted.activations, baseline.activations)


def test_zero_weights_fall_back_to_defaults() -> None:
    evaluation = evaluate_rules(_crisp(), np.zeros(len(RULES)))

    assert evaluation.damping == DEFAULT_OUTPUTS["damping"]
    assert evaluation.energy == DEFAULT_OUTPUTS["energy"]
    assert evaluation.valve == DEFAULT_OUTPUTS["valve"]
