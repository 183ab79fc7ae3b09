from __future__ import annotations

import pytest

from ev_regen.common.fuzzy import FuzzySet, FuzzyVariable, trapezoid, weighted_defuzzify


@pytest.mark.parametrize(
    ("x", "expected"),
    [
        (0.0, 0.0),
        (1.0, 0.5),
        (2.0, 1.0),
        (3.0, 1.0),
        (4.0, 0.5),
        (6.0, 0.0),
    ],
)
def test_trapezoid_interior_shape(x: float, expected: float) -> None:
    assert trapezoid(x, 0.0, 2.0, 3.0, 5.0) == pytest.approx(expected)


def test_shoulders_saturate_outside_their_range() -> None:
    assert trapezoid(-10.0, 0.0, 0.0, 10.0, 20.0) == 1.0
    assert trapezoid(500.0, 100.0, 120.0, 200.0, 200.0) == 1.0


def test_fuzzy_set_rejects_unsorted_breakpoints() -> None:
    with pytest.raises(ValueError):
        FuzzySet("broken", (0.0, 3.0, 2.0, 4.0))


def test_centroid_of_symmetric_set_is_its_midpoint() -> None:
    assert FuzzySet("mid", (0.0, 1.0, 3.0, 4.0)).centroid == pytest.approx(2.0)
    assert FuzzySet("spike", (2.0, 2.0, 2.0, 2.0)).centroid == pytest.approx(2.0)


def test_variable_fuzzify_covers_every_set() -> None:
    variable = FuzzyVariable.from_points(
        "speed", {"low": (0, 0, 10, 20), "high": (10, 20, 30, 30)}
    )
    memberships = variable.fuzzify(15.0)

    assert memberships == {"low": pytest.approx(0.5), "high": pytest.approx(0.5)}
    with pytest.raises(KeyError, match="Unknown fuzzy set 'medium'"):
        variable["medium"]


def test_weighted_defuzzify_returns_default_without_activation() -> None:
    assert weighted_defuzzify([(0.0, 10.0)], default=7.0) == 7.0
    assert weighted_defuzzify([(1.0, 10.0), (3.0, 20.0)], default=0.0) == pytest.approx(17.5)
