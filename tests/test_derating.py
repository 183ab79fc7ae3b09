from __future__ import annotations

import pytest

from ev_regen.common.derating import DeratingCurve


def test_factor_interpolates_and_holds_outside_breakpoints() -> None:
    curve = DeratingCurve.from_pairs(((100.0, 1.0), (150.0, 0.2)), name="motor")

    assert curve.factor(20.0) == 1.0
    assert curve.factor(125.0) == pytest.approx(0.6)
    assert curve.factor(400.0) == pytest.approx(0.2)
    assert curve.apply(1000.0, 125.0) == pytest.approx(600.0)


def test_is_derating_starts_where_the_factor_drops() -> None:
    curve = DeratingCurve.from_pairs(((0.0, 1.0), (60.0, 1.0), (90.0, 0.5)))

    assert not curve.is_derating(60.0)
    assert curve.is_derating(61.0)


@pytest.mark.parametrize(
    "pairs",
    [
        pytest.param(((1.0, 1.0),), id="single-point"),
        pytest.param(((2.0, 1.0), (1.0, 0.5)), id="decreasing"),
        pytest.param(((1.0, 1.0), (1.0, 0.5)), id="duplicate"),
    ],
)
def test_invalid_breakpoints_are_rejected(pairs: tuple[tuple[float, float], ...]) -> None:
    with pytest.raises(ValueError):
        DeratingCurve.from_pairs(pairs)
