from __future__ import annotations

import math

import numpy as np
import pytest

from relgraph import dmath


def test_scalemap_maps_between_intervals() -> None:
    assert dmath.scalemap(15, (6, 25), (42, 93)) == pytest.approx(66.1578947, rel=1e-6)
    assert dmath.scalemap(2, (0, 10), (10, 0)) == pytest.approx(8.0)


def test_scalemap_is_elementwise_for_arrays() -> None:
    out = dmath.scalemap(np.array([0.0, 5.0, 10.0]), (0, 10), (-1, 1))
    assert out.tolist() == pytest.approx([-1.0, 0.0, 1.0])


def test_round_to_rounds_halves_up() -> None:
    assert dmath.round_to(2.5) == 3.0
    assert dmath.round_to(-2.5) == -2.0
    assert dmath.round_to(1.2345, 2) == pytest.approx(1.23)


def test_sgn_is_nan_at_zero() -> None:
    assert dmath.sgn(-3.0) == -1.0
    assert dmath.sgn(0.5) == 1.0
    assert math.isnan(dmath.sgn(0.0))


def test_small_helpers() -> None:
    assert dmath.odd(3) and dmath.even(4)
    assert dmath.log(1000.0) == pytest.approx(3.0)
    assert dmath.cbrt(-8.0) == pytest.approx(-2.0)
    assert dmath.is_infinite(dmath.NEGATIVE_INFINITY)
    assert not dmath.is_infinite(1e308)


def test_frac_takes_the_fraction_of_the_magnitude() -> None:
    assert dmath.frac(2.75) == pytest.approx(0.75)
    assert dmath.frac(-2.25) == pytest.approx(0.25)
    assert dmath.frac(3.0) == 0.0


def test_quadrant_assigns_axis_points() -> None:
    assert [dmath.quadrant(1, 1), dmath.quadrant(-1, 1), dmath.quadrant(-1, -1), dmath.quadrant(1, -1)] == [1, 2, 3, 4]
    assert dmath.quadrant(0, 1) == 2
    assert dmath.quadrant(0, 0) == 3
    assert dmath.quadrant(1, 0) == 4
