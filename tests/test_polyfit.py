"""
Tests for reference curve fitting.
"""

import numpy as np
import pytest

from waypoint_mpc.control.errors import InsufficientPointsError, NonFinitePointsError, SingularFitError
from waypoint_mpc.track.polyfit import ReferenceCurve, derivative_at, evaluate, fit, sample


def test_fit_recovers_cubic_coefficients():
    """Points sampled exactly from a cubic give back its coefficients."""
    true = np.array([1.5, -0.4, 0.03, -0.0012])
    xs = np.linspace(-5.0, 40.0, 12)
    ys = true[0] + true[1] * xs + true[2] * xs ** 2 + true[3] * xs ** 3

    curve = fit(np.column_stack([xs, ys]), degree=3)

    assert curve.degree == 3
    np.testing.assert_allclose(curve.coefficients, true, rtol=1e-7, atol=1e-9)


def test_fit_least_squares_line():
    curve = fit([(0, 0.1), (1, 0.9), (2, 2.1), (3, 2.9)], degree=1)
    assert curve.coefficients[1] == pytest.approx(0.96, abs=1e-9)
    assert curve.coefficients[0] == pytest.approx(0.06, abs=1e-9)


def test_straight_waypoints_fit_zero_curve():
    curve = fit([(10, 0), (20, 0), (30, 0), (40, 0)], degree=3)
    np.testing.assert_allclose(curve.coefficients, 0.0, atol=1e-10)


def test_derivative_at_zero_is_linear_coefficient():
    curve = fit([(1, 2.0), (4, -1.0), (9, 3.5), (14, 0.25), (20, 7.0)], degree=3)
    assert derivative_at(curve, 0.0) == curve.coefficients[1]


def test_derivative_matches_finite_difference():
    curve = ReferenceCurve([0.5, -1.0, 0.2, 0.01])
    h = 1e-6
    for x in (-3.0, 0.0, 2.5, 10.0):
        numeric = (evaluate(curve, x + h) - evaluate(curve, x - h)) / (2 * h)
        assert derivative_at(curve, x) == pytest.approx(numeric, rel=1e-6, abs=1e-8)


def test_evaluate_scalar_and_array():
    curve = ReferenceCurve([1.0, 2.0, 3.0])
    assert evaluate(curve, 2.0) == pytest.approx(17.0)
    np.testing.assert_allclose(evaluate(curve, np.array([0.0, 1.0, -1.0])), [1.0, 6.0, 2.0])


def test_constant_curve_has_zero_derivative():
    assert derivative_at(ReferenceCurve([4.0]), 3.0) == 0.0


@pytest.mark.parametrize("count", [0, 1, 2, 3])
def test_too_few_points_raise(count):
    points = [(float(i), float(i)) for i in range(count)]
    with pytest.raises(InsufficientPointsError):
        fit(points, degree=3)


def test_repeated_x_coordinates_raise():
    with pytest.raises(SingularFitError):
        fit([(10, 0), (10, 1), (10, 2), (10, 3)], degree=3)


def test_too_few_distinct_x_coordinates_raise():
    with pytest.raises(SingularFitError):
        fit([(1, 0), (1, 1), (2, 2), (2, 3), (3, 1)], degree=3)


def test_negative_degree_rejected():
    with pytest.raises(ValueError):
        fit([(0, 0), (1, 1)], degree=-1)


def test_sample_spans_requested_range():
    curve = ReferenceCurve([0.0, 0.0, 0.01])
    pts = sample(curve, 30.0, count=7)

    assert pts.shape == (7, 2)
    assert pts[0, 0] == 0.0
    assert pts[-1, 0] == pytest.approx(30.0)
    assert pts[-1, 1] == pytest.approx(9.0)


@pytest.mark.parametrize("bad", [np.nan, np.inf, -np.inf])
def test_non_finite_points_raise(bad):
    points = [(0.0, 0.0), (1.0, bad), (2.0, 4.0), (3.0, 9.0)]
    with pytest.raises(NonFinitePointsError):
        fit(points, degree=2)
