"""
Tests for latency compensation and the kinematic bicycle model.
"""

import numpy as np
import pytest

from waypoint_mpc.config.params import VehicleParams
from waypoint_mpc.track.polyfit import ReferenceCurve
from waypoint_mpc.vehicle.dynamics import horizon_step, step
from waypoint_mpc.vehicle.latency import compensate_latency, initial_state
from waypoint_mpc.vehicle.state import VehicleState

LF = 2.67


def test_initial_state_from_curve():
    curve = ReferenceCurve([0.8, 0.2, 0.01, 0.0])
    state = initial_state(curve, 12.0)

    assert (state.x, state.y, state.psi) == (0.0, 0.0, 0.0)
    assert state.v == 12.0
    assert state.cte == pytest.approx(0.8)
    assert state.epsi == pytest.approx(-np.arctan(0.2))


def test_zero_latency_is_identity():
    state = VehicleState(0.0, 0.0, 0.0, 10.0, 0.3, -0.05)
    assert compensate_latency(state, 0.1, 0.5, 0.0, LF) == state


def test_straight_motion_advances_along_x():
    """No steering and no errors: only x moves forward."""
    state = VehicleState(0.0, 0.0, 0.0, 10.0, 0.0, 0.0)
    moved = compensate_latency(state, 0.0, 0.0, 0.1, LF)

    assert moved.x == pytest.approx(1.0)
    assert moved.y == 0.0
    assert moved.psi == 0.0
    assert moved.v == 10.0
    assert moved.cte == pytest.approx(0.0)
    assert moved.epsi == pytest.approx(0.0)


def test_latency_step_equations():
    state = VehicleState(0.0, 0.0, 0.0, 8.0, 0.4, 0.1)
    steering, throttle, latency = 0.05, 0.6, 0.1
    moved = compensate_latency(state, steering, throttle, latency, LF)

    psi = -8.0 * steering * latency / LF
    epsi = 0.1 + psi
    assert moved.x == pytest.approx(8.0 * latency)
    assert moved.psi == pytest.approx(psi)
    assert moved.epsi == pytest.approx(epsi)
    assert moved.cte == pytest.approx(0.4 + 8.0 * latency * np.sin(epsi))
    assert moved.v == pytest.approx(8.0 + throttle * latency)


def test_positive_steering_turns_clockwise():
    state = VehicleState(0.0, 0.0, 0.0, 10.0, 0.0, 0.0)
    assert compensate_latency(state, 0.1, 0.0, 0.1, LF).psi < 0.0
    assert compensate_latency(state, -0.1, 0.0, 0.1, LF).psi > 0.0


def test_horizon_step_on_zero_curve():
    curve = ReferenceCurve([0.0, 0.0, 0.0, 0.0])
    x = np.array([0.0, 0.0, 0.0, 10.0, 0.0, 0.0])
    nxt = horizon_step(x, np.array([0.0, 1.0]), 0.1, curve, LF)

    np.testing.assert_allclose(nxt, [1.0, 0.0, 0.0, 10.1, 0.0, 0.0], atol=1e-12)


def test_horizon_step_errors_follow_curve():
    curve = ReferenceCurve([0.5, 0.1, 0.0, 0.0])
    x = np.array([2.0, 0.2, 0.05, 5.0, 0.0, 0.0])
    nxt = horizon_step(x, np.array([0.02, 0.0]), 0.1, curve, LF)

    yaw = 5.0 * 0.02 / LF * 0.1
    assert nxt[4] == pytest.approx((0.5 + 0.1 * 2.0) - 0.2)
    assert nxt[5] == pytest.approx(0.05 - np.arctan(0.1) - yaw)


def test_global_step_turns_with_steering_sign():
    vehicle = VehicleParams()
    x = np.array([0.0, 0.0, 0.0, 10.0])
    right = step(x, [0.1, 0.0], 0.1, vehicle)
    left = step(x, [-0.1, 0.0], 0.1, vehicle)

    assert right[2] < 0.0 < left[2]
    assert right[0] == pytest.approx(1.0)
