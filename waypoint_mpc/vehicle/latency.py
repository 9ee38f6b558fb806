"""
Actuation-latency compensation.

Commands sent now take effect ``latency`` seconds later, so the optimizer
plans from where the vehicle will be by then. A single Euler step is enough
for the short interval; it is not the discretization used inside the
horizon.
"""
import numpy as np

from waypoint_mpc.track.polyfit import derivative_at, evaluate
from waypoint_mpc.vehicle.state import VehicleState


def initial_state(curve, v):
    """Local-frame state at fit time: vehicle at the origin facing +x."""
    cte = evaluate(curve, 0.0)
    # psi is 0 here, so the heading error is -atan(f'(0))
    epsi = -np.arctan(derivative_at(curve, 0.0))
    return VehicleState(0.0, 0.0, 0.0, float(v), float(cte), float(epsi))


def compensate_latency(state, steering, throttle, latency, lf):
    """
    Advance a local-frame state at the origin by the actuation latency.

    Args:
        state: VehicleState with cte/epsi evaluated at x = 0
        steering: current steering angle (rad)
        throttle: current throttle, used as acceleration
        latency: seconds until the next command takes effect
        lf: front axle to CoG distance

    Returns:
        VehicleState after the latency with the current actuation held
    """
    if latency <= 0.0:
        return state

    v = state.v
    px = v * latency
    psi = -v * steering * latency / lf
    epsi = state.epsi + psi
    cte = state.cte + v * latency * np.sin(epsi)
    v_next = v + throttle * latency

    return VehicleState(float(px), 0.0, float(psi), float(v_next), float(cte), float(epsi))
