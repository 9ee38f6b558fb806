import numpy as np

from waypoint_mpc.track.polyfit import derivative_at, evaluate


def step(x, u, dt, vehicle):
    """
    Kinematic bicycle model in the global frame

    Args:
        x: state [X, Y, psi, v]
        u: control [steering, accel]
        dt: time step
        vehicle: VehicleParams

    Returns:
        x_next: next state
    """
    X, Y, psi, v = x
    delta, accel = u

    dX = v * np.cos(psi)
    dY = v * np.sin(psi)
    dpsi = -v * delta / vehicle.lf  # positive steering turns clockwise
    dv = accel

    x_next = np.asarray(x, dtype=float) + dt * np.array([dX, dY, dpsi, dv])
    x_next[2] = np.arctan2(np.sin(x_next[2]), np.cos(x_next[2]))  # Normalize heading

    return x_next


def horizon_step(x, u, dt, curve, lf):
    """
    One prediction step of the local-frame state used by the optimizer.

    Args:
        x: state [x, y, psi, v, cte, epsi]
        u: control [steering, accel]
        dt: time step
        curve: ReferenceCurve the errors are measured against
        lf: front axle to CoG distance

    Returns:
        x_next: next state
    """
    px, py, psi, v, cte, epsi = x
    delta, accel = u

    f0 = evaluate(curve, px)
    psides = np.arctan(derivative_at(curve, px))
    yaw = v * delta / lf * dt

    return np.array([
        px + v * np.cos(psi) * dt,
        py + v * np.sin(psi) * dt,
        psi - yaw,
        v + accel * dt,
        (f0 - py) + v * np.sin(epsi) * dt,
        (psi - psides) - yaw,
    ])
