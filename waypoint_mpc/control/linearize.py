import numpy as np

from waypoint_mpc.vehicle.dynamics import horizon_step


def linearize(x, u, dt, curve, lf):
    """
    Forward-difference Jacobians of the horizon step around (x, u).

    Returns A, B, c such that horizon_step(x', u') ~= A x' + B u' + c.
    """
    eps = 1e-6
    nx, nu = len(x), len(u)
    f0 = horizon_step(x, u, dt, curve, lf)

    A = np.zeros((nx, nx))
    B = np.zeros((nx, nu))

    for i in range(nx):
        dx = np.zeros(nx)
        dx[i] = eps
        A[:, i] = (horizon_step(x + dx, u, dt, curve, lf) - f0) / eps

    for i in range(nu):
        du = np.zeros(nu)
        du[i] = eps
        B[:, i] = (horizon_step(x, u + du, dt, curve, lf) - f0) / eps

    c = f0 - A @ x - B @ u
    return A, B, c
