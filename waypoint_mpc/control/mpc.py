import logging
import time

import numpy as np
import scipy.sparse as sp
import osqp

from waypoint_mpc.config.params import REFERENCE_SPEED, SolverSettings
from waypoint_mpc.control.errors import SolverDivergedError, SolverTimeoutError
from waypoint_mpc.control.linearize import linearize
from waypoint_mpc.vehicle.dynamics import horizon_step
from waypoint_mpc.vehicle.state import Actuation, OptimizationResult

logger = logging.getLogger(__name__)

NX = 6  # [x, y, psi, v, cte, epsi]
NU = 2  # [steering, accel]

# Inner QP accuracy; must stay well below SolverSettings.tolerance.
QP_EPS = 1e-6
QP_MAX_ITER = 20000

_QP_SOLVED = (1, 2)  # OSQP solved, solved inaccurate
_QP_BUDGET_STATUSES = ("maximum iterations", "time limit")


class TrajectoryOptimizer:
    """
    Nonlinear MPC over the kinematic bicycle model, solved by sequential
    quadratic programming with OSQP.

    Decision vector z is stacked as:
    [x_0, ..., x_{N-1}, u_0, ..., u_{N-2}]

    Every iteration linearizes the dynamics around the current iterate and
    solves the resulting QP; the cost is already quadratic so only the
    equality constraints change between iterations. The optimizer keeps no
    state between ``solve`` calls.
    """

    def __init__(self, horizon, weights, vehicle, solver=None, reference_speed=REFERENCE_SPEED):
        self.horizon = horizon
        self.weights = weights
        self.vehicle = vehicle
        self.settings = solver or SolverSettings()
        self.reference_speed = float(reference_speed)

        self.N = horizon.steps
        self.n_states = self.N * NX
        self.n_vars = self.n_states + (self.N - 1) * NU

        self.P, self.q = self._build_cost()
        self._P_upper = sp.triu(self.P, format="csc")
        self._cost_offset = self.N * self.weights.speed * self.reference_speed ** 2
        self._input_rows = self._build_input_constraints()

    def _x_slice(self, k):
        return slice(k * NX, (k + 1) * NX)

    def _u_slice(self, k):
        start = self.n_states + k * NU
        return slice(start, start + NU)

    def _unpack(self, z):
        X = z[:self.n_states].reshape(self.N, NX)
        U = z[self.n_states:].reshape(self.N - 1, NU)
        return X, U

    def _build_cost(self):
        """
        Build QP objective 1/2 z'Pz + q'z for:
        sum_k w_cte cte_k^2 + w_epsi epsi_k^2 + w_speed (v_k - v_ref)^2
        + sum_k u_k' R u_k + sum_k (u_{k+1} - u_k)' Rd (u_{k+1} - u_k)
        """
        w = self.weights
        Q = np.diag([0.0, 0.0, 0.0, w.speed, w.cte, w.epsi])
        R = np.diag([w.steer, w.accel])
        Rd = np.diag([w.steer_rate, w.accel_rate])
        M = self.N - 1

        state_block = sp.kron(sp.eye(self.N), Q)
        input_block = sp.kron(sp.eye(M), R)
        if M > 1:
            # D u stacks the consecutive actuation differences
            D = sp.diags([-np.ones(M - 1), np.ones(M - 1)], [0, 1], shape=(M - 1, M))
            input_block = input_block + sp.kron(D.T @ D, Rd)
        P = 2.0 * sp.block_diag([state_block, input_block], format="csc")

        q = np.zeros(self.n_vars)
        q[3:self.n_states:NX] = -2.0 * w.speed * self.reference_speed
        return P, q

    def _build_initial_constraint(self, x0):
        """Pin x_0 to the measured (latency compensated) state."""
        row = np.zeros((NX, self.n_vars))
        row[:, self._x_slice(0)] = np.eye(NX)
        return [row], [x0], [x0]

    def _build_dynamics_constraints(self, A, B, c):
        """Enforce x_{k+1} = A_k x_k + B_k u_k + c_k around the current iterate."""
        rows, lower, upper = [], [], []
        for k in range(self.N - 1):
            row = np.zeros((NX, self.n_vars))
            row[:, self._x_slice(k)] = -A[k]
            row[:, self._x_slice(k + 1)] = np.eye(NX)
            row[:, self._u_slice(k)] = -B[k]
            rows.append(row)
            lower.append(c[k])
            upper.append(c[k])
        return rows, lower, upper

    def _build_input_constraints(self):
        """Box constraints u_min <= u_k <= u_max."""
        rows, lower, upper = [], [], []
        for k in range(self.N - 1):
            row = np.zeros((NU, self.n_vars))
            row[:, self._u_slice(k)] = np.eye(NU)
            rows.append(row)
            lower.append(self.vehicle.lower_bounds)
            upper.append(self.vehicle.upper_bounds)
        return rows, lower, upper

    def _initial_guess(self, x0, curve):
        """Zero-actuation rollout from x0; feasible for the nonlinear dynamics."""
        z = np.zeros(self.n_vars)
        x = x0
        z[self._x_slice(0)] = x
        for k in range(self.N - 1):
            x = horizon_step(x, np.zeros(NU), self.horizon.dt, curve, self.vehicle.lf)
            z[self._x_slice(k + 1)] = x
        return z

    def _defect(self, z, curve):
        """Largest violation of the nonlinear dynamics by iterate z."""
        X, U = self._unpack(z)
        worst = 0.0
        for k in range(self.N - 1):
            predicted = horizon_step(X[k], U[k], self.horizon.dt, curve, self.vehicle.lf)
            worst = max(worst, float(np.max(np.abs(X[k + 1] - predicted))))
        return worst

    def _solve_qp(self, x0, A, B, c, time_limit, iteration):
        rows, l, u = [], [], []
        builders = [
            self._build_initial_constraint(x0),
            self._build_dynamics_constraints(A, B, c),
            self._input_rows,
        ]
        for block_rows, block_l, block_u in builders:
            rows.extend(block_rows)
            l.extend(block_l)
            u.extend(block_u)

        Aqp = sp.csc_matrix(np.vstack(rows))
        lqp = np.hstack(l)
        uqp = np.hstack(u)

        solver = osqp.OSQP()
        solver.setup(P=self._P_upper, q=self.q, A=Aqp, l=lqp, u=uqp, verbose=False,
                     eps_abs=QP_EPS, eps_rel=QP_EPS, max_iter=QP_MAX_ITER,
                     time_limit=time_limit)
        # Failed QPs come back as a status, mapped to SolverError below
        res = solver.solve(raise_error=False)

        status = str(res.info.status)
        if res.info.status_val in _QP_SOLVED and res.x is not None and np.all(np.isfinite(res.x)):
            return np.asarray(res.x, dtype=float)

        if any(tag in status.lower() for tag in _QP_BUDGET_STATUSES):
            raise SolverTimeoutError(
                f"QP stopped on its own budget at SQP iteration {iteration}: {status}",
                status=status, iterations=iteration,
            )
        raise SolverDivergedError(
            f"QP failed at SQP iteration {iteration}: {status}",
            status=status, iterations=iteration,
        )

    def solve(self, state, curve):
        """
        Optimize the horizon from ``state`` against ``curve``.

        Args:
            state: latency-compensated VehicleState (local frame)
            curve: ReferenceCurve

        Returns:
            OptimizationResult with the first actuation and the predicted path

        Raises:
            SolverDivergedError: no finite feasible solution
            SolverTimeoutError: iteration or time budget exhausted
        """
        start = time.perf_counter()
        budget = self.settings.time_budget
        tol = self.settings.tolerance

        x0 = state.as_array()
        if not np.all(np.isfinite(x0)):
            raise SolverDivergedError("Initial state is not finite", status="invalid state")

        z = self._initial_guess(x0, curve)
        if not np.all(np.isfinite(z)):
            raise SolverDivergedError("Initial rollout is not finite", status="invalid rollout")

        converged = False
        iteration = 0
        for iteration in range(1, self.settings.max_iterations + 1):
            remaining = budget - (time.perf_counter() - start)
            if remaining <= 0.0:
                raise SolverTimeoutError(
                    f"Time budget of {budget:.3f}s exceeded after {iteration - 1} iterations",
                    status="time budget", iterations=iteration - 1,
                )

            X, U = self._unpack(z)
            A, B, c = [], [], []
            for k in range(self.N - 1):
                a, b, cc = linearize(X[k], U[k], self.horizon.dt, curve, self.vehicle.lf)
                A.append(a)
                B.append(b)
                c.append(cc)

            z_next = self._solve_qp(x0, A, B, c, remaining, iteration)
            step = float(np.max(np.abs(z_next - z)))
            z = z_next

            defect = self._defect(z, curve)
            if not np.isfinite(defect):
                raise SolverDivergedError(
                    "Iterate left the finite range", status="non-finite", iterations=iteration,
                )

            scale = 1.0 + float(np.max(np.abs(z)))
            logger.debug("SQP iteration %d: step=%.3e defect=%.3e", iteration, step, defect)
            if step <= tol * scale and defect <= tol * scale:
                converged = True
                break

        if not converged:
            raise SolverTimeoutError(
                f"No convergence within {self.settings.max_iterations} iterations",
                status="iteration budget", iterations=iteration,
            )

        X, U = self._unpack(z)
        actuation = Actuation(float(U[0, 0]), float(U[0, 1])).clamped(self.vehicle)
        cost = float(0.5 * z @ (self.P @ z) + self.q @ z + self._cost_offset)
        elapsed = time.perf_counter() - start

        logger.debug(
            "Solved in %d iterations (%.1f ms): steering=%.4f accel=%.3f cost=%.3f",
            iteration, elapsed * 1000.0, actuation.steering, actuation.acceleration, cost,
        )
        return OptimizationResult(
            actuation=actuation,
            predicted_path=X[:, :2].copy(),
            iterations=iteration,
            solve_time=elapsed,
            cost=cost,
        )
