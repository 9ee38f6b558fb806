"""
One control cycle: waypoints + pose -> bounded actuation and display paths.

transform -> fit -> latency compensation -> optimize, with a safe default
command whenever fitting or solving fails for the cycle.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from waypoint_mpc.config.params import ControllerConfig
from waypoint_mpc.control.errors import CurveFitError, SolverError
from waypoint_mpc.control.mpc import TrajectoryOptimizer
from waypoint_mpc.track import polyfit
from waypoint_mpc.track.frames import to_vehicle_frame
from waypoint_mpc.vehicle.actuators import normalize_steering
from waypoint_mpc.vehicle.latency import compensate_latency, initial_state
from waypoint_mpc.vehicle.state import Actuation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ControlOutput:
    steering: float  # normalized to [-1, 1]
    throttle: float
    actuation: Actuation
    reference_path: np.ndarray  # (M, 2) local frame
    predicted_path: np.ndarray  # (N, 2) local frame, empty on fallback
    fallback: bool = False
    reason: Optional[str] = None


class MPCController:
    """Runs the control pipeline with a fixed, immutable configuration."""

    def __init__(self, config: Optional[ControllerConfig] = None):
        self.config = config or ControllerConfig()
        self.optimizer = TrajectoryOptimizer(
            self.config.horizon,
            self.config.weights,
            self.config.vehicle,
            solver=self.config.solver,
            reference_speed=self.config.reference_speed,
        )

    def fit_degree(self, n_points):
        """Configured degree, lowered when fewer waypoints are visible (minimum 1)."""
        return max(1, min(self.config.poly_degree, n_points - 1))

    def plan(self, waypoints, pose, speed, steering, throttle) -> ControlOutput:
        """
        Compute the command for one cycle.

        Args:
            waypoints: global (x, y) reference points
            pose: vehicle Pose, mathematical heading
            speed: current speed in m/s
            steering: current steering angle (rad)
            throttle: current throttle, used as acceleration

        Returns:
            ControlOutput; ``fallback`` is set when the safe default was used
        """
        local_pts = to_vehicle_frame(pose, waypoints)

        try:
            curve = polyfit.fit(local_pts, self.fit_degree(len(local_pts)))
        except CurveFitError as e:
            logger.warning("Curve fit failed, sending safe default: %s", e)
            return self._fallback(local_pts, e)

        x_max = float(np.max(local_pts[:, 0])) if len(local_pts) else 0.0
        reference = polyfit.sample(curve, x_max, self.config.display_points)

        state = initial_state(curve, speed)
        state = compensate_latency(state, steering, throttle, self.config.latency, self.config.vehicle.lf)

        try:
            result = self.optimizer.solve(state, curve)
        except SolverError as e:
            logger.warning("MPC solve failed (%s), sending safe default: %s", type(e).__name__, e)
            return self._fallback(reference, e)

        actuation = result.actuation.clamped(self.config.vehicle)
        return ControlOutput(
            steering=normalize_steering(actuation.steering, self.config.vehicle),
            throttle=actuation.acceleration,
            actuation=actuation,
            reference_path=reference,
            predicted_path=result.predicted_path,
        )

    def _fallback(self, reference, error):
        reference = np.asarray(reference, dtype=float).reshape(-1, 2)
        reference = reference[np.all(np.isfinite(reference), axis=1)]
        actuation = Actuation(0.0, self.config.fallback_acceleration).clamped(self.config.vehicle)
        return ControlOutput(
            steering=0.0,
            throttle=actuation.acceleration,
            actuation=actuation,
            reference_path=reference,
            predicted_path=np.zeros((0, 2)),
            fallback=True,
            reason=type(error).__name__,
        )
