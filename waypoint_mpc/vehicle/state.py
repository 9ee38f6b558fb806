"""
Plain data passed between the pipeline stages.

Angles are radians in the mathematical convention (0 along +x,
counter-clockwise positive). Steering follows the simulator convention:
a positive steering angle turns the vehicle clockwise.
"""
from dataclasses import dataclass

import numpy as np

from waypoint_mpc.config.params import VehicleParams
from waypoint_mpc.track.frames import wrap_angle


@dataclass(frozen=True)
class Pose:
    x: float
    y: float
    psi: float

    @classmethod
    def from_navigation(cls, x, y, heading):
        """Build a pose from a navigation heading (0 = north, clockwise positive)."""
        return cls(float(x), float(y), wrap_angle(np.pi / 2.0 - heading))


@dataclass(frozen=True)
class VehicleState:
    """Local-frame state [x, y, psi, v, cte, epsi]."""

    x: float
    y: float
    psi: float
    v: float
    cte: float
    epsi: float

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.psi, self.v, self.cte, self.epsi], dtype=float)


@dataclass(frozen=True)
class Actuation:
    steering: float
    acceleration: float

    def clamped(self, vehicle: VehicleParams) -> "Actuation":
        return Actuation(
            float(np.clip(self.steering, -vehicle.max_steer, vehicle.max_steer)),
            float(np.clip(self.acceleration, -vehicle.max_decel, vehicle.max_accel)),
        )

    def as_array(self) -> np.ndarray:
        return np.array([self.steering, self.acceleration], dtype=float)


@dataclass(frozen=True)
class OptimizationResult:
    actuation: Actuation
    predicted_path: np.ndarray  # (N, 2) local-frame x, y
    iterations: int = 0
    solve_time: float = 0.0
    cost: float = 0.0
