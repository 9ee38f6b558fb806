import numpy as np


def normalize_steering(steering, vehicle):
    """Steering angle (rad) -> command in [-1, 1]."""
    return float(np.clip(steering / vehicle.max_steer, -1.0, 1.0))


class ActuatorModel:
    """Rate-limited steering/throttle actuator used by the closed-loop simulation."""

    def __init__(self, vehicle, steer_rate, accel_rate):
        self.lower = vehicle.lower_bounds
        self.upper = vehicle.upper_bounds
        self.steer_rate = steer_rate
        self.accel_rate = accel_rate
        self.u = np.zeros(2)

    def apply(self, u_cmd, dt):
        du = np.clip(
            np.asarray(u_cmd, dtype=float) - self.u,
            [-self.steer_rate*dt, -self.accel_rate*dt],
            [ self.steer_rate*dt,  self.accel_rate*dt]
        )
        self.u = np.clip(self.u + du, self.lower, self.upper)
        return self.u.copy()
