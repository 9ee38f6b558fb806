import numpy as np


def wrap_angle(angle):
    """Map an angle into [-pi, pi)."""
    return float((angle + np.pi) % (2.0 * np.pi) - np.pi)


def _as_points(points):
    pts = np.asarray(points, dtype=float)
    if pts.size == 0:
        return np.zeros((0, 2))
    return pts.reshape(-1, 2)


def to_vehicle_frame(pose, points):
    """
    Express global points in the vehicle frame.

    The vehicle sits at the origin facing +x: every point is translated by
    (-px, -py) and rotated by -psi.

    Args:
        pose: vehicle Pose (mathematical heading)
        points: sequence of global (x, y) pairs

    Returns:
        local points [M, 2]; empty input gives an empty [0, 2] array
    """
    pts = _as_points(points)
    dx = pts[:, 0] - pose.x
    dy = pts[:, 1] - pose.y
    c, s = np.cos(-pose.psi), np.sin(-pose.psi)
    return np.vstack([dx * c - dy * s, dx * s + dy * c]).T


def to_global_frame(pose, points):
    """Inverse of ``to_vehicle_frame``: rotate by psi, then translate by the pose."""
    pts = _as_points(points)
    c, s = np.cos(pose.psi), np.sin(pose.psi)
    gx = pts[:, 0] * c - pts[:, 1] * s + pose.x
    gy = pts[:, 0] * s + pts[:, 1] * c + pose.y
    return np.vstack([gx, gy]).T
