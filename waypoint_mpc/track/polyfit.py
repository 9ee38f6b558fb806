"""
Least-squares polynomial reference curves y = f(x) in the vehicle frame.
"""
from dataclasses import dataclass

import numpy as np
from scipy.linalg import qr, solve_triangular

from waypoint_mpc.control.errors import InsufficientPointsError, NonFinitePointsError, SingularFitError

# Relative threshold on |R_ii| below which a pivoted column counts as dependent.
RANK_RTOL = 1e-10


@dataclass(frozen=True)
class ReferenceCurve:
    """Polynomial coefficients ordered from the constant term upward."""

    coefficients: np.ndarray

    def __post_init__(self):
        object.__setattr__(self, "coefficients", np.asarray(self.coefficients, dtype=float).ravel())

    @property
    def degree(self) -> int:
        return len(self.coefficients) - 1


def fit(points, degree=3):
    """
    Fit a polynomial of the given degree through local-frame points.

    Solves the Vandermonde least-squares system with a column-pivoted QR
    decomposition instead of the normal equations.

    Args:
        points: sequence of (x, y) pairs
        degree: polynomial degree

    Returns:
        ReferenceCurve

    Raises:
        InsufficientPointsError: fewer than degree + 1 points
        SingularFitError: fewer than degree + 1 independent columns, e.g.
            repeated x coordinates
        NonFinitePointsError: a point has a NaN or infinite coordinate
    """
    if degree < 0:
        raise ValueError(f"Polynomial degree must be non-negative, got {degree}.")

    pts = np.asarray(points, dtype=float)
    pts = pts.reshape(-1, 2) if pts.size else np.zeros((0, 2))
    if len(pts) < degree + 1:
        raise InsufficientPointsError(len(pts), degree)

    bad = ~np.all(np.isfinite(pts), axis=1)
    if np.any(bad):
        raise NonFinitePointsError(int(np.sum(bad)))

    xs, ys = pts[:, 0], pts[:, 1]
    A = np.vander(xs, degree + 1, increasing=True)

    Q, R, perm = qr(A, mode="economic", pivoting=True)
    diag = np.abs(np.diag(R))
    rank = int(np.sum(diag > RANK_RTOL * max(diag[0], 1.0)))
    if rank < degree + 1:
        raise SingularFitError(rank, degree)

    solution = solve_triangular(R, Q.T @ ys)
    coeffs = np.empty(degree + 1)
    coeffs[perm] = solution
    return ReferenceCurve(coeffs)


def evaluate(curve, x):
    """Horner evaluation of the curve at x (scalar or array)."""
    result = np.zeros_like(np.asarray(x, dtype=float))
    for c in curve.coefficients[::-1]:
        result = result * x + c
    return float(result) if np.ndim(result) == 0 else result


def derivative_at(curve, x):
    """First derivative at x; at x = 0 this is exactly coefficients[1]."""
    coeffs = curve.coefficients
    if len(coeffs) < 2:
        return 0.0 if np.ndim(x) == 0 else np.zeros_like(np.asarray(x, dtype=float))
    dcoeffs = coeffs[1:] * np.arange(1, len(coeffs))
    return evaluate(ReferenceCurve(dcoeffs), x)


def sample(curve, x_max, count=20):
    """Evenly spaced points on the curve between x = 0 and x_max."""
    if count < 1:
        return np.zeros((0, 2))
    xs = np.linspace(0.0, max(float(x_max), 0.0), count)
    return np.vstack([xs, evaluate(curve, xs)]).T
