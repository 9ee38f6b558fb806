"""Failure types raised by the fitting and optimization stages."""


class MPCError(Exception):
    """Base class for control-cycle failures that the pipeline recovers from."""


class CurveFitError(MPCError):
    pass


class InsufficientPointsError(CurveFitError):
    def __init__(self, count, degree):
        super().__init__(
            f"Need at least {degree + 1} points for a degree {degree} fit, got {count}."
        )
        self.count = count
        self.degree = degree


class NonFinitePointsError(CurveFitError):
    def __init__(self, count):
        super().__init__(f"{count} fit point(s) contain NaN or infinite coordinates.")
        self.count = count


class SingularFitError(CurveFitError):
    def __init__(self, rank, degree):
        super().__init__(
            f"Design matrix has rank {rank}, need {degree + 1}; "
            "waypoints do not have enough distinct x coordinates."
        )
        self.rank = rank
        self.degree = degree


class SolverError(MPCError):
    def __init__(self, message, status=None, iterations=0):
        super().__init__(message)
        self.status = status
        self.iterations = iterations


class SolverDivergedError(SolverError):
    """No feasible, finite solution was found."""


class SolverTimeoutError(SolverError):
    """Iteration or wall-clock budget ran out before convergence."""
