"""
Deployment constants for the waypoint MPC controller.

Module-level values are the defaults; ``load_config`` layers a YAML file on
top of them and returns an immutable ``ControllerConfig``.
"""
import dataclasses
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

import numpy as np
import yaml

logger = logging.getLogger(__name__)

DT = 0.1
HORIZON = 10  # 1 second at 0.1s dt

LATENCY = 0.1  # seconds between command and actuation
LF = 2.67  # front axle to center of gravity (m)

STEER_MAX = float(np.deg2rad(25.0))
ACCEL_MAX = 1.0
DECEL_MAX = 1.0

REFERENCE_SPEED = 20.0  # m/s
SPEED_SCALE = 0.44704  # telemetry mph -> m/s

POLY_DEGREE = 3
DISPLAY_POINTS = 20
FALLBACK_ACCEL = -0.5

# MPC weights
WEIGHTS = dict(
    cte=2000.0,
    epsi=2000.0,
    speed=1.0,
    steer=5.0,
    accel=5.0,
    steer_rate=200.0,
    accel_rate=10.0,
)

SOLVER = dict(
    max_iterations=25,
    time_budget=0.5,
    tolerance=1e-4,
)

DEFAULT_CONFIG_PATH = Path(__file__).with_name("default.yaml")


@dataclass(frozen=True)
class PredictionHorizon:
    """Number of planning steps and their duration."""

    steps: int = HORIZON
    dt: float = DT

    def __post_init__(self):
        if int(self.steps) != self.steps or self.steps < 2:
            raise ValueError(f"Horizon needs at least 2 integer steps, got {self.steps}.")
        if self.dt <= 0.0:
            raise ValueError(f"Horizon dt must be positive, got {self.dt}.")


@dataclass(frozen=True)
class CostWeights:
    cte: float = WEIGHTS["cte"]
    epsi: float = WEIGHTS["epsi"]
    speed: float = WEIGHTS["speed"]
    steer: float = WEIGHTS["steer"]
    accel: float = WEIGHTS["accel"]
    steer_rate: float = WEIGHTS["steer_rate"]
    accel_rate: float = WEIGHTS["accel_rate"]

    def __post_init__(self):
        for name, value in dataclasses.asdict(self).items():
            if value < 0.0:
                raise ValueError(f"Cost weight '{name}' must be non-negative, got {value}.")


@dataclass(frozen=True)
class VehicleParams:
    """Geometry and actuator bounds of the controlled vehicle."""

    lf: float = LF
    max_steer: float = STEER_MAX
    max_accel: float = ACCEL_MAX
    max_decel: float = DECEL_MAX

    def __post_init__(self):
        if self.lf <= 0.0:
            raise ValueError(f"Lf must be positive, got {self.lf}.")
        if self.max_steer <= 0.0:
            raise ValueError(f"max_steer must be positive, got {self.max_steer}.")
        if self.max_accel < 0.0 or self.max_decel < 0.0:
            raise ValueError("Acceleration bounds must be non-negative.")

    @property
    def lower_bounds(self) -> np.ndarray:
        return np.array([-self.max_steer, -self.max_decel])

    @property
    def upper_bounds(self) -> np.ndarray:
        return np.array([self.max_steer, self.max_accel])


@dataclass(frozen=True)
class SolverSettings:
    """Iteration and wall-clock budget of one solve."""

    max_iterations: int = SOLVER["max_iterations"]
    time_budget: float = SOLVER["time_budget"]
    tolerance: float = SOLVER["tolerance"]

    def __post_init__(self):
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {self.max_iterations}.")
        if self.time_budget < 0.0:
            raise ValueError(f"time_budget must be >= 0, got {self.time_budget}.")
        if self.tolerance <= 0.0:
            raise ValueError(f"tolerance must be positive, got {self.tolerance}.")


@dataclass(frozen=True)
class ControllerConfig:
    horizon: PredictionHorizon = field(default_factory=PredictionHorizon)
    weights: CostWeights = field(default_factory=CostWeights)
    vehicle: VehicleParams = field(default_factory=VehicleParams)
    solver: SolverSettings = field(default_factory=SolverSettings)
    latency: float = LATENCY
    reference_speed: float = REFERENCE_SPEED
    speed_scale: float = SPEED_SCALE
    poly_degree: int = POLY_DEGREE
    display_points: int = DISPLAY_POINTS
    fallback_acceleration: float = FALLBACK_ACCEL

    def __post_init__(self):
        if self.latency < 0.0:
            raise ValueError(f"latency must be >= 0, got {self.latency}.")
        if self.poly_degree < 1:
            raise ValueError(f"poly_degree must be >= 1, got {self.poly_degree}.")

    def replace(self, **changes) -> "ControllerConfig":
        return dataclasses.replace(self, **changes)


_SECTIONS = {
    "horizon": PredictionHorizon,
    "weights": CostWeights,
    "vehicle": VehicleParams,
    "solver": SolverSettings,
}


def _build_section(cls, values):
    known = {f.name for f in dataclasses.fields(cls)}
    unknown = set(values) - known
    if unknown:
        raise ValueError(f"Unknown keys for {cls.__name__}: {sorted(unknown)}")
    return cls(**values)


def config_from_dict(raw: dict) -> ControllerConfig:
    """Build a ControllerConfig from nested dictionaries, filling gaps with defaults."""
    raw = dict(raw or {})
    kwargs = {}
    for section, cls in _SECTIONS.items():
        values = raw.pop(section, None) or {}
        kwargs[section] = _build_section(cls, values)

    controller = raw.pop("controller", None) or {}
    if raw:
        raise ValueError(f"Unknown config sections: {sorted(raw)}")
    scalar_fields = {f.name for f in dataclasses.fields(ControllerConfig)} - set(_SECTIONS)
    unknown = set(controller) - scalar_fields
    if unknown:
        raise ValueError(f"Unknown keys for controller: {sorted(unknown)}")
    kwargs.update(controller)
    return ControllerConfig(**kwargs)


def load_config(config_path: Optional[Union[str, Path]] = None) -> ControllerConfig:
    """Load configuration from a YAML file, or the bundled defaults."""
    path = DEFAULT_CONFIG_PATH if config_path is None else Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "r") as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config file {path} must contain a mapping at the top level")

    config = config_from_dict(raw)
    logger.info("Loaded configuration from %s", path)
    return config
