"""
Tests for configuration loading and validation.
"""

import dataclasses

import pytest

from waypoint_mpc.config.params import (
    DEFAULT_CONFIG_PATH,
    ControllerConfig,
    CostWeights,
    PredictionHorizon,
    SolverSettings,
    VehicleParams,
    config_from_dict,
    load_config,
)


def test_bundled_config_matches_defaults():
    config = load_config()

    assert DEFAULT_CONFIG_PATH.exists()
    assert config.horizon == PredictionHorizon()
    assert config.weights == CostWeights()
    assert config.solver == SolverSettings()
    assert config.vehicle.lf == pytest.approx(2.67)
    assert config.vehicle.max_steer == pytest.approx(VehicleParams().max_steer, abs=1e-6)
    assert config.latency == pytest.approx(0.1)
    assert config.speed_scale == pytest.approx(0.44704)


def test_custom_yaml(tmp_path):
    path = tmp_path / "track.yaml"
    path.write_text(
        "horizon:\n"
        "  steps: 15\n"
        "  dt: 0.05\n"
        "weights:\n"
        "  cte: 500.0\n"
        "controller:\n"
        "  reference_speed: 12.0\n"
        "  latency: 0.0\n"
    )
    config = load_config(path)

    assert config.horizon == PredictionHorizon(15, 0.05)
    assert config.weights.cte == 500.0
    assert config.weights.epsi == CostWeights().epsi
    assert config.reference_speed == 12.0
    assert config.latency == 0.0


def test_empty_yaml_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert load_config(path) == ControllerConfig()


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.yaml")


@pytest.mark.parametrize("raw", [
    {"horizon": {"stepz": 10}},
    {"controller": {"speed": 10.0}},
    {"tires": {"mu": 1.0}},
])
def test_unknown_keys_rejected(raw):
    with pytest.raises(ValueError):
        config_from_dict(raw)


@pytest.mark.parametrize("build", [
    lambda: PredictionHorizon(steps=1),
    lambda: PredictionHorizon(dt=0.0),
    lambda: CostWeights(cte=-1.0),
    lambda: VehicleParams(lf=0.0),
    lambda: VehicleParams(max_steer=-0.1),
    lambda: SolverSettings(max_iterations=0),
    lambda: SolverSettings(time_budget=-1.0),
    lambda: ControllerConfig(latency=-0.1),
    lambda: ControllerConfig(poly_degree=0),
])
def test_invalid_values_rejected(build):
    with pytest.raises(ValueError):
        build()


def test_replace_returns_new_config():
    config = ControllerConfig()
    faster = config.replace(reference_speed=30.0)

    assert faster.reference_speed == 30.0
    assert config.reference_speed != 30.0
    assert faster.weights is config.weights


def test_configs_are_frozen():
    config = ControllerConfig()
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.latency = 0.5
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.vehicle.max_steer = 1.0


def test_vehicle_bounds():
    vehicle = VehicleParams(max_steer=0.4, max_accel=1.5, max_decel=2.0)
    assert list(vehicle.lower_bounds) == [-0.4, -2.0]
    assert list(vehicle.upper_bounds) == [0.4, 1.5]
