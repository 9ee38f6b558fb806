"""
Tests for the websocket bridge.
"""

import json

import pytest
from fastapi.testclient import TestClient

from waypoint_mpc.bridge.messages import MANUAL_MESSAGE, decode_event
from waypoint_mpc.bridge.server import create_app
from waypoint_mpc.config.params import ControllerConfig, SolverSettings
from waypoint_mpc.control.pipeline import MPCController

TELEMETRY = {
    "ptsx": [5.0, 15.0, 25.0, 35.0],
    "ptsy": [0.1, 0.9, 2.5, 4.9],
    "x": 0.0,
    "y": 0.0,
    "psi_unity": 1.5707963267948966,
    "speed": 10.0,
    "steering_angle": 0.0,
    "throttle": 0.0,
}


@pytest.fixture
def client():
    controller = MPCController(ControllerConfig(
        solver=SolverSettings(max_iterations=50, time_budget=10.0),
        reference_speed=10.0,
        speed_scale=1.0,
    ))
    return TestClient(create_app(controller))


def test_root_greeting(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "Hello world" in response.text


def test_telemetry_gets_steer_reply(client):
    with client.websocket_connect("/socket.io/") as ws:
        ws.send_text('42["telemetry",' + json.dumps(TELEMETRY) + "]")
        event, payload = decode_event(ws.receive_text())

    assert event == "steer"
    assert payload["steering_angle"] < 0.0
    assert len(payload["mpc_x"]) == 10


def test_replies_keep_frame_order(client):
    with client.websocket_connect("/socket.io/") as ws:
        ws.send_text('42["telemetry",null]')
        ws.send_text('42["telemetry",' + json.dumps(TELEMETRY) + "]")
        first = ws.receive_text()
        second = ws.receive_text()

    assert first == MANUAL_MESSAGE
    assert decode_event(second)[0] == "steer"
