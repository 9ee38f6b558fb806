"""
Simulator wire format.

The simulator talks socket.io over a websocket: text frames prefixed with
"42" carry an event array such as 42["telemetry", {...}].
"""
import json
import logging
from typing import List, Optional

from pydantic import BaseModel, ValidationError, model_validator

from waypoint_mpc.vehicle.state import Pose

logger = logging.getLogger(__name__)

EVENT_PREFIX = "42"
MANUAL_MESSAGE = '42["manual",{}]'


class Telemetry(BaseModel):
    """Telemetry event payload."""
    ptsx: List[float]  # global x of the waypoints
    ptsy: List[float]  # global y of the waypoints
    x: float
    y: float
    psi: Optional[float] = None  # mathematical convention
    psi_unity: Optional[float] = None  # navigation convention, preferred when present
    speed: float  # telemetry units, see ControllerConfig.speed_scale
    steering_angle: float  # rad
    throttle: float  # [-1, 1]

    @model_validator(mode="after")
    def _check_consistency(self):
        if len(self.ptsx) != len(self.ptsy):
            raise ValueError(f"ptsx and ptsy differ in length ({len(self.ptsx)} vs {len(self.ptsy)})")
        if self.psi is None and self.psi_unity is None:
            raise ValueError("telemetry carries neither psi nor psi_unity")
        return self

    def to_pose(self) -> Pose:
        if self.psi_unity is not None:
            return Pose.from_navigation(self.x, self.y, self.psi_unity)
        return Pose(self.x, self.y, self.psi)

    def waypoints(self):
        return list(zip(self.ptsx, self.ptsy))


class SteerCommand(BaseModel):
    """Steer event payload; display points are in the vehicle frame."""
    steering_angle: float  # normalized [-1, 1]
    throttle: float
    mpc_x: List[float] = []
    mpc_y: List[float] = []
    next_x: List[float] = []
    next_y: List[float] = []

    @classmethod
    def from_output(cls, output):
        return cls(
            steering_angle=output.steering,
            throttle=output.throttle,
            mpc_x=[float(p) for p in output.predicted_path[:, 0]],
            mpc_y=[float(p) for p in output.predicted_path[:, 1]],
            next_x=[float(p) for p in output.reference_path[:, 0]],
            next_y=[float(p) for p in output.reference_path[:, 1]],
        )


def extract_payload(frame: str) -> Optional[str]:
    """
    Return the JSON event array inside a frame, or None when the frame has no data.
    """
    if "null" in frame:
        return None
    b1 = frame.find("[")
    b2 = frame.rfind("}]")
    if b1 != -1 and b2 != -1:
        return frame[b1:b2 + 2]
    return None


def decode_event(frame: str):
    """(event, payload) for a "42" frame with data, else None."""
    if len(frame) <= 2 or not frame.startswith(EVENT_PREFIX):
        return None
    payload = extract_payload(frame)
    if payload is None:
        return None
    try:
        data = json.loads(payload)
    except json.JSONDecodeError:
        logger.warning("Dropping malformed frame: %.80s", frame)
        return None
    if not isinstance(data, list) or len(data) < 2 or not isinstance(data[0], str):
        return None
    return data[0], data[1]


def encode_event(event: str, payload: dict) -> str:
    return EVENT_PREFIX + json.dumps([event, payload], separators=(",", ":"))


def handle_frame(controller, frame: str) -> Optional[str]:
    """
    Answer one websocket frame.

    Telemetry yields a "steer" event, a "42" frame without data switches the
    simulator to manual driving, anything else gets no reply.
    """
    if len(frame) <= 2 or not frame.startswith(EVENT_PREFIX):
        return None

    decoded = decode_event(frame)
    if decoded is None:
        return MANUAL_MESSAGE

    event, payload = decoded
    if event != "telemetry":
        return None

    try:
        telemetry = Telemetry.model_validate(payload)
    except ValidationError as e:
        logger.warning("Invalid telemetry, switching to manual: %s", e)
        return MANUAL_MESSAGE

    output = controller.plan(
        telemetry.waypoints(),
        telemetry.to_pose(),
        telemetry.speed * controller.config.speed_scale,
        telemetry.steering_angle,
        telemetry.throttle,
    )
    command = SteerCommand.from_output(output)
    return encode_event("steer", command.model_dump())
