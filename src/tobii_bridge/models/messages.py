"""
JSON payloads exchanged over the WebSocket and discovery transports.

Builders return plain dicts; transports own the final `json.dumps`.
"""
from typing import Any, Final, Optional

from pydantic import BaseModel, ConfigDict

from .snapshot import SensorSnapshot
from ..utils.clock import epoch_ms

SERVICE_NAME: Final[str] = "tobii-bridge"
CAPABILITIES: Final[tuple[str, ...]] = ("gaze-tracking", "head-tracking", "presence-detection")


class MessageType:
    DATA = "tobii-data"
    STATUS = "tobii-status"
    CALIBRATION = "tobii-calibration"
    HEARTBEAT = "tobii-heartbeat"
    ANNOUNCEMENT = "tobii-bridge-announcement"
    DISCOVERY_REQUEST = "tobii-discovery-request"


class CommandType:
    START_CALIBRATION = "start-calibration"
    STOP_CALIBRATION = "stop-calibration"
    SET_RECORDING = "set-recording"
    GET_STATUS = "get-status"


class Command(BaseModel):
    """Envelope of a client -> bridge control message."""
    model_config = ConfigDict(extra="allow")

    type: str = ""
    data: Any = None

    def flag(self, name: str, default: bool = False) -> bool:
        """Reads a boolean from `data`, falling back to `default` when absent or malformed."""
        if not isinstance(self.data, dict):
            return default
        value = self.data.get(name, default)
        return value if isinstance(value, bool) else default


def data_frame(snapshot: SensorSnapshot) -> dict[str, Any]:
    data: dict[str, Any] = {"hasGaze": snapshot.has_gaze}
    if snapshot.gaze is not None:
        data["gaze"] = {
            "x": snapshot.gaze.x,
            "y": snapshot.gaze.y,
            "timestamp": snapshot.gaze.timestamp,
            "confidence": snapshot.gaze.confidence,
        }

    data["hasHead"] = snapshot.has_head
    if snapshot.head is not None:
        head = snapshot.head
        data["head"] = {
            "yaw": head.yaw,
            "pitch": head.pitch,
            "roll": head.roll,
            "position": {"x": head.position.x, "y": head.position.y, "z": head.position.z},
            "confidence": head.confidence,
        }

    data["present"] = snapshot.present
    data["overallQuality"] = snapshot.overall_quality

    return {"type": MessageType.DATA, "timestamp": snapshot.timestamp, "data": data}


def calibration_response(status: str, result: Optional[str] = None) -> dict[str, Any]:
    calibration: dict[str, Any] = {"status": status}
    if result is not None:
        calibration["result"] = result
    return {"type": MessageType.CALIBRATION, "calibration": calibration}


def status_response(**status: Any) -> dict[str, Any]:
    return {"type": MessageType.STATUS, "status": status}


def heartbeat() -> dict[str, Any]:
    return {"type": MessageType.HEARTBEAT, "timestamp": epoch_ms()}


def announcement(
    version: str,
    websocket_port: int,
    udp_port: int,
    config_port: int,
    host: Optional[str] = None,
) -> dict[str, Any]:
    message: dict[str, Any] = {
        "type": MessageType.ANNOUNCEMENT,
        "service": SERVICE_NAME,
        "version": version,
        "websocket_port": websocket_port,
        "udp_port": udp_port,
        "config_port": config_port,
        "capabilities": list(CAPABILITIES),
        "timestamp": epoch_ms(),
    }
    if host:
        message["host"] = host
    return message
