from .snapshot import (
    DEFAULT_CONFIDENCE,
    GazePoint,
    GazeSample,
    HeadPose,
    HeadSample,
    LegacyOrientationDatagram,
    Position,
    SensorSnapshot,
)
from .messages import Command, CommandType, MessageType

__all__ = [
    "DEFAULT_CONFIDENCE",
    "GazePoint",
    "GazeSample",
    "HeadPose",
    "HeadSample",
    "LegacyOrientationDatagram",
    "Position",
    "SensorSnapshot",
    "Command",
    "CommandType",
    "MessageType",
]
