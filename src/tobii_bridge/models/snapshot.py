import struct
from dataclasses import dataclass
from typing import Final, Optional

from ..utils.clock import epoch_ms

# The provider exposes no quality metric, so every gaze point and head pose it
# returns is stamped with this fixed placeholder confidence. It is also the
# weight presence contributes to overall quality.
DEFAULT_CONFIDENCE: Final[float] = 0.9
PRESENCE_WEIGHT: Final[float] = 0.9


@dataclass(slots=True, frozen=True)
class GazePoint:
    """A gaze point as reported by a tracking provider."""
    x: float
    y: float
    timestamp: int


@dataclass(slots=True, frozen=True)
class HeadPose:
    """A head pose as reported by a tracking provider. Angles in degrees."""
    yaw: float
    pitch: float
    roll: float
    x: float
    y: float
    z: float


@dataclass(slots=True, frozen=True)
class Position:
    x: float
    y: float
    z: float


@dataclass(slots=True, frozen=True)
class GazeSample:
    x: float
    y: float
    timestamp: int
    confidence: float


@dataclass(slots=True, frozen=True)
class HeadSample:
    yaw: float
    pitch: float
    roll: float
    position: Position
    confidence: float


@dataclass(slots=True, frozen=True)
class SensorSnapshot:
    """
    The single canonical reading distributed to every transport.

    Snapshots are immutable and replaced wholesale on every acquisition
    cycle, so a reader always holds either the previous or the complete new
    reading. `overall_quality` is derived on access and can never go stale.
    """
    timestamp: int
    gaze: Optional[GazeSample] = None
    head: Optional[HeadSample] = None
    present: bool = False

    @property
    def has_gaze(self) -> bool:
        return self.gaze is not None

    @property
    def has_head(self) -> bool:
        return self.head is not None

    @property
    def overall_quality(self) -> float:
        contributors = []
        if self.gaze is not None:
            contributors.append(self.gaze.confidence)
        if self.head is not None:
            contributors.append(self.head.confidence)
        if self.present:
            contributors.append(PRESENCE_WEIGHT)

        if not contributors:
            return 0.0
        return sum(contributors) / len(contributors)

    @classmethod
    def empty(cls) -> "SensorSnapshot":
        return cls(timestamp=0)

    @classmethod
    def capture(
        cls,
        gaze_point: Optional[GazePoint],
        head_pose: Optional[HeadPose],
        present: bool,
        timestamp: Optional[int] = None,
    ) -> "SensorSnapshot":
        """Normalizes one cycle of provider output into a snapshot."""
        gaze = None
        if gaze_point is not None:
            gaze = GazeSample(
                x=float(gaze_point.x),
                y=float(gaze_point.y),
                timestamp=int(gaze_point.timestamp),
                confidence=DEFAULT_CONFIDENCE,
            )

        head = None
        if head_pose is not None:
            head = HeadSample(
                yaw=float(head_pose.yaw),
                pitch=float(head_pose.pitch),
                roll=float(head_pose.roll),
                position=Position(float(head_pose.x), float(head_pose.y), float(head_pose.z)),
                confidence=DEFAULT_CONFIDENCE,
            )

        return cls(
            timestamp=epoch_ms() if timestamp is None else timestamp,
            gaze=gaze,
            head=head,
            present=bool(present),
        )


@dataclass(slots=True, frozen=True)
class LegacyOrientationDatagram:
    """
    OpenTrack-compatible head-pose record.

    Wire Format (24 bytes, no header):
    - yaw, pitch, roll: float32 (degrees)
    - x, y, z: float32
    """

    # < = Little Endian, 6f = six float32
    _PACKER = struct.Struct("<6f")
    SIZE = _PACKER.size

    yaw: float
    pitch: float
    roll: float
    x: float
    y: float
    z: float

    @classmethod
    def from_head(cls, head: HeadSample) -> "LegacyOrientationDatagram":
        return cls(
            yaw=head.yaw,
            pitch=head.pitch,
            roll=head.roll,
            x=head.position.x,
            y=head.position.y,
            z=head.position.z,
        )

    def pack(self) -> bytes:
        return self._PACKER.pack(self.yaw, self.pitch, self.roll, self.x, self.y, self.z)

    @classmethod
    def unpack(cls, payload: bytes) -> "LegacyOrientationDatagram":
        return cls(*cls._PACKER.unpack(payload))
