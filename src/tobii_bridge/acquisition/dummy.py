import logging
import math
import time
from typing import Optional

from .base import TrackingProvider
from ..models import GazePoint, HeadPose
from ..utils.clock import epoch_ms

logger = logging.getLogger(__name__)


class DummyProvider(TrackingProvider):
    """
    A TrackingProvider that simulates a user in front of the tracker.

    The gaze point follows a circular path and the head sways on yaw and
    pitch, so every transport can be exercised without hardware.
    """

    def __init__(
        self,
        radius: float = 0.2,
        center: tuple[float, float] = (0.5, 0.5),
        speed: float = 0.25,
        head_amplitude_deg: float = 15.0,
    ):
        """
        Args:
            radius: The radius of the circular gaze path (normalized units).
            center: The (x, y) center of the circular path.
            speed: Revolutions per second along the circle.
            head_amplitude_deg: Peak yaw of the simulated head sway.
        """
        self._radius = radius
        self._center_x, self._center_y = center
        self._speed = speed
        self._amplitude = head_amplitude_deg

        self._connected = False
        self._start_time = 0.0
        self._elapsed = 0.0
        self._frame_ts = 0

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def name(self) -> str:
        return "DUM8-7RACKER"

    def connect(self) -> bool:
        self._start_time = time.monotonic()
        self._connected = True
        logger.info("DummyProvider connected.")
        return True

    def update(self) -> None:
        self._elapsed = time.monotonic() - self._start_time
        self._frame_ts = epoch_ms()

    def latest_gaze_point(self) -> Optional[GazePoint]:
        angle = self._elapsed * self._speed * 2 * math.pi
        return GazePoint(
            x=self._center_x + self._radius * math.cos(angle),
            y=self._center_y + self._radius * math.sin(angle),
            timestamp=self._frame_ts,
        )

    def latest_head_pose(self) -> Optional[HeadPose]:
        phase = self._elapsed * self._speed * 2 * math.pi
        return HeadPose(
            yaw=self._amplitude * math.sin(phase),
            pitch=0.5 * self._amplitude * math.sin(2 * phase),
            roll=0.0,
            x=0.0,
            y=0.0,
            z=600.0,
        )

    def is_present(self) -> bool:
        return self._connected

    def shutdown(self) -> None:
        self._connected = False
        logger.info("DummyProvider has stopped.")
