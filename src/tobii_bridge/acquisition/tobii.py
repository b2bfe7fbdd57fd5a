import logging
import math
import threading
from typing import Optional

import tobii_research as tr

from .base import TrackingProvider
from ..models import GazePoint, HeadPose
from ..utils.clock import TimeProbe

logger = logging.getLogger(__name__)


class TobiiProvider(TrackingProvider):
    """
    A TrackingProvider backed by a Tobii Pro eye tracker.

    The SDK pushes gaze samples from its own thread; the callback only swaps
    in the newest sample. `update` freezes that sample as the current frame,
    and all reads of the frame come from the acquisition thread.

    The SDK reports no head pose, so one is derived from the two eye origins
    in user coordinates (mm): position is their midpoint, yaw and roll come
    from the inter-ocular vector. Pitch is not observable that way and is 0.
    """

    def __init__(self, address: Optional[str] = None, stale_after_ms: int = 100):
        self.tracker: Optional[tr.EyeTracker] = None
        self._address = address
        self._stale_after_us = stale_after_ms * 1_000

        self._lock = threading.Lock()
        self._latest: Optional[dict] = None
        self._frame: Optional[dict] = None
        self._probe: Optional[TimeProbe] = None
        self._subscribed = False

    @property
    def is_connected(self) -> bool:
        return self.tracker is not None and self._subscribed

    @property
    def name(self) -> str:
        return self.tracker.device_name if self.tracker else "N/A"

    def _gaze_data_callback(self, gaze_data: dict) -> None:
        """Called on the SDK thread for every gaze sample."""
        with self._lock:
            self._latest = gaze_data

    def _find_tracker(self) -> Optional[tr.EyeTracker]:
        if self._address:
            logger.info(f"Connecting to eye tracker at {self._address}...")
            return tr.EyeTracker(self._address)

        logger.info("Searching for eye trackers...")
        eyetrackers = tr.find_all_eyetrackers()
        if not eyetrackers:
            logger.error("No eye trackers found.")
            return None
        return eyetrackers[0]

    def connect(self) -> bool:
        try:
            self.tracker = self._find_tracker()
            if self.tracker is None:
                return False

            logger.info(f"Found tracker: {self.tracker.device_name} ({self.tracker.serial_number})")
            self._probe = TimeProbe.best_of(tr.get_system_time_stamp)

            logger.info("Subscribing to gaze data stream...")
            self.tracker.subscribe_to(
                tr.EYETRACKER_GAZE_DATA, self._gaze_data_callback, as_dictionary=True
            )
            self._subscribed = True
            return True

        except tr.EyeTrackerException as e:
            logger.error(f"A Tobii SDK error occurred: {e}", exc_info=True)
        except Exception:
            logger.exception("Hardware connection failed.")

        self.tracker = None
        return False

    def update(self) -> None:
        with self._lock:
            sample = self._latest

        if sample is not None:
            age_us = tr.get_system_time_stamp() - sample["system_time_stamp"]
            if age_us > self._stale_after_us:
                sample = None

        self._frame = sample

    def latest_gaze_point(self) -> Optional[GazePoint]:
        frame = self._frame
        if frame is None:
            return None

        points = [
            frame[f"{eye}_gaze_point_on_display_area"]
            for eye in ("left", "right")
            if frame[f"{eye}_gaze_point_validity"]
        ]
        if not points:
            return None

        x = sum(p[0] for p in points) / len(points)
        y = sum(p[1] for p in points) / len(points)
        return GazePoint(x=x, y=y, timestamp=self._probe.to_utc_ms(frame["system_time_stamp"]))

    def latest_head_pose(self) -> Optional[HeadPose]:
        frame = self._frame
        if frame is None:
            return None
        if not (frame["left_gaze_origin_validity"] and frame["right_gaze_origin_validity"]):
            return None

        lx, ly, lz = frame["left_gaze_origin_in_user_coordinate_system"]
        rx, ry, rz = frame["right_gaze_origin_in_user_coordinate_system"]
        dx, dy, dz = rx - lx, ry - ly, rz - lz

        return HeadPose(
            yaw=math.degrees(math.atan2(dz, dx)),
            pitch=0.0,
            roll=math.degrees(math.atan2(dy, dx)),
            x=(lx + rx) / 2,
            y=(ly + ry) / 2,
            z=(lz + rz) / 2,
        )

    def is_present(self) -> bool:
        frame = self._frame
        if frame is None:
            return False
        return bool(frame["left_gaze_point_validity"] or frame["right_gaze_point_validity"])

    def shutdown(self) -> None:
        if self._subscribed and self.tracker:
            logger.info("Unsubscribing from gaze data stream...")
            try:
                self.tracker.unsubscribe_from(tr.EYETRACKER_GAZE_DATA, self._gaze_data_callback)
            except tr.EyeTrackerException:
                logger.exception("Failed to unsubscribe from gaze data stream.")
        self._subscribed = False
        self.tracker = None
        self._frame = None
        logger.info("Tobii provider has been cleaned up.")
