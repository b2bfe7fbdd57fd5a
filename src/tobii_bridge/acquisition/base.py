from abc import ABC, abstractmethod
from typing import Optional

from ..models import GazePoint, HeadPose


class TrackingProvider(ABC):
    """
    Abstract Base Class for all tracking providers.

    A provider wraps a tracking device or SDK and exposes its most recent
    gaze point, head pose and presence result. Any of these may be missing on
    a given frame; callers never assume continuity between frames. All
    methods are called from the acquisition thread.
    """

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Returns True if the provider link is up."""
        ...

    @property
    def name(self) -> str:
        """Returns a human-readable name of the provider."""
        return type(self).__name__

    @abstractmethod
    def connect(self) -> bool:
        """Initializes the provider link. Returns success."""
        ...

    def update(self) -> None:
        """Advances the provider by one frame. Called once per cycle before any read."""

    @abstractmethod
    def latest_gaze_point(self) -> Optional[GazePoint]:
        ...

    @abstractmethod
    def latest_head_pose(self) -> Optional[HeadPose]:
        ...

    @abstractmethod
    def is_present(self) -> bool:
        ...

    @abstractmethod
    def shutdown(self) -> None:
        """Releases provider resources."""
        ...
