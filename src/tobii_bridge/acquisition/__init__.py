from .base import TrackingProvider
from .dummy import DummyProvider

# TobiiProvider needs the optional `tobii-research` SDK and is imported from
# `tobii_bridge.acquisition.tobii` where required.
__all__ = ["TrackingProvider", "DummyProvider"]
