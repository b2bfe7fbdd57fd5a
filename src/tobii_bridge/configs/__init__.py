from .app import (
    BridgeSettings,
    DummyProviderConfig,
    NetworkSettings,
    TimingSettings,
    TobiiProviderConfig,
)
from .utils import LoggingConfig

__all__ = [
    "BridgeSettings",
    "DummyProviderConfig",
    "NetworkSettings",
    "TimingSettings",
    "TobiiProviderConfig",
    "LoggingConfig",
]
