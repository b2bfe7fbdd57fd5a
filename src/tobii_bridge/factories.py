from .acquisition import DummyProvider, TrackingProvider
from .configs import BridgeSettings
from .core.manager import BridgeServer


def create_provider(settings: BridgeSettings) -> TrackingProvider:
    """
    Creates the tracking provider selected by the settings.
    """
    if settings.use_dummy_mode:
        return DummyProvider(
            radius=settings.dummy.radius,
            center=settings.dummy.center,
            speed=settings.dummy.speed,
            head_amplitude_deg=settings.dummy.head_amplitude_deg,
        )

    # Requires the optional `tobii-research` SDK.
    from .acquisition.tobii import TobiiProvider

    return TobiiProvider(
        address=settings.tobii.address,
        stale_after_ms=settings.tobii.stale_after_ms,
    )


def create_server(settings: BridgeSettings) -> BridgeServer:
    return BridgeServer(create_provider(settings), settings)
