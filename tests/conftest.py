"""pytest configuration and shared fakes for tobii-bridge tests."""

import socket
import uuid
from typing import Optional

import pytest

from tobii_bridge.acquisition import TrackingProvider
from tobii_bridge.configs import BridgeSettings, NetworkSettings, TimingSettings
from tobii_bridge.models import GazePoint, HeadPose


class FakeConnection:
    """Records payloads instead of writing to a socket."""

    def __init__(self, fail: bool = False, on_send=None):
        self.client_id = uuid.uuid4().hex
        self.sent: list[str] = []
        self.fail = fail
        self.on_send = on_send

    def send(self, payload: str) -> bool:
        if self.on_send is not None:
            self.on_send(self)
        if self.fail:
            raise ConnectionResetError("Cannot write to closing transport")
        self.sent.append(payload)
        return True


class FakeProvider(TrackingProvider):
    """Returns whatever the test configured, frame after frame."""

    def __init__(
        self,
        gaze: Optional[GazePoint] = None,
        head: Optional[HeadPose] = None,
        present: bool = False,
        connect_ok: bool = True,
    ):
        self.gaze = gaze
        self.head = head
        self.present = present
        self.connect_ok = connect_ok
        self.read_error: Optional[Exception] = None
        self.updates = 0
        self.shutdowns = 0
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    def connect(self) -> bool:
        self._connected = self.connect_ok
        return self.connect_ok

    def update(self) -> None:
        self.updates += 1
        if self.read_error is not None:
            raise self.read_error

    def latest_gaze_point(self) -> Optional[GazePoint]:
        return self.gaze

    def latest_head_pose(self) -> Optional[HeadPose]:
        return self.head

    def is_present(self) -> bool:
        return self.present

    def shutdown(self) -> None:
        self.shutdowns += 1
        self._connected = False


@pytest.fixture
def make_connection():
    def _make(**kwargs) -> FakeConnection:
        return FakeConnection(**kwargs)
    return _make


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider(
        gaze=GazePoint(x=0.5, y=0.5, timestamp=1000),
        head=HeadPose(yaw=1.0, pitch=2.0, roll=3.0, x=0.0, y=0.0, z=0.0),
        present=True,
    )


@pytest.fixture
def make_provider():
    def _make(**kwargs) -> FakeProvider:
        return FakeProvider(**kwargs)
    return _make


@pytest.fixture
def make_udp_receiver():
    """Loopback UDP sockets bound to ephemeral ports, closed after the test."""
    sockets: list[socket.socket] = []

    def _make(timeout: float = 1.0) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sock.bind(("127.0.0.1", 0))
        sock.settimeout(timeout)
        sockets.append(sock)
        return sock

    yield _make
    for sock in sockets:
        sock.close()


@pytest.fixture
def make_settings():
    def _make(udp_port: int, discovery_port: int, **overrides) -> BridgeSettings:
        network = NetworkSettings(
            host="127.0.0.1",
            websocket_port=0,
            udp_port=udp_port,
            discovery_port=discovery_port,
            broadcast_address="127.0.0.1",
            respond_to_discovery_requests=False,
        )
        timing = TimingSettings(
            update_interval_ms=16,
            discovery_interval_s=0.2,
            heartbeat_interval_s=0,
            shutdown_timeout_s=5.0,
        )
        return BridgeSettings(network=network, timing=timing, **overrides)
    return _make
