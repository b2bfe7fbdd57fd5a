import asyncio
import logging
import threading
import time
from typing import Optional

from .commands import CommandHandler
from .registry import ClientRegistry
from .runner import AcquisitionLoop
from .state import BridgeState, ControlState
from .store import SnapshotStore
from .. import __version__
from ..acquisition import TrackingProvider
from ..app.bridge import AsyncioLoopThread
from ..app.websocket import WebSocketServer
from ..configs import BridgeSettings
from ..discovery import DiscoveryBeacon, start_discovery_responder
from ..models.messages import announcement
from ..sinks import DatagramBroadcaster, MessageBroadcaster, SnapshotSink, open_broadcast_socket

logger = logging.getLogger(__name__)


class BridgeStartupError(RuntimeError):
    """Raised when the bridge cannot acquire the provider or its transports."""


class BridgeServer:
    """
    The headless core of the bridge: owns the lifecycle of the provider, the
    transports and the acquisition and discovery threads.

    An instance goes through a single start/stop cycle. `stop` is idempotent
    and may be called from any thread, including concurrently with an
    in-flight acquisition cycle.
    """

    def __init__(self, provider: TrackingProvider, settings: Optional[BridgeSettings] = None):
        self.provider = provider
        self.settings = settings if settings is not None else BridgeSettings()

        self.control_state = ControlState()
        self.store = SnapshotStore()
        self.registry = ClientRegistry()
        self.commands = CommandHandler(self.control_state)

        self._state = BridgeState.CREATED
        self._lifecycle_lock = threading.Lock()
        self._stop_event = threading.Event()

        self._loop_thread: Optional[AsyncioLoopThread] = None
        self._ws_server: Optional[WebSocketServer] = None
        self._responder: Optional[asyncio.DatagramTransport] = None
        self._sinks: list[SnapshotSink] = []
        self._beacon: Optional[DiscoveryBeacon] = None
        self._threads: list[threading.Thread] = []

    @property
    def state(self) -> BridgeState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == BridgeState.RUNNING

    @property
    def websocket_port(self) -> int:
        if self._ws_server is not None:
            return self._ws_server.port
        return self.settings.network.websocket_port

    def announcement(self) -> dict:
        net = self.settings.network
        return announcement(
            version=__version__,
            websocket_port=self.websocket_port,
            udp_port=net.udp_port,
            config_port=net.config_port,
            host=net.advertised_host,
        )

    # --- Lifecycle ---

    def start(self) -> None:
        """
        Connects the provider, binds every transport, then launches the
        acquisition and discovery threads.

        Raises:
            BridgeStartupError: if the provider is unavailable or a transport
                cannot be bound. Anything acquired so far is released.
        """
        with self._lifecycle_lock:
            if self._state != BridgeState.CREATED:
                raise RuntimeError(f"BridgeServer cannot start from state {self._state.name}.")
            self._state = BridgeState.STARTING

        logger.info("Starting Tobii bridge v%s...", __version__)
        try:
            self._connect_provider()
            self._open_transports()
        except BridgeStartupError:
            self._release_resources()
            self._state = BridgeState.STOPPED
            raise

        with self._lifecycle_lock:
            if self._state != BridgeState.STARTING:
                # stop() was called while we were starting.
                self._release_resources()
                return
            self._state = BridgeState.RUNNING
            self._launch_threads()

        net = self.settings.network
        logger.info(
            "Tobii bridge running. WebSocket: ws://%s:%d, UDP (OpenTrack): %d, Discovery: UDP:%d",
            net.host, self.websocket_port, net.udp_port, net.discovery_port,
        )

    def stop(self) -> None:
        """Signals both loops to exit, joins them and releases all resources."""
        with self._lifecycle_lock:
            if self._state in (BridgeState.STOPPING, BridgeState.STOPPED):
                return
            if self._state in (BridgeState.CREATED, BridgeState.STARTING):
                # start() observes the change and releases what it acquired.
                self._state = BridgeState.STOPPED
                return
            self._state = BridgeState.STOPPING

        logger.info("Stopping Tobii bridge...")
        self._stop_event.set()

        current = threading.current_thread()
        for thread in self._threads:
            if thread is not current:
                thread.join(self.settings.timing.shutdown_timeout_s)
                if thread.is_alive():
                    logger.warning("Thread %s did not exit within the shutdown timeout.", thread.name)

        self._release_resources()
        self._state = BridgeState.STOPPED
        logger.info("Tobii bridge stopped.")

    def wait_for_completion(self, timeout: Optional[float] = None) -> bool:
        """
        Blocks until the acquisition and discovery threads have exited.
        Returns False if the timeout elapsed first. The timeout bounds the
        whole wait, not each thread.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        for thread in list(self._threads):
            while thread.is_alive():
                if deadline is None:
                    # Short joins keep the main thread responsive to KeyboardInterrupt.
                    thread.join(0.5)
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                thread.join(min(0.5, remaining))
        return True

    # --- Startup steps ---

    def _connect_provider(self) -> None:
        logger.info("Connecting tracking provider %s...", self.provider.name)
        try:
            connected = self.provider.connect()
        except Exception as e:
            raise BridgeStartupError(f"Tracking provider failed to initialize: {e}") from e

        if not connected or not self.provider.is_connected:
            raise BridgeStartupError("Tracking provider is unavailable.")

        self.control_state.set_connected(True)
        logger.info("Tracking provider %s connected.", self.provider.name)

    def _open_transports(self) -> None:
        net = self.settings.network
        timing = self.settings.timing

        try:
            datagram = DatagramBroadcaster.open(
                self.store, net.broadcast_address, net.udp_port, bind_host=""
            )
        except OSError as e:
            raise BridgeStartupError(f"Cannot open legacy UDP socket: {e}") from e
        message = MessageBroadcaster(self.store, self.registry, self.control_state)
        self._sinks = [message, datagram]

        try:
            discovery_sock = open_broadcast_socket()
        except OSError as e:
            raise BridgeStartupError(f"Cannot open discovery socket: {e}") from e
        self._beacon = DiscoveryBeacon(
            discovery_sock,
            self.announcement,
            (net.broadcast_address, net.discovery_port),
            self._stop_event,
            period_s=timing.discovery_interval_s,
        )

        self._loop_thread = AsyncioLoopThread()
        try:
            self._loop_thread.start(timeout=timing.shutdown_timeout_s)
        except RuntimeError as e:
            raise BridgeStartupError(str(e)) from e
        self._ws_server = WebSocketServer(
            host=net.host,
            port=net.websocket_port,
            registry=self.registry,
            state=self.control_state,
            commands=self.commands,
            heartbeat_interval_s=timing.heartbeat_interval_s,
        )
        try:
            self._loop_thread.run_coro_threadsafe(self._ws_server.start()).result(
                timeout=timing.shutdown_timeout_s
            )
        except Exception as e:
            self._ws_server = None
            raise BridgeStartupError(
                f"Cannot bind WebSocket server on {net.host}:{net.websocket_port}: {e}"
            ) from e

        if net.respond_to_discovery_requests:
            future = self._loop_thread.run_coro_threadsafe(
                start_discovery_responder(
                    self.announcement, net.host, net.discovery_port, net.discovery_response_port
                )
            )
            try:
                self._responder = future.result(timeout=timing.shutdown_timeout_s)
            except Exception as e:
                future.cancel()
                raise BridgeStartupError(
                    f"Cannot start discovery responder on {net.host}:{net.discovery_port}: {e}"
                ) from e

    def _launch_threads(self) -> None:
        acquisition = AcquisitionLoop(
            provider=self.provider,
            store=self.store,
            state=self.control_state,
            sinks=self._sinks,
            stop_event=self._stop_event,
            interval_s=self.settings.timing.update_interval_ms / 1000,
        )
        self._threads = [
            threading.Thread(target=acquisition.run, name="AcquisitionLoop", daemon=True),
            threading.Thread(target=self._beacon.run, name="DiscoveryBeacon", daemon=True),
        ]
        for thread in self._threads:
            thread.start()

    # --- Teardown ---

    def _release_resources(self) -> None:
        timeout = self.settings.timing.shutdown_timeout_s

        if self._loop_thread is not None and self._loop_thread.is_running:
            try:
                self._loop_thread.run_coro_threadsafe(self._close_network()).result(timeout=timeout)
            except Exception:
                logger.exception("Error while closing network listeners.")
            self._loop_thread.stop(timeout)
        self._loop_thread = None
        self._ws_server = None
        self._responder = None

        for sink in self._sinks:
            sink.close()
        if self._beacon is not None:
            self._beacon.close()

        if self.control_state.connected.is_set() or self.provider.is_connected:
            try:
                self.provider.shutdown()
            except Exception:
                logger.exception("Error while shutting down the tracking provider.")
        self.control_state.set_connected(False)

    async def _close_network(self) -> None:
        if self._responder is not None:
            self._responder.close()
        if self._ws_server is not None:
            await self._ws_server.close()
