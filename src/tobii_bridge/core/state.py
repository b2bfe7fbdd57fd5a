import threading
from dataclasses import dataclass
from enum import Enum, auto


class BridgeState(Enum):
    """
    Lifecycle of a BridgeServer. Each instance goes through the sequence
    once; there is no restart after STOPPED.
    """
    CREATED = auto()  # Constructed, nothing acquired yet.
    STARTING = auto()  # Connecting the provider and binding transports.
    RUNNING = auto()  # Acquisition and discovery loops active.
    STOPPING = auto()  # Loops signalled, resources being released.
    STOPPED = auto()  # Terminal.


class AtomicCounter:
    """An integer guarded by its own lock."""
    __slots__ = ("_value", "_lock")

    def __init__(self, value: int = 0) -> None:
        self._value = value
        self._lock = threading.Lock()

    def increment(self, amount: int = 1) -> int:
        with self._lock:
            self._value += amount
            return self._value

    def set(self, value: int) -> None:
        with self._lock:
            self._value = value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


@dataclass(frozen=True)
class StatusReport:
    connected: bool
    recording: bool
    calibrating: bool
    clients: int
    packets_processed: int
    packets_distributed: int


class ControlState:
    """
    Process-wide flags and counters shared by the acquisition loop, the
    broadcasters and the command handler.

    Every field synchronizes on its own; there is no consistency guarantee
    across fields read at the same instant.
    """

    def __init__(self) -> None:
        self.connected = threading.Event()
        self.recording = threading.Event()
        self.calibrating = threading.Event()

        self.packets_processed = AtomicCounter()
        self.packets_distributed = AtomicCounter()
        self.client_count = AtomicCounter()

    @staticmethod
    def _assign(flag: threading.Event, value: bool) -> None:
        if value:
            flag.set()
        else:
            flag.clear()

    def set_connected(self, value: bool) -> None:
        self._assign(self.connected, value)

    def set_recording(self, value: bool) -> None:
        self._assign(self.recording, value)

    def set_calibrating(self, value: bool) -> None:
        self._assign(self.calibrating, value)

    def snapshot(self) -> StatusReport:
        return StatusReport(
            connected=self.connected.is_set(),
            recording=self.recording.is_set(),
            calibrating=self.calibrating.is_set(),
            clients=self.client_count.value,
            packets_processed=self.packets_processed.value,
            packets_distributed=self.packets_distributed.value,
        )
