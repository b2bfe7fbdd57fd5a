import threading

from ..models import SensorSnapshot


class SnapshotStore:
    """
    Holds the latest SensorSnapshot behind a mutex.

    The lock is held only for the reference swap or read, never across I/O.
    Snapshots are immutable, so the value a reader gets stays whole after
    the lock is released.
    """

    def __init__(self, initial: SensorSnapshot | None = None) -> None:
        self._lock = threading.Lock()
        self._snapshot = initial if initial is not None else SensorSnapshot.empty()

    def write(self, snapshot: SensorSnapshot) -> None:
        with self._lock:
            self._snapshot = snapshot

    def read(self) -> SensorSnapshot:
        with self._lock:
            return self._snapshot
