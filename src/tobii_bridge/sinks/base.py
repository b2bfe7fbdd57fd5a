from abc import ABC, abstractmethod

from ..core.store import SnapshotStore


class SnapshotSink(ABC):
    """
    Abstract Base Class for all snapshot distribution sinks.

    A sink is invoked once per acquisition cycle, after the snapshot has been
    written. It reads the snapshot from the store itself, in its own short
    critical section, and forwards it to its transport. `distribute` must
    not block on slow consumers and must not raise for transport failures;
    it reports whether anything was sent.
    """

    def __init__(self, store: SnapshotStore):
        self._store = store

    @abstractmethod
    def distribute(self) -> bool:
        raise NotImplementedError

    def close(self) -> None:
        """Releases transport resources. Safe to call more than once."""
