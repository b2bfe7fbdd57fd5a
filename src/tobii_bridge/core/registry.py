import itertools
import logging
import threading
from dataclasses import dataclass

from .protocols import ClientConnection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientEntry:
    client_id: str
    label: str
    connection: ClientConnection


class ClientRegistry:
    """
    Tracks the connected WebSocket subscribers, keyed by connection identity.

    Guarded by its own lock, independent of the snapshot store. Its size is
    the authoritative client count.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._clients: dict[str, ClientEntry] = {}
        self._ordinals = itertools.count()

    def register(self, connection: ClientConnection) -> str:
        with self._lock:
            existing = self._clients.get(connection.client_id)
            if existing is not None:
                return existing.label

            entry = ClientEntry(
                client_id=connection.client_id,
                label=f"client_{next(self._ordinals)}",
                connection=connection,
            )
            self._clients[entry.client_id] = entry
            total = len(self._clients)

        logger.info("Client %s connected. Total clients: %d", entry.label, total)
        return entry.label

    def unregister(self, connection: ClientConnection) -> ClientEntry | None:
        with self._lock:
            entry = self._clients.pop(connection.client_id, None)
            total = len(self._clients)

        if entry is not None:
            logger.info("Client %s disconnected. Total clients: %d", entry.label, total)
        return entry

    def entries(self) -> list[ClientEntry]:
        with self._lock:
            return list(self._clients.values())

    def size(self) -> int:
        with self._lock:
            return len(self._clients)

    def __len__(self) -> int:
        return self.size()
