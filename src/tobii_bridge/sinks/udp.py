import logging
import socket
from typing import Optional

from .base import SnapshotSink
from ..core.store import SnapshotStore
from ..models import LegacyOrientationDatagram

logger = logging.getLogger(__name__)


def open_broadcast_socket(bind_host: str = "", bind_port: int = 0) -> socket.socket:
    """
    Creates a non-blocking UDP socket allowed to send broadcasts.
    Raises OSError if the socket cannot be created or bound.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
        sock.bind((bind_host, bind_port))
        sock.setblocking(False)
    except OSError:
        sock.close()
        raise
    return sock


class DatagramBroadcaster(SnapshotSink):
    """
    Broadcasts the head-pose subset of each snapshot as a 24-byte
    OpenTrack-compatible datagram.

    Best-effort: cycles without head data send nothing and send failures are
    dropped without logging.
    """

    def __init__(self, store: SnapshotStore, sock: socket.socket, address: tuple[str, int]):
        super().__init__(store)
        self._sock: Optional[socket.socket] = sock
        self._address = address

    @classmethod
    def open(
        cls,
        store: SnapshotStore,
        broadcast_address: str,
        port: int,
        bind_host: str = "",
    ) -> "DatagramBroadcaster":
        sock = open_broadcast_socket(bind_host)
        logger.info(f"Legacy UDP broadcaster targeting {broadcast_address}:{port}")
        return cls(store, sock, (broadcast_address, port))

    @property
    def address(self) -> tuple[str, int]:
        return self._address

    def distribute(self) -> bool:
        head = self._store.read().head
        if head is None or self._sock is None:
            return False

        packet = LegacyOrientationDatagram.from_head(head).pack()
        try:
            self._sock.sendto(packet, self._address)
        except OSError:
            return False
        return True

    def close(self) -> None:
        if self._sock is not None:
            self._sock.close()
            self._sock = None
