import json
import logging

from .base import SnapshotSink
from ..core.registry import ClientRegistry
from ..core.state import ControlState
from ..core.store import SnapshotStore
from ..models.messages import data_frame
from ..utils.logging import ThrottledLogger

logger = logging.getLogger(__name__)


class MessageBroadcaster(SnapshotSink):
    """
    Pushes the current snapshot as a `tobii-data` JSON frame to every
    registered WebSocket client.

    The frame is serialized once per cycle. A failing client is logged and
    skipped; it stays registered until its connection reports a close.
    """

    def __init__(self, store: SnapshotStore, registry: ClientRegistry, state: ControlState):
        super().__init__(store)
        self._registry = registry
        self._state = state
        self._failure_logger = ThrottledLogger(logger, interval_sec=5.0)

    def distribute(self) -> bool:
        if self._registry.size() == 0:
            return False

        # Snapshot first, then registry. Neither lock is held during the sends.
        payload = json.dumps(data_frame(self._store.read()))
        clients = self._registry.entries()
        if not clients:
            return False

        for entry in clients:
            try:
                delivered = entry.connection.send(payload)
            except Exception as e:
                self._failure_logger.warning("Failed to send to %s: %s", entry.label, e)
                continue
            if not delivered:
                self._failure_logger.warning("Frame not delivered to %s.", entry.label)

        self._state.packets_distributed.increment()
        return True
