from .base import SnapshotSink
from .udp import DatagramBroadcaster, open_broadcast_socket
from .websocket import MessageBroadcaster

__all__ = ["SnapshotSink", "DatagramBroadcaster", "MessageBroadcaster", "open_broadcast_socket"]
