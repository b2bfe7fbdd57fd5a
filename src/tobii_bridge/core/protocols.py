from typing import Protocol, runtime_checkable


@runtime_checkable
class ClientConnection(Protocol):
    """
    A live WebSocket subscriber as seen by the registry and broadcaster.

    `client_id` is the connection's identity: two handles compare equal if
    and only if their ids do. `send` must not block and reports whether the
    payload was handed to the transport.
    """
    client_id: str

    def send(self, payload: str) -> bool: ...
