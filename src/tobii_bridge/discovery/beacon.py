import asyncio
import json
import logging
import socket
import threading
from typing import Any, Callable, Optional

from ..models import MessageType

logger = logging.getLogger(__name__)

AnnouncementFactory = Callable[[], dict[str, Any]]


class DiscoveryBeacon:
    """
    Periodically broadcasts the bridge announcement so clients on the local
    network can find it without configuration.

    Runs on its own thread and shares nothing with the acquisition loop but
    the stop event. Send failures are ignored; the next tick retries.
    """

    def __init__(
        self,
        sock: socket.socket,
        announcement_factory: AnnouncementFactory,
        address: tuple[str, int],
        stop_event: threading.Event,
        period_s: float = 5.0,
    ):
        if period_s <= 0:
            raise ValueError("period_s must be positive.")

        self._sock: Optional[socket.socket] = sock
        self._announcement_factory = announcement_factory
        self._address = address
        self._stop_event = stop_event
        self._period_s = period_s
        self.announcements_sent = 0

    def announce(self) -> bool:
        if self._sock is None:
            return False
        try:
            payload = json.dumps(self._announcement_factory()).encode("utf-8")
            self._sock.sendto(payload, self._address)
        except OSError:
            return False
        self.announcements_sent += 1
        return True

    def run(self) -> None:
        logger.info(
            "Discovery beacon started. Announcing to %s:%d every %.1fs.",
            *self._address, self._period_s,
        )
        while not self._stop_event.is_set():
            self.announce()
            self._stop_event.wait(self._period_s)
        logger.info("Discovery beacon stopped.")

    def close(self) -> None:
        if self._sock is not None:
            self._sock.close()
            self._sock = None

class DiscoveryResponder(asyncio.DatagramProtocol):
    """
    Answers `tobii-discovery-request` datagrams with the announcement.

    Clients send the request from a throwaway socket and listen for replies
    on a fixed port, so the reply goes to the requester's host on
    `response_port` rather than to the request's source port. Everything
    else arriving on the discovery port, including the bridge's own
    broadcasts, is ignored.
    """

    def __init__(self, announcement_factory: AnnouncementFactory, response_port: int):
        self._announcement_factory = announcement_factory
        self._response_port = response_port
        self._transport: Optional[asyncio.DatagramTransport] = None
        self.requests_answered = 0

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self._transport = transport  # type: ignore[assignment]

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        try:
            message = json.loads(data)
        except (UnicodeDecodeError, json.JSONDecodeError):
            return

        if not isinstance(message, dict) or message.get("type") != MessageType.DISCOVERY_REQUEST:
            return

        reply_to = (addr[0], self._response_port)
        logger.debug("Discovery request from %s:%d, answering on %s:%d", *addr, *reply_to)
        if self._transport is not None:
            payload = json.dumps(self._announcement_factory()).encode("utf-8")
            self._transport.sendto(payload, reply_to)
            self.requests_answered += 1

    def error_received(self, exc: Exception) -> None:
        logger.debug("Discovery responder socket error: %s", exc)

    def connection_lost(self, exc: Optional[Exception]) -> None:
        self._transport = None


async def start_discovery_responder(
    announcement_factory: AnnouncementFactory,
    host: str,
    port: int,
    response_port: int,
) -> Optional[asyncio.DatagramTransport]:
    """
    Binds the responder on the discovery port. Returns None if the port is
    unavailable; discovery then relies on the periodic beacon alone.
    """
    loop = asyncio.get_running_loop()
    try:
        transport, _ = await loop.create_datagram_endpoint(
            lambda: DiscoveryResponder(announcement_factory, response_port),
            local_addr=(host, port),
            allow_broadcast=True,
        )
    except OSError as e:
        logger.warning(f"Discovery responder disabled, cannot bind {host}:{port}: {e}")
        return None

    logger.info(f"Discovery responder listening on {host}:{port}, replying to port {response_port}")
    return transport
