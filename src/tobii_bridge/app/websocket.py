import asyncio
import concurrent.futures
import json
import logging
import uuid
from typing import Optional

from aiohttp import WSCloseCode, WSMsgType, web

from ..core.commands import CommandHandler
from ..core.registry import ClientRegistry
from ..core.state import ControlState
from ..models.messages import heartbeat

logger = logging.getLogger(__name__)


class WebSocketClient:
    """
    Adapts an aiohttp WebSocketResponse to the ClientConnection protocol.

    `send` may be called from any thread. The write is scheduled onto the
    event loop; while the previous frame is still in flight the new one is
    dropped, so a slow consumer only ever costs itself frames.
    """

    def __init__(self, ws: web.WebSocketResponse, loop: asyncio.AbstractEventLoop):
        self.client_id = uuid.uuid4().hex
        self._ws = ws
        self._loop = loop
        self._pending: Optional[concurrent.futures.Future] = None

    @property
    def closed(self) -> bool:
        return self._ws.closed

    def send(self, payload: str) -> bool:
        if self._ws.closed:
            return False

        pending = self._pending
        if pending is not None and not pending.done():
            return False

        coro = self._ws.send_str(payload)
        try:
            future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        except RuntimeError:
            # Event loop already closed during shutdown.
            coro.close()
            return False

        future.add_done_callback(self._on_sent)
        self._pending = future
        return True

    def _on_sent(self, future: concurrent.futures.Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.debug("Send to client %s failed: %s", self.client_id, exc)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, WebSocketClient):
            return NotImplemented
        return self.client_id == other.client_id

    def __hash__(self) -> int:
        return hash(self.client_id)


class WebSocketServer:
    """
    aiohttp WebSocket listener for data subscribers and control commands.

    Every accepted connection is registered for the lifetime of its socket.
    Inbound text messages go to the CommandHandler and any reply is sent back
    on the same connection only. Must be started and closed on the event
    loop it serves.
    """

    def __init__(
        self,
        host: str,
        port: int,
        registry: ClientRegistry,
        state: ControlState,
        commands: CommandHandler,
        heartbeat_interval_s: float = 2.0,
    ):
        self._host = host
        self._port = port
        self._registry = registry
        self._state = state
        self._commands = commands
        self._heartbeat_interval_s = heartbeat_interval_s

        self._runner: Optional[web.AppRunner] = None
        self._sockets: set[web.WebSocketResponse] = set()
        self._heartbeat_task: Optional[asyncio.Task] = None

    @property
    def port(self) -> int:
        """The bound port, which differs from the configured one when that was 0."""
        if self._runner is not None and self._runner.addresses:
            return self._runner.addresses[0][1]
        return self._port

    async def start(self) -> None:
        """Binds the listener. Raises OSError if the port is unavailable."""
        app = web.Application()
        app.router.add_get("/{tail:.*}", self._handle_connection)

        runner = web.AppRunner(app, access_log=None, handle_signals=False)
        await runner.setup()
        try:
            site = web.TCPSite(runner, self._host, self._port, reuse_address=True)
            await site.start()
        except OSError:
            await runner.cleanup()
            raise

        self._runner = runner
        if self._heartbeat_interval_s > 0:
            self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())
        logger.info(f"WebSocket server listening on ws://{self._host}:{self.port}")

    async def close(self) -> None:
        if self._heartbeat_task:
            self._heartbeat_task.cancel()
            await asyncio.gather(self._heartbeat_task, return_exceptions=True)
            self._heartbeat_task = None

        for ws in list(self._sockets):
            await ws.close(code=WSCloseCode.GOING_AWAY, message=b"Server shutdown")

        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            logger.info("WebSocket server closed.")

    async def _handle_connection(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        client = WebSocketClient(ws, asyncio.get_running_loop())
        self._sockets.add(ws)
        self._registry.register(client)
        self._state.client_count.set(self._registry.size())

        try:
            async for msg in ws:
                if msg.type in (WSMsgType.TEXT, WSMsgType.BINARY):
                    await self._on_message(ws, msg.data)
                elif msg.type == WSMsgType.ERROR:
                    logger.warning("WebSocket connection closed with exception: %s", ws.exception())
        finally:
            self._registry.unregister(client)
            self._state.client_count.set(self._registry.size())
            self._sockets.discard(ws)

        return ws

    async def _on_message(self, ws: web.WebSocketResponse, raw: str | bytes) -> None:
        reply = self._commands.handle_message(raw)
        if reply is None:
            return
        try:
            await ws.send_str(json.dumps(reply))
        except ConnectionError as e:
            logger.warning("Failed to reply to client: %s", e)

    async def _heartbeat_loop(self) -> None:
        # Bypasses the per-client in-flight slot used by data frames.
        while True:
            await asyncio.sleep(self._heartbeat_interval_s)
            payload = json.dumps(heartbeat())
            for ws in list(self._sockets):
                if ws.closed:
                    continue
                try:
                    await ws.send_str(payload)
                except ConnectionError as e:
                    logger.debug("Heartbeat not delivered: %s", e)
