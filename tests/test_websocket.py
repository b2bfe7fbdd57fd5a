"""Tests for the aiohttp WebSocket server and its client adapter."""

import asyncio
import concurrent.futures
import inspect
import json
import time
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest
import pytest_asyncio

from tobii_bridge.app import AsyncioLoopThread, WebSocketClient, WebSocketServer
from tobii_bridge.core import ClientRegistry, CommandHandler, ControlState, SnapshotStore
from tobii_bridge.models import GazePoint, HeadPose, SensorSnapshot
from tobii_bridge.sinks import MessageBroadcaster


async def wait_for(predicate, timeout: float = 2.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


async def receive_json(ws: aiohttp.ClientWebSocketResponse, timeout: float = 2.0) -> dict:
    return json.loads(await ws.receive_str(timeout=timeout))


class Harness:
    def __init__(self, heartbeat_interval_s: float = 0):
        self.state = ControlState()
        self.registry = ClientRegistry()
        self.store = SnapshotStore()
        self.server = WebSocketServer(
            "127.0.0.1", 0, self.registry, self.state, CommandHandler(self.state),
            heartbeat_interval_s=heartbeat_interval_s,
        )

    @property
    def url(self) -> str:
        return f"ws://127.0.0.1:{self.server.port}/"


@pytest_asyncio.fixture
async def harness():
    h = Harness()
    await h.server.start()
    yield h
    await h.server.close()


@pytest_asyncio.fixture
async def session():
    async with aiohttp.ClientSession() as s:
        yield s


class TestWebSocketServer:

    @pytest.mark.asyncio
    async def test_binds_ephemeral_port(self, harness):
        assert harness.server.port != 0

    @pytest.mark.asyncio
    async def test_connections_are_registered_and_counted(self, harness, session):
        first = await session.ws_connect(harness.url)
        second = await session.ws_connect(harness.url)
        await wait_for(lambda: harness.state.client_count.value == 2)

        labels = {entry.label for entry in harness.registry.entries()}
        assert labels == {"client_0", "client_1"}

        await first.close()
        await wait_for(lambda: harness.state.client_count.value == 1)
        await second.close()
        await wait_for(lambda: harness.state.client_count.value == 0)
        assert len(harness.registry) == 0

    @pytest.mark.asyncio
    async def test_any_path_is_accepted(self, harness, session):
        ws = await session.ws_connect(f"{harness.url}tobii")
        await wait_for(lambda: harness.state.client_count.value == 1)
        await ws.close()

    @pytest.mark.asyncio
    async def test_reply_goes_to_originating_client_only(self, harness, session):
        asker = await session.ws_connect(harness.url)
        bystander = await session.ws_connect(harness.url)
        await wait_for(lambda: harness.state.client_count.value == 2)

        await asker.send_str(json.dumps({"type": "get-status"}))
        reply = await receive_json(asker)

        assert reply["type"] == "tobii-status"
        assert reply["status"]["clients"] == 2
        with pytest.raises(asyncio.TimeoutError):
            await bystander.receive(timeout=0.2)

        await asker.close()
        await bystander.close()

    @pytest.mark.asyncio
    async def test_commands_mutate_shared_state(self, harness, session):
        ws = await session.ws_connect(harness.url)

        await ws.send_str(json.dumps({"type": "set-recording", "data": {"enabled": True}}))
        assert await receive_json(ws) == {"type": "tobii-status", "status": {"recording": True}}
        assert harness.state.recording.is_set()

        await ws.send_str(json.dumps({"type": "start-calibration"}))
        reply = await receive_json(ws)
        assert reply["calibration"] == {"status": "started", "result": "success"}
        assert harness.state.calibrating.is_set()

        await ws.close()

    @pytest.mark.asyncio
    async def test_malformed_message_keeps_connection_open(self, harness, session):
        ws = await session.ws_connect(harness.url)

        await ws.send_str("{not json")
        await ws.send_str(json.dumps({"type": "get-status"}))

        reply = await receive_json(ws)
        assert reply["type"] == "tobii-status"
        assert not ws.closed
        await ws.close()

    @pytest.mark.asyncio
    async def test_broadcast_reaches_every_client(self, harness, session):
        clients = [await session.ws_connect(harness.url) for _ in range(3)]
        await wait_for(lambda: harness.state.client_count.value == 3)

        harness.store.write(SensorSnapshot.capture(
            gaze_point=GazePoint(x=0.5, y=0.5, timestamp=1000),
            head_pose=HeadPose(yaw=1.0, pitch=2.0, roll=3.0, x=0.0, y=0.0, z=0.0),
            present=True,
        ))
        broadcaster = MessageBroadcaster(harness.store, harness.registry, harness.state)
        assert broadcaster.distribute() is True

        frames = [await receive_json(ws) for ws in clients]
        assert all(frame == frames[0] for frame in frames)
        assert frames[0]["type"] == "tobii-data"
        assert frames[0]["data"]["gaze"]["x"] == 0.5
        assert frames[0]["data"]["head"]["yaw"] == 1.0
        assert harness.state.packets_distributed.value == 1

        for ws in clients:
            await ws.close()

    @pytest.mark.asyncio
    async def test_close_disconnects_clients(self, session):
        h = Harness()
        await h.server.start()
        ws = await session.ws_connect(h.url)
        await wait_for(lambda: h.state.client_count.value == 1)

        # The client must be reading to answer the closing handshake.
        received = asyncio.create_task(ws.receive(timeout=5.0))
        await h.server.close()
        msg = await received

        assert msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSED)
        await wait_for(lambda: h.state.client_count.value == 0)

    @pytest.mark.asyncio
    async def test_busy_port_raises(self, harness):
        other = WebSocketServer(
            "127.0.0.1", harness.server.port, ClientRegistry(), ControlState(),
            CommandHandler(ControlState()),
        )
        with pytest.raises(OSError):
            await other.start()


class TestHeartbeat:

    @pytest.mark.asyncio
    async def test_heartbeat_sent_periodically(self, session):
        h = Harness(heartbeat_interval_s=0.05)
        await h.server.start()
        try:
            ws = await session.ws_connect(h.url)
            first = await receive_json(ws)
            second = await receive_json(ws)
            await ws.close()
        finally:
            await h.server.close()

        assert first["type"] == "tobii-heartbeat"
        assert second["type"] == "tobii-heartbeat"
        assert second["timestamp"] >= first["timestamp"]

    @pytest.mark.asyncio
    async def test_heartbeat_delivered_while_frame_in_flight(self, session):
        h = Harness(heartbeat_interval_s=0.05)
        await h.server.start()
        try:
            ws = await session.ws_connect(h.url)
            await wait_for(lambda: h.state.client_count.value == 1)
            # A data frame that never finishes writing occupies the client's slot.
            client = h.registry.entries()[0].connection
            client._pending = concurrent.futures.Future()
            assert client.send("data") is False

            message = await receive_json(ws)
            await ws.close()
        finally:
            await h.server.close()

        assert message["type"] == "tobii-heartbeat"


class TestWebSocketClient:

    @pytest.mark.asyncio
    async def test_drops_frame_while_previous_pending(self):
        loop = asyncio.get_running_loop()
        release = asyncio.Event()

        async def slow_send(payload):
            await release.wait()

        ws = MagicMock(closed=False)
        ws.send_str = slow_send
        client = WebSocketClient(ws, loop)

        assert client.send("one") is True
        await asyncio.sleep(0)
        assert client.send("two") is False

        release.set()
        await wait_for(lambda: client._pending.done())
        assert client.send("three") is True

    @pytest.mark.asyncio
    async def test_closed_socket_is_not_written(self):
        ws = MagicMock(closed=True)
        ws.send_str = AsyncMock()
        client = WebSocketClient(ws, asyncio.get_running_loop())

        assert client.send("frame") is False
        ws.send_str.assert_not_called()

    def test_send_after_loop_closed(self):
        loop = asyncio.new_event_loop()
        loop.close()
        created = []

        async def send_str(payload):
            return None

        ws = MagicMock(closed=False)
        ws.send_str = lambda payload: created.append(send_str(payload)) or created[-1]
        client = WebSocketClient(ws, loop)

        assert client.send("frame") is False
        assert inspect.getcoroutinestate(created[0]) == inspect.CORO_CLOSED

    def test_identity_is_client_id(self):
        ws = MagicMock(closed=False)
        loop = MagicMock()
        a, b = WebSocketClient(ws, loop), WebSocketClient(ws, loop)

        assert a != b
        assert a == a
        assert len({a, b, a}) == 2


class TestAsyncioLoopThread:

    def test_runs_coroutines_from_other_threads(self):
        bridge = AsyncioLoopThread(name="TestLoop")
        bridge.start()
        try:
            async def add(a, b):
                await asyncio.sleep(0)
                return a + b

            assert bridge.run_coro_threadsafe(add(2, 3)).result(timeout=1.0) == 5
            assert bridge.is_running
        finally:
            bridge.stop(timeout=1.0)

        assert not bridge.is_running

    def test_rejects_coroutines_when_stopped(self):
        bridge = AsyncioLoopThread()

        async def noop():
            return None

        with pytest.raises(RuntimeError):
            bridge.run_coro_threadsafe(noop())
