import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Coroutine, Optional

logger = logging.getLogger(__name__)


class AsyncioLoopThread:
    """
    Hosts the bridge's asyncio event loop on a background thread.

    The WebSocket server, its heartbeat task and the discovery responder all
    live on this loop, while acquisition and the beacon keep their own
    threads. Other threads hand work to the loop with `run_coro_threadsafe`.
    """

    def __init__(self, name: str = "AsyncioEventLoopThread"):
        self._name = name
        self._loop = asyncio.new_event_loop()
        self._ready = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def start(self, timeout: Optional[float] = 5.0) -> None:
        """Launches the thread and returns once the loop is accepting work."""
        if self._thread is not None:
            raise RuntimeError("Event loop thread can only be started once.")

        self._thread = threading.Thread(target=self._serve, name=self._name, daemon=True)
        self._thread.start()
        if not self._ready.wait(timeout):
            raise RuntimeError(f"Event loop thread {self._name} did not start in time.")
        logger.debug("Event loop thread %s started.", self._name)

    def stop(self, timeout: Optional[float] = None) -> None:
        """Cancels outstanding tasks, stops the loop and joins the thread."""
        if not self.is_running:
            return

        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout)
        if self._thread.is_alive():
            logger.warning("Event loop thread %s did not exit within %ss.", self._name, timeout)
        else:
            logger.debug("Event loop thread %s stopped.", self._name)

    def run_coro_threadsafe(self, coro: Coroutine[Any, Any, Any]) -> concurrent.futures.Future:
        """
        Submits a coroutine to the loop from any thread.

        Raises:
            RuntimeError: if the loop is not running. The coroutine is closed
                so it is not reported as never awaited.
        """
        if not self.is_running:
            coro.close()
            raise RuntimeError(f"Event loop thread {self._name} is not running.")
        return asyncio.run_coroutine_threadsafe(coro, self._loop)

    def _serve(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.call_soon(self._ready.set)
        try:
            self._loop.run_forever()
        finally:
            self._drain()
            self._loop.close()

    def _drain(self) -> None:
        pending = asyncio.all_tasks(self._loop)
        for task in pending:
            task.cancel()
        if pending:
            self._loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
        self._loop.run_until_complete(self._loop.shutdown_asyncgens())
