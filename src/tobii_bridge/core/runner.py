import logging
import threading
import time
from typing import Callable, Sequence

from .state import ControlState
from .store import SnapshotStore
from ..acquisition import TrackingProvider
from ..models import SensorSnapshot
from ..sinks import SnapshotSink
from ..utils.logging import ThrottledLogger

logger = logging.getLogger(__name__)


class AcquisitionLoop:
    """
    Orchestrates the ~60Hz data flow from Provider -> SnapshotStore -> Sinks.

    Each cycle polls the provider, replaces the snapshot, then lets every
    sink distribute it in the given order. The loop sleeps off whatever is
    left of the interval; an overrun cycle is followed immediately by the
    next, with no catch-up. It runs on a dedicated thread until the stop
    event is set, which is checked only between cycles.
    """

    def __init__(
        self,
        provider: TrackingProvider,
        store: SnapshotStore,
        state: ControlState,
        sinks: Sequence[SnapshotSink],
        stop_event: threading.Event,
        interval_s: float = 0.016,
        clock: Callable[[], float] = time.monotonic,
    ):
        if interval_s <= 0:
            raise ValueError("interval_s must be positive.")

        self.provider = provider
        self.store = store
        self.state = state
        self.sinks = tuple(sinks)
        self._stop_event = stop_event
        self._interval_s = interval_s
        self._clock = clock
        self._read_errors = ThrottledLogger(logger, interval_sec=5.0)
        self._sink_errors = ThrottledLogger(logger, interval_sec=5.0)

    @property
    def interval_s(self) -> float:
        return self._interval_s

    def run(self) -> None:
        """Hot loop."""
        logger.info(f"Acquisition loop started at {1 / self._interval_s:.0f} Hz.")
        while not self._stop_event.is_set():
            started = self._clock()
            self.run_cycle()

            remaining = self._interval_s - (self._clock() - started)
            if remaining > 0:
                self._stop_event.wait(remaining)
        logger.info("Acquisition loop stopped.")

    def run_cycle(self) -> bool:
        """
        Runs one poll -> snapshot -> distribute cycle.
        Returns False if the cycle was skipped.
        """
        if not self.state.connected.is_set():
            return False

        try:
            self.provider.update()
            snapshot = SensorSnapshot.capture(
                gaze_point=self.provider.latest_gaze_point(),
                head_pose=self.provider.latest_head_pose(),
                present=self.provider.is_present(),
            )
        except Exception as e:
            self._read_errors.warning("Provider read failed, skipping cycle: %r", e)
            return False

        self.store.write(snapshot)
        self.state.packets_processed.increment()

        for sink in self.sinks:
            try:
                sink.distribute()
            except Exception:
                self._sink_errors.error("Sink %s failed.", type(sink).__name__, exc_info=True)

        return True
