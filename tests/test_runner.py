"""Tests for the acquisition loop."""

import threading
import time
from unittest.mock import MagicMock

import pytest

from tobii_bridge.core import ControlState, SnapshotStore
from tobii_bridge.core.runner import AcquisitionLoop
from tobii_bridge.sinks import SnapshotSink


class RecordingSink(SnapshotSink):
    def __init__(self, store, name, calls, fail=False):
        super().__init__(store)
        self.name = name
        self.calls = calls
        self.fail = fail
        self.seen = []

    def distribute(self) -> bool:
        self.calls.append(self.name)
        self.seen.append(self._store.read())
        if self.fail:
            raise RuntimeError("transport exploded")
        return True


def _make_loop(provider, sinks_factory=None, connected=True, interval_s=0.016):
    store = SnapshotStore()
    state = ControlState()
    state.set_connected(connected)
    calls: list[str] = []
    sinks = sinks_factory(store, calls) if sinks_factory else []
    loop = AcquisitionLoop(provider, store, state, sinks, threading.Event(), interval_s=interval_s)
    return loop, calls


class TestRunCycle:

    def test_writes_snapshot_then_distributes_in_order(self, fake_provider):
        loop, calls = _make_loop(
            fake_provider,
            lambda store, calls: [
                RecordingSink(store, "message", calls),
                RecordingSink(store, "datagram", calls),
            ],
        )

        assert loop.run_cycle() is True

        assert calls == ["message", "datagram"]
        snapshot = loop.store.read()
        assert snapshot.present
        assert snapshot.overall_quality == pytest.approx(0.9)
        # Both sinks saw the snapshot written this cycle.
        assert all(s.seen == [snapshot] for s in loop.sinks)
        assert loop.state.packets_processed.value == 1

    def test_provider_failure_skips_cycle(self, fake_provider):
        loop, calls = _make_loop(
            fake_provider, lambda store, calls: [RecordingSink(store, "message", calls)]
        )
        fake_provider.read_error = RuntimeError("device busy")
        before = loop.store.read()

        assert loop.run_cycle() is False

        assert calls == []
        assert loop.store.read() is before
        assert loop.state.packets_processed.value == 0

    def test_recovers_after_bad_read(self, fake_provider):
        loop, _ = _make_loop(fake_provider)
        fake_provider.read_error = RuntimeError("device busy")
        loop.run_cycle()
        fake_provider.read_error = None

        assert loop.run_cycle() is True
        assert loop.state.packets_processed.value == 1

    def test_sink_failure_is_contained(self, fake_provider):
        loop, calls = _make_loop(
            fake_provider,
            lambda store, calls: [
                RecordingSink(store, "message", calls, fail=True),
                RecordingSink(store, "datagram", calls),
            ],
        )

        assert loop.run_cycle() is True
        assert calls == ["message", "datagram"]

    def test_disconnected_provider_is_not_polled(self, fake_provider):
        loop, calls = _make_loop(fake_provider, connected=False)

        assert loop.run_cycle() is False
        assert fake_provider.updates == 0

    def test_missing_readings(self, make_provider):
        loop, _ = _make_loop(make_provider(present=False))
        loop.run_cycle()

        snapshot = loop.store.read()
        assert not snapshot.has_gaze
        assert not snapshot.has_head
        assert snapshot.overall_quality == 0.0


class TestRun:

    def test_runs_until_stopped(self, fake_provider):
        loop, _ = _make_loop(fake_provider, interval_s=0.005)
        thread = threading.Thread(target=loop.run)
        thread.start()

        deadline = time.monotonic() + 2.0
        while loop.state.packets_processed.value < 5 and time.monotonic() < deadline:
            time.sleep(0.01)

        loop._stop_event.set()
        thread.join(1.0)

        assert not thread.is_alive()
        assert loop.state.packets_processed.value >= 5

    def test_holds_cadence(self, fake_provider):
        loop, _ = _make_loop(fake_provider, interval_s=0.02)
        thread = threading.Thread(target=loop.run)
        thread.start()
        time.sleep(0.25)
        loop._stop_event.set()
        thread.join(1.0)

        # ~12 cycles in 250 ms at 50 Hz; far fewer than an unpaced loop.
        assert 3 <= loop.state.packets_processed.value <= 20

    def test_overrun_does_not_sleep(self, fake_provider):
        ticks = iter([0.0, 1.0] * 3)
        stop = MagicMock()
        stop.is_set.side_effect = [False, False, False, True]
        loop = AcquisitionLoop(
            fake_provider, SnapshotStore(), ControlState(), [], stop,
            interval_s=0.5, clock=lambda: next(ticks),
        )
        loop.state.set_connected(True)

        loop.run()

        stop.wait.assert_not_called()
        assert loop.state.packets_processed.value == 3

    def test_rejects_non_positive_interval(self, fake_provider):
        with pytest.raises(ValueError):
            AcquisitionLoop(fake_provider, SnapshotStore(), ControlState(), [], threading.Event(), interval_s=0)
