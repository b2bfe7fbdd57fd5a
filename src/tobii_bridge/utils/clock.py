import time
from typing import Callable


def epoch_ms() -> int:
    """Wall-clock milliseconds since the Unix epoch."""
    return time.time_ns() // 1_000_000


class TimeProbe:
    """
    Maps a device's monotonic microsecond clock onto UTC.

    The probe samples the device clock on both sides of a wall-clock read
    and keeps the midpoint, so `latency` bounds the error of `offset`.
    """
    __slots__ = ("latency", "offset")

    def __init__(self, now_us_func: Callable[[], int]):
        before: int = now_us_func()
        utc: int = time.time_ns()
        after: int = now_us_func()

        system_timestamp_at_utc: int = (before + after) // 2

        # Latency in us
        self.latency: int = after - before
        # ns - (us * 1000), result is ns
        self.offset: int = utc - (system_timestamp_at_utc * 1_000)

    @classmethod
    def best_of(cls, now_us_func: Callable[[], int], samples: int = 5) -> "TimeProbe":
        """Takes several probes and keeps the one with the lowest latency."""
        return min(cls(now_us_func) for _ in range(max(1, samples)))

    def to_utc_ms(self, system_timestamp_us: int) -> int:
        return (system_timestamp_us * 1_000 + self.offset) // 1_000_000

    # Sort by latency, lower is better
    def __lt__(self, other: "TimeProbe") -> bool:
        return self.latency < other.latency

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TimeProbe):
            return NotImplemented
        return self.latency == other.latency
