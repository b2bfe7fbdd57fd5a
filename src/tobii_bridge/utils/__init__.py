from .clock import TimeProbe, epoch_ms
from .logging import ThrottledLogger

__all__ = ["TimeProbe", "epoch_ms", "ThrottledLogger"]
