import time
import logging


class ThrottledLogger:
    """
    Emits at most one record per interval and reports how many were folded
    into it. Meant for failures that can repeat on every 60 Hz cycle.
    """

    def __init__(self, logger: logging.Logger, interval_sec: float = 5.0) -> None:
        self._logger = logger
        self._interval = interval_sec
        self._last_log_time = float("-inf")
        self._counter = 0

    def _log(self, level: int, message: str, *args, **kwargs) -> bool:
        self._counter += 1
        now = time.monotonic()

        if now - self._last_log_time < self._interval:
            return False

        self._logger.log(level, "[%d] " + message, self._counter, *args, **kwargs)
        self._last_log_time = now
        self._counter = 0
        return True

    def warning(self, message: str, *args, **kwargs) -> bool:
        return self._log(logging.WARNING, message, *args, **kwargs)

    def error(self, message: str, *args, **kwargs) -> bool:
        return self._log(logging.ERROR, message, *args, **kwargs)
