"""Timeout timer for lock acquisition loops."""

import time

from ..constants import DEFAULT_TIMER_SLEEP


class TimeoutTimer:
    """A timer for timeout checks, sleeping between attempts.

    Args:
        timeout: None waits forever, otherwise seconds (>= 0)
        sleep: Seconds to sleep per attempt, None for the default;
            a negative value disables sleeping
    """

    def __init__(self, timeout: float | None = None, sleep: float | None = None) -> None:
        if timeout is not None and timeout < 0:
            raise ValueError("timeout must be >= 0")
        self.timeout_interval = timeout
        if sleep is None:
            sleep = DEFAULT_TIMER_SLEEP
        self.sleep_interval = sleep
        self.start_time: float | None = None
        self.end_time: float | None = None

    def __repr__(self) -> str:
        return (
            f"<{self.__class__.__name__}: start={self.start_time!r} end={self.end_time!r} "
            f"timeout={self.timeout_interval!r} sleep={self.sleep_interval!r}>"
        )

    def start(self) -> "TimeoutTimer":
        self.start_time = time.monotonic()
        if self.timeout_interval is not None:
            self.end_time = self.start_time + self.timeout_interval
        return self

    def sleep(self) -> None:
        if self.sleep_interval >= 0:
            time.sleep(self.sleep_interval)

    def timed_out(self) -> bool:
        return self.end_time is not None and time.monotonic() >= self.end_time

    def timed_out_or_sleep(self) -> bool:
        """Return True if timed out, otherwise sleep once and return False."""
        if self.timed_out():
            return True
        self.sleep()
        return False
