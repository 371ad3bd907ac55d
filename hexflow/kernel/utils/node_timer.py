"""Millisecond timer shared by the pipeline executor and the action layer."""

import time


class Timer:
    """Lightweight timer that tracks elapsed milliseconds.

    Uses the monotonic performance counter, so durations are never negative.

    Examples
    --------
    >>> t = Timer()
    >>> assert t.duration_ms >= 0
    """

    __slots__ = ("_start",)

    def __init__(self) -> None:
        self._start = time.perf_counter()

    @property
    def duration_ms(self) -> float:
        """Elapsed time in milliseconds since the timer started."""
        return (time.perf_counter() - self._start) * 1000
