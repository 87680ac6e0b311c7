"""Explicit wall-clock timer passed to components that report elapsed time."""

import time


class SolveTimer:
    """Pausable wall-clock timer.

    Usage:
        timer = SolveTimer()
        problem.optimize(timer=timer)
        refined.optimize(timer=timer)
        total = timer.read()
    """

    def __init__(self) -> None:
        self._start: float | None = None
        self._elapsed = 0.0

    def start(self) -> None:
        self._elapsed = 0.0
        self._start = time.perf_counter()

    def pause(self) -> float:
        """Stop accumulating time; returns the elapsed time so far."""
        if self._start is not None:
            self._elapsed += time.perf_counter() - self._start
            self._start = None
        return self._elapsed

    def resume(self) -> None:
        if self._start is None:
            self._start = time.perf_counter()

    @property
    def running(self) -> bool:
        return self._start is not None

    def read(self, reset: bool = False) -> float:
        """Elapsed time [s]; optionally restart from zero."""
        elapsed = self._elapsed
        if self._start is not None:
            elapsed += time.perf_counter() - self._start
        if reset:
            self.start()
        return elapsed

    def __enter__(self) -> "SolveTimer":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.pause()
