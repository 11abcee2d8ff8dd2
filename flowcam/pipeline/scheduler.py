"""
Fixed-rate pacing scheduler.

Runs one pipeline step per tick at a target period, sleeping away whatever
time the step did not use. Iterations never overlap: the next tick starts
only after the current one has returned or raised.
"""

from __future__ import annotations

import time
from typing import Callable, Optional
from loguru import logger

TARGET_FPS = 30
TARGET_PERIOD_S = 1.0 / TARGET_FPS


class PacingScheduler:
    """
    Iterative fixed-period loop.

    While halted, ticks call the idle hook instead of the step, so the
    owner can keep checking for state changes without doing frame work.
    """

    def __init__(
        self,
        step: Callable[[], object],
        idle: Optional[Callable[[], object]] = None,
        period_s: float = TARGET_PERIOD_S,
        clock: Callable[[], float] = time.perf_counter,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize scheduler.

        Args:
            step: One full pipeline iteration
            idle: Called on ticks while halted
            period_s: Target period in seconds
            clock: Monotonic clock in seconds
            sleep: Sleep function
        """
        self._step = step
        self._idle = idle
        self.period_s = period_s
        self._clock = clock
        self._sleep = sleep

        self._armed = False
        self._in_flight = False
        self.ticks = 0
        self.steps = 0

        # Performance tracking
        self._step_times: list[float] = []

    def resume(self):
        if not self._armed:
            self._armed = True
            logger.debug("Scheduler resumed")

    def halt(self):
        if self._armed:
            self._armed = False
            logger.debug("Scheduler halted")

    @property
    def is_armed(self) -> bool:
        return self._armed

    @property
    def is_active(self) -> bool:
        """True while armed or while an iteration is running."""
        return self._armed or self._in_flight

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def tick(self, after: Optional[Callable[[], object]] = None) -> float:
        """
        Run one tick and wait out the rest of the period.

        Args:
            after: Called after the step/idle hook, inside the timed window

        Returns:
            The delay slept, in seconds
        """
        start = self._clock()

        if self._armed:
            self._in_flight = True
            try:
                self._step()
            finally:
                self._in_flight = False
            self.steps += 1
        elif self._idle is not None:
            self._idle()

        if after is not None:
            after()

        elapsed = self._clock() - start
        self._record(elapsed)
        delay = max(0.0, self.period_s - elapsed)
        self._sleep(delay)
        self.ticks += 1
        return delay

    def run(
        self,
        should_continue: Callable[[], bool],
        after: Optional[Callable[[], object]] = None,
        max_ticks: Optional[int] = None,
    ) -> int:
        """
        Tick until should_continue() is False or max_ticks is reached.

        Returns:
            Number of ticks run
        """
        count = 0
        while should_continue():
            if max_ticks is not None and count >= max_ticks:
                break
            self.tick(after)
            count += 1
        return count

    def _record(self, elapsed: float):
        self._step_times.append(elapsed)
        if len(self._step_times) > 30:
            self._step_times.pop(0)

    @property
    def average_tick_ms(self) -> float:
        if not self._step_times:
            return 0.0
        return 1000 * sum(self._step_times) / len(self._step_times)
