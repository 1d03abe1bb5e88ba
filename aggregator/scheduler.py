"""
Poll scheduler. Launches a cycle right away, then one every `period`.

Design notes:
- Launches are anchored on the previous *scheduled* time, not on when a
  cycle finished. A cycle that outlives the period doesn't delay the next.
- Cycles run on a thread pool and the timer loop never waits on them.
- A cycle's exception is logged and dropped. Nothing from inside a cycle
  can end the loop.
- Stopping is an injected threading.Event. The loop's only blocking point
  is event.wait(), so setting the event stops scheduling at once. Signal
  wiring belongs to the caller.
- On stop, run() waits for in-flight cycles before returning. Each cycle
  is bounded by the fetch timeout, so the wait is bounded too.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import timedelta
from typing import Callable

log = logging.getLogger(__name__)

# Longest single Event.wait; longer gaps are waited out in slices
MAX_WAIT_SLICE = 3600.0


class PollScheduler:
    def __init__(
        self,
        cycle: Callable[[], object],
        period: timedelta,
        stop_event: threading.Event | None = None,
        max_workers: int = 4,
    ):
        if period <= timedelta(0):
            raise ValueError(f"period must be positive, got {period}")
        self._cycle = cycle
        self._period = period.total_seconds()
        self._stop = stop_event or threading.Event()
        self._max_workers = max_workers
        self._inflight: set[Future] = set()
        self._inflight_lock = threading.Lock()
        self.launches = 0

    @property
    def stop_event(self) -> threading.Event:
        return self._stop

    def stop(self):
        self._stop.set()

    def inflight(self) -> int:
        with self._inflight_lock:
            return len(self._inflight)

    def run(self):
        """Block until the stop event is set, then drain in-flight cycles."""
        log.info(f"Scheduler started (period={self._period:g}s, workers={self._max_workers})")

        with ThreadPoolExecutor(
            max_workers=self._max_workers, thread_name_prefix="agg-cycle"
        ) as pool:
            next_launch = time.monotonic()
            while not self._stop.is_set():
                self._launch(pool)

                next_launch += self._period
                now = time.monotonic()
                if next_launch <= now:
                    # Process was suspended past one or more slots
                    missed = int((now - next_launch) // self._period) + 1
                    next_launch += missed * self._period
                    log.debug(f"Skipped {missed} missed launch slot(s)")

                if self._wait_until(next_launch):
                    break

            pending = self.inflight()
            if pending:
                log.info(f"Stop requested, waiting for {pending} in-flight cycle(s)")
            # leaving the `with` block joins the pool

        log.info(f"Scheduler stopped after {self.launches} cycle(s)")

    def _wait_until(self, deadline: float) -> bool:
        """Wait for the monotonic `deadline`. True if stop was requested first."""
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return self._stop.is_set()
            if self._stop.wait(min(remaining, MAX_WAIT_SLICE)):
                return True

    def _launch(self, pool: ThreadPoolExecutor):
        self.launches += 1
        n = self.launches
        future = pool.submit(self._run_cycle, n)
        with self._inflight_lock:
            self._inflight.add(future)
        future.add_done_callback(self._discard)

    def _discard(self, future: Future):
        with self._inflight_lock:
            self._inflight.discard(future)

    def _run_cycle(self, n: int):
        log.debug(f"Cycle {n} started")
        try:
            self._cycle()
        except Exception as e:
            log.error(f"Cycle {n} failed: {e}", exc_info=True)
