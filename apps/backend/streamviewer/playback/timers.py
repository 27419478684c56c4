from __future__ import annotations

import heapq
import itertools
import threading
from collections.abc import Callable

from streamviewer.util.logging import get_logger
from streamviewer.util.time import monotonic

logger = get_logger(__name__)


class TimerHandle:
    def __init__(self, deadline: float, callback: Callable[[], None], name: str) -> None:
        self.deadline = deadline
        self.callback = callback
        self.name = name
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


class Scheduler:
    """One worker thread that runs delayed callbacks one at a time.

    Callbacks that raise are logged and dropped; the thread keeps going.
    After ``shutdown`` returns nothing else fires.
    """

    def __init__(self, name: str = "streamviewer-scheduler", clock: Callable[[], float] = monotonic) -> None:
        self.name = name
        self._clock = clock
        self._queue: list[tuple[float, int, TimerHandle]] = []
        self._counter = itertools.count()
        self._cond = threading.Condition()
        self._fire_lock = threading.RLock()
        self._thread: threading.Thread | None = None
        self._stopped = False

    def now(self) -> float:
        return self._clock()

    def start(self) -> None:
        with self._cond:
            if self._stopped:
                raise RuntimeError("scheduler already shut down")
            if self._thread and self._thread.is_alive():
                return
            self._thread = threading.Thread(target=self._run_loop, name=self.name, daemon=True)
            self._thread.start()

    def call_later(self, delay: float, callback: Callable[[], None], name: str = "timer") -> TimerHandle:
        handle = TimerHandle(self.now() + max(0.0, float(delay)), callback, name)
        with self._cond:
            if self._stopped:
                logger.debug("scheduler stopped; dropping timer %s", name)
                handle.cancel()
                return handle
            heapq.heappush(self._queue, (handle.deadline, next(self._counter), handle))
            self._cond.notify()
        return handle

    def pending(self) -> int:
        with self._cond:
            return sum(1 for _, _, handle in self._queue if not handle.cancelled)

    def _next_due(self) -> TimerHandle | None:
        with self._cond:
            while True:
                if self._stopped:
                    return None
                while self._queue and self._queue[0][2].cancelled:
                    heapq.heappop(self._queue)
                if not self._queue:
                    self._cond.wait()
                    continue
                remaining = self._queue[0][0] - self.now()
                if remaining <= 0:
                    return heapq.heappop(self._queue)[2]
                self._cond.wait(timeout=remaining)

    def _run_loop(self) -> None:
        while True:
            handle = self._next_due()
            if handle is None:
                return
            with self._fire_lock:
                if self._stopped or handle.cancelled:
                    continue
                try:
                    handle.callback()
                except Exception:
                    logger.exception("scheduled callback failed: %s", handle.name)

    def shutdown(self, timeout: float = 3.0) -> None:
        with self._cond:
            self._stopped = True
            for _, _, handle in self._queue:
                handle.cancel()
            self._queue.clear()
            self._cond.notify_all()
        # Wait out a callback that is already running.
        with self._fire_lock:
            pass
        thread = self._thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning("scheduler thread did not stop before timeout: %s", self.name)


class PeriodicTask:
    """Fixed-delay repetition on a scheduler.

    The next run is scheduled only after the callback returns, so an overrun
    pushes later runs back instead of bunching them. Exceptions are logged and
    do not stop the repetition.
    """

    def __init__(self, scheduler: Scheduler, interval: float, callback: Callable[[], None], name: str) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.scheduler = scheduler
        self.interval = float(interval)
        self.callback = callback
        self.name = name
        self._lock = threading.Lock()
        self._epoch = 0
        self._active = False
        self._handle: TimerHandle | None = None

    @property
    def active(self) -> bool:
        with self._lock:
            return self._active

    def start(self, initial_delay: float | None = None) -> None:
        delay = self.interval if initial_delay is None else initial_delay
        with self._lock:
            if self._handle is not None:
                self._handle.cancel()
            self._epoch += 1
            self._active = True
            epoch = self._epoch
            self._handle = self.scheduler.call_later(delay, lambda: self._fire(epoch), self.name)

    def cancel(self) -> None:
        with self._lock:
            self._active = False
            self._epoch += 1
            if self._handle is not None:
                self._handle.cancel()
                self._handle = None

    def _fire(self, epoch: int) -> None:
        with self._lock:
            if not self._active or epoch != self._epoch:
                return
        try:
            self.callback()
        except Exception:
            logger.exception("periodic task failed: %s", self.name)
        with self._lock:
            if self._active and epoch == self._epoch:
                self._handle = self.scheduler.call_later(self.interval, lambda: self._fire(epoch), self.name)
