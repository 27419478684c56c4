from __future__ import annotations

import threading

from streamviewer.config.defaults import (
    DEFAULT_HEALTH_CHECK_INTERVAL_SECONDS,
    DEFAULT_LOAD_ERROR_RETRY_SECONDS,
    DEFAULT_RECOVERY_SETTLE_SECONDS,
    DEFAULT_STREAM_TIMEOUT_SECONDS,
)
from streamviewer.util.logging import get_logger
from streamviewer.util.ring_log import LogRingBuffer

from .session import PlaybackSession
from .timers import PeriodicTask, Scheduler, TimerHandle

logger = get_logger(__name__)


class HealthMonitor:
    """Replays the current target when the display stops reporting activity.

    This only measures time since the last liveness signal; it cannot see
    whether the transport itself reconnected.
    """

    def __init__(
        self,
        session: PlaybackSession,
        scheduler: Scheduler,
        log: LogRingBuffer,
        check_interval: float = DEFAULT_HEALTH_CHECK_INTERVAL_SECONDS,
        stream_timeout: float = DEFAULT_STREAM_TIMEOUT_SECONDS,
        settle_seconds: float = DEFAULT_RECOVERY_SETTLE_SECONDS,
        load_error_retry: float = DEFAULT_LOAD_ERROR_RETRY_SECONDS,
    ) -> None:
        self.session = session
        self.scheduler = scheduler
        self.log = log
        self.stream_timeout = stream_timeout
        self.settle_seconds = settle_seconds
        self.load_error_retry = load_error_retry
        self.recoveries = 0
        self._lock = threading.Lock()
        self._pending: TimerHandle | None = None
        self._task = PeriodicTask(scheduler, check_interval, self.check, "health-monitor")

    @property
    def running(self) -> bool:
        return self._task.active

    @property
    def recovery_pending(self) -> bool:
        with self._lock:
            return self._pending is not None and not self._pending.cancelled

    def start(self) -> None:
        self._task.start()

    def stop(self) -> None:
        self._task.cancel()
        with self._lock:
            if self._pending is not None:
                self._pending.cancel()
                self._pending = None

    def check(self, now: float | None = None) -> bool:
        """Run one liveness check; returns True when a recovery was started."""
        session = self.session
        if not session.ever_configured or not session.is_active:
            return False
        if session.blank_active:
            logger.debug("health check skipped while display is blanked")
            return False
        if self.recovery_pending:
            return False

        elapsed = session.seconds_since_activity(now)
        if elapsed <= self.stream_timeout:
            return False

        logger.warning("stream appears frozen (%.1fs since activity)", elapsed)
        self.log.add(f"Stream timeout detected ({elapsed:.0f}s since activity) - attempting recovery")
        return self._schedule_recovery(self.settle_seconds)

    def report_error(self, message: str) -> bool:
        self.log.add(f"Stream error: {message}")
        return self.check()

    def report_load_error(self, message: str) -> bool:
        """Replay after the retry delay however recent the last activity was."""
        self.log.add(f"Page load error: {message}")
        session = self.session
        if not session.ever_configured or not session.is_active or session.blank_active:
            return False
        if self.recovery_pending:
            return False
        return self._schedule_recovery(self.load_error_retry)

    def _schedule_recovery(self, delay: float) -> bool:
        generation = self.session.teardown()
        if generation is None:
            return False
        with self._lock:
            self._pending = self.scheduler.call_later(
                delay,
                lambda: self._replay(generation),
                "health-recovery",
            )
        return True

    def _replay(self, generation: int) -> None:
        with self._lock:
            self._pending = None
        try:
            replayed = self.session.replay(generation)
        except Exception as exc:
            logger.exception("stream recovery failed")
            self.log.add(f"Recovery error: {exc}")
            return
        if replayed:
            self.recoveries += 1
            self.log.add("Stream recovery replayed current target")
