from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any

from streamviewer.config.defaults import (
    DEFAULT_BURN_IN_DURATION_SECONDS,
    DEFAULT_BURN_IN_INTERVAL_SECONDS,
    KEY_BURN_IN_PROTECTION,
    NS_APP_PREFS,
)
from streamviewer.storage.kv import KeyValueStore
from streamviewer.util.logging import get_logger
from streamviewer.util.ring_log import LogRingBuffer

from .session import PlaybackSession
from .timers import PeriodicTask, Scheduler, TimerHandle

logger = get_logger(__name__)


class BurnInScheduler:
    """Blanks the screen for ``duration`` seconds every ``interval`` seconds.

    Skipped while a tour is running or a blank is already showing. The
    cadence restarts only when protection is switched on, never on camera
    changes.
    """

    def __init__(
        self,
        session: PlaybackSession,
        scheduler: Scheduler,
        store: KeyValueStore,
        log: LogRingBuffer,
        tour_active: Callable[[], bool],
        interval_seconds: int = DEFAULT_BURN_IN_INTERVAL_SECONDS,
        duration_seconds: int = DEFAULT_BURN_IN_DURATION_SECONDS,
    ) -> None:
        self.session = session
        self.scheduler = scheduler
        self.store = store
        self.log = log
        self.tour_active = tour_active
        self.interval_seconds = interval_seconds
        self.duration_seconds = duration_seconds
        self._lock = threading.RLock()
        self._enabled = store.get_bool(NS_APP_PREFS, KEY_BURN_IN_PROTECTION, default=True)
        self._blank_active = False
        self._restore_handle: TimerHandle | None = None
        self._task = PeriodicTask(scheduler, interval_seconds, self.tick, "burn-in")

    @property
    def enabled(self) -> bool:
        with self._lock:
            return self._enabled

    @property
    def blank_active(self) -> bool:
        with self._lock:
            return self._blank_active

    @property
    def armed(self) -> bool:
        return self._task.active

    def start(self) -> None:
        with self._lock:
            if not self._enabled:
                logger.info("burn-in protection disabled")
                return
            self._task.start()
        logger.info(
            "burn-in protection enabled: %ss blank every %ss",
            self.duration_seconds,
            self.interval_seconds,
        )

    def set_enabled(self, enabled: bool) -> bool:
        self.store.set_bool(NS_APP_PREFS, KEY_BURN_IN_PROTECTION, enabled)
        with self._lock:
            self._enabled = enabled
            if enabled:
                self._task.start()
            else:
                self._task.cancel()
                self._cancel_restore()
                if self._blank_active:
                    self._blank_active = False
                    self.session.restore()
        self.log.add(f"Burn-in protection {'enabled' if enabled else 'disabled'}")
        return enabled

    def tick(self) -> bool:
        with self._lock:
            if not self._enabled or self._blank_active or self.tour_active():
                return False
            self._blank_active = True
            self.log.add(f"Burn-in protection: Screen blanked for {self.duration_seconds}s")
            self.session.blank()
            self._restore_handle = self.scheduler.call_later(
                self.duration_seconds,
                self._restore,
                "burn-in-restore",
            )
            return True

    def _restore(self) -> None:
        with self._lock:
            if not self._blank_active:
                return
            self._blank_active = False
            self._restore_handle = None
            try:
                self.session.restore()
            except Exception as exc:
                logger.exception("burn-in restore failed")
                self.log.add(f"Burn-in restore error: {exc}")
                return
        self.log.add("Burn-in protection: Display restored")

    def _cancel_restore(self) -> None:
        if self._restore_handle is not None:
            self._restore_handle.cancel()
            self._restore_handle = None

    def shutdown(self) -> None:
        with self._lock:
            self._task.cancel()
            self._cancel_restore()

    def status(self) -> dict[str, Any]:
        with self._lock:
            return {
                "enabled": self._enabled,
                "interval": self.interval_seconds // 60,
                "duration": self.duration_seconds,
                "blankActive": self._blank_active,
            }
