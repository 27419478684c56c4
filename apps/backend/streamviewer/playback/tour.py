from __future__ import annotations

import threading
from collections.abc import Sequence
from dataclasses import dataclass, replace

from streamviewer.config.schema import CameraEntry
from streamviewer.errors import ValidationError
from streamviewer.util.logging import get_logger
from streamviewer.util.ring_log import LogRingBuffer

from .session import PlaybackOwner, PlaybackSession, normalize_server_url
from .timers import PeriodicTask, Scheduler

logger = get_logger(__name__)


@dataclass(frozen=True)
class TourState:
    active: bool = False
    cameras: tuple[CameraEntry, ...] = ()
    interval_seconds: float = 0.0
    current_index: int = 0
    server_url: str | None = None

    @property
    def current_camera(self) -> CameraEntry | None:
        if not self.active or not self.cameras:
            return None
        return self.cameras[self.current_index]


class TourScheduler:
    def __init__(self, session: PlaybackSession, scheduler: Scheduler, log: LogRingBuffer) -> None:
        self.session = session
        self.scheduler = scheduler
        self.log = log
        self._lock = threading.RLock()
        self._state = TourState()
        self._task: PeriodicTask | None = None

    @property
    def active(self) -> bool:
        with self._lock:
            return self._state.active

    @property
    def state(self) -> TourState:
        with self._lock:
            return self._state

    def start(self, cameras: Sequence[CameraEntry], interval_seconds: float, server_url: str | None) -> TourState:
        snapshot = tuple(cameras)
        if not snapshot:
            raise ValidationError("No enabled cameras")
        if interval_seconds < 1:
            raise ValidationError("Tour duration must be at least 1 second")
        if not server_url:
            raise ValidationError("No go2rtc server URL configured")
        normalize_server_url(server_url)

        with self._lock:
            self._stop_locked()
            self._state = TourState(
                active=True,
                cameras=snapshot,
                interval_seconds=float(interval_seconds),
                current_index=0,
                server_url=server_url,
            )
            self.log.add(f"Tour started: {len(snapshot)} cameras, {interval_seconds}s each")
            self._play_current()
            self._task = PeriodicTask(self.scheduler, interval_seconds, self._advance, "tour")
            self._task.start()
            return self._state

    def stop(self) -> bool:
        with self._lock:
            was_active = self._stop_locked()
        if was_active:
            self.log.add("Tour stopped")
        return was_active

    def _stop_locked(self) -> bool:
        was_active = self._state.active
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self._state = TourState()
        return was_active

    def _advance(self) -> None:
        with self._lock:
            if not self._state.active:
                return
            next_index = (self._state.current_index + 1) % len(self._state.cameras)
            self._state = replace(self._state, current_index=next_index)
            self._play_current()

    def _play_current(self) -> None:
        state = self._state
        camera = state.cameras[state.current_index]
        self.log.add(f"Tour: playing camera {state.current_index + 1}/{len(state.cameras)}: {camera.name}")
        try:
            self.session.configure(
                state.server_url or "",
                camera.stream_name,
                camera.protocol,
                owner=PlaybackOwner.TOUR,
            )
        except Exception as exc:
            logger.exception("tour failed to play %s", camera.stream_name)
            self.log.add(f"Tour error on {camera.name}: {exc}")
