from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any
from urllib.parse import urlsplit

from streamviewer.config.defaults import DEFAULT_PROTOCOL
from streamviewer.display.base import ConnectionDescriptor, DisplaySurface
from streamviewer.errors import ValidationError
from streamviewer.util.logging import get_logger
from streamviewer.util.ring_log import LogRingBuffer
from streamviewer.util.time import monotonic

logger = get_logger(__name__)

SUPPORTED_PROTOCOLS = frozenset({"mse", "webrtc"})


class PlaybackOwner(str, Enum):
    BOOT = "boot"
    MANUAL = "manual"
    TOUR = "tour"
    RECOVERY = "recovery"
    BURN_IN = "burn_in"


@dataclass(frozen=True)
class PlaybackTarget:
    server_url: str
    descriptor: ConnectionDescriptor

    @property
    def stream_name(self) -> str:
        return self.descriptor.stream_name

    @property
    def protocol(self) -> str:
        return self.descriptor.protocol

    @property
    def target_url(self) -> str:
        return self.descriptor.base_url


def normalize_server_url(server_url: str) -> str:
    value = str(server_url).strip().rstrip("/")
    if not value:
        raise ValidationError("go2rtcUrl is required")
    if "://" not in value:
        value = f"http://{value}"
    parts = urlsplit(value)
    if parts.scheme.lower() not in {"http", "https"}:
        raise ValidationError(f"Unsupported server URL scheme: {parts.scheme}")
    if not parts.netloc:
        raise ValidationError("Server URL has no host")
    return value


def build_descriptor(server_url: str, stream_name: str, protocol: str) -> ConnectionDescriptor:
    base_url = normalize_server_url(server_url)
    scheme, _, host = base_url.partition("://")
    ws_scheme = "wss://" if scheme.lower() == "https" else "ws://"
    return ConnectionDescriptor(
        base_url=base_url,
        ws_scheme=ws_scheme,
        host=host,
        stream_name=stream_name,
        protocol=protocol,
    )


class PlaybackSession:
    """Single owner of "what is on screen".

    Every writer (manual play, tour, health recovery, burn-in) goes through
    this object and its lock, so writes are applied one at a time. Between
    manual play and the tour the last writer wins. A blank overlay keeps the
    remembered target: tour and recovery writes made during the overlay only
    update that target, while a manual write ends the overlay.
    """

    def __init__(
        self,
        surface: DisplaySurface,
        log: LogRingBuffer,
        clock: Callable[[], float] = monotonic,
    ) -> None:
        self.surface = surface
        self.log = log
        self._clock = clock
        self._lock = threading.RLock()
        self._target: PlaybackTarget | None = None
        self._owner: PlaybackOwner | None = None
        self._generation = 0
        self._last_activity = clock()
        self._ever_configured = False
        self._on_screen = False
        self._blank_active = False

    @property
    def target(self) -> PlaybackTarget | None:
        with self._lock:
            return self._target

    @property
    def is_active(self) -> bool:
        with self._lock:
            return self._target is not None

    @property
    def owner(self) -> PlaybackOwner | None:
        with self._lock:
            return self._owner

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    @property
    def ever_configured(self) -> bool:
        with self._lock:
            return self._ever_configured

    @property
    def blank_active(self) -> bool:
        with self._lock:
            return self._blank_active

    def seconds_since_activity(self, now: float | None = None) -> float:
        current = self._clock() if now is None else now
        with self._lock:
            return current - self._last_activity

    def configure(
        self,
        server_url: str,
        stream_name: str,
        protocol: str = DEFAULT_PROTOCOL,
        owner: PlaybackOwner = PlaybackOwner.MANUAL,
    ) -> ConnectionDescriptor:
        stream_name = str(stream_name).strip()
        if not stream_name:
            raise ValidationError("streamName is required")
        protocol = str(protocol or DEFAULT_PROTOCOL).strip().lower()
        if protocol not in SUPPORTED_PROTOCOLS:
            raise ValidationError(f"Unsupported protocol: {protocol}")
        descriptor = build_descriptor(server_url, stream_name, protocol)

        with self._lock:
            same_target = self._target is not None and self._target.descriptor == descriptor
            self._target = PlaybackTarget(server_url=str(server_url).strip(), descriptor=descriptor)
            self._owner = owner
            self._ever_configured = True
            self._last_activity = self._clock()
            if not same_target:
                self._generation += 1

            if self._blank_active:
                if owner is not PlaybackOwner.MANUAL:
                    self.log.add(f"Display blanked; {owner.value} target {stream_name} held until restore")
                    return descriptor
                self._blank_active = False
                self.log.add("Manual play ended the blank overlay")

            if same_target and self._on_screen:
                logger.debug("configure(%s) is already on screen; activity reset only", stream_name)
                return descriptor

            self.surface.show_stream(descriptor)
            self._on_screen = True
            self.log.add(
                f"Playing: {stream_name} from {descriptor.base_url} (protocol: {protocol}, by {owner.value})"
            )
            self.log.add(f"  WebSocket URL: {descriptor.ws_url}")
        return descriptor

    def stop(self) -> None:
        with self._lock:
            had_target = self._target is not None
            self._target = None
            self._owner = None
            self._generation += 1
            self._on_screen = False
            self._blank_active = False
            self.surface.show_placeholder()
        if had_target:
            self.log.add("Playback stopped; showing placeholder")

    def show_idle(self) -> None:
        with self._lock:
            if self._target is None and not self._blank_active:
                self.surface.show_placeholder()

    def record_activity(self) -> None:
        with self._lock:
            self._last_activity = self._clock()

    def blank(self) -> None:
        with self._lock:
            self._blank_active = True
            self._on_screen = False
            self.surface.show_blank()

    def restore(self) -> bool:
        """End a blank overlay; returns False when something already ended it."""
        with self._lock:
            if not self._blank_active:
                return False
            self._blank_active = False
            if self._target is None:
                self.surface.show_placeholder()
                return True
            self.surface.show_stream(self._target.descriptor)
            self._on_screen = True
            self._last_activity = self._clock()
            return True

    def teardown(self) -> int | None:
        """Clear the surface but keep the target; returns the target generation."""
        with self._lock:
            if self._target is None:
                return None
            self.surface.clear()
            self._on_screen = False
            return self._generation

    def replay(self, generation: int) -> bool:
        with self._lock:
            target = self._target
            if target is None or generation != self._generation:
                self.log.add("Recovery skipped: target changed since the stream froze")
                return False
            self.configure(
                target.server_url,
                target.stream_name,
                target.protocol,
                owner=PlaybackOwner.RECOVERY,
            )
            return True

    def snapshot(self, now: float | None = None) -> dict[str, Any]:
        with self._lock:
            target = self._target
            return {
                "playing": target is not None,
                "streamName": target.stream_name if target else None,
                "protocol": target.protocol if target else None,
                "targetUrl": target.target_url if target else None,
                "wsUrl": target.descriptor.ws_url if target else None,
                "owner": self._owner.value if self._owner else None,
                "blankActive": self._blank_active,
                "secondsSinceActivity": round(self.seconds_since_activity(now), 3),
            }
