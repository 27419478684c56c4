from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any

from streamviewer.util.logging import get_logger
from streamviewer.util.time import now_utc_iso

from .base import ConnectionDescriptor, DisplaySurface

logger = get_logger(__name__)


@dataclass
class SurfaceFrame:
    mode: str = "placeholder"
    descriptor: ConnectionDescriptor | None = None
    revision: int = 0
    updated_at: str | None = None


class KioskSurface(DisplaySurface):
    """Holds what the kiosk page should render; the page polls ``/api/surface``.

    ``revision`` increases on every instruction so the renderer can tell a
    replay of the same stream apart from no change at all.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._frame = SurfaceFrame()

    def _set(self, mode: str, descriptor: ConnectionDescriptor | None) -> None:
        with self._lock:
            self._frame = SurfaceFrame(
                mode=mode,
                descriptor=descriptor,
                revision=self._frame.revision + 1,
                updated_at=now_utc_iso(),
            )
        logger.debug("surface now %s", mode)

    def show_stream(self, descriptor: ConnectionDescriptor) -> None:
        self._set("stream", descriptor)

    def show_placeholder(self) -> None:
        self._set("placeholder", None)

    def show_blank(self) -> None:
        self._set("blank", None)

    def clear(self) -> None:
        self._set("cleared", None)

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            frame = self._frame
        return {
            "mode": frame.mode,
            "stream": frame.descriptor.as_dict() if frame.descriptor else None,
            "revision": frame.revision,
            "updatedAt": frame.updated_at,
        }
