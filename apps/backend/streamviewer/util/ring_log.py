from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass

from .logging import get_logger
from .security import redact_secrets
from .time import local_clock_stamp

logger = get_logger("streamviewer.activity")

DEFAULT_CAPACITY = 500


@dataclass(frozen=True)
class LogEntry:
    timestamp: str
    message: str

    def render(self) -> str:
        return f"[{self.timestamp}] {self.message}"


class LogRingBuffer:
    """Bounded activity log shared by the HTTP layer and the schedulers.

    Entries beyond ``capacity`` evict the oldest first. Every entry is also
    forwarded to the ``streamviewer.activity`` logger so it reaches the
    console and the rotating log file.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._entries: deque[LogEntry] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def add(self, message: str) -> LogEntry:
        entry = LogEntry(timestamp=local_clock_stamp(), message=redact_secrets(message))
        with self._lock:
            self._entries.append(entry)
        logger.info(entry.message)
        return entry

    def entries(self) -> list[LogEntry]:
        with self._lock:
            return list(self._entries)

    def render(self) -> str:
        with self._lock:
            return "\n".join(entry.render() for entry in self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
