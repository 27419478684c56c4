from __future__ import annotations

from streamviewer.display.base import ConnectionDescriptor, DisplaySurface


class RecordingSurface(DisplaySurface):
    def __init__(self) -> None:
        self.calls: list[tuple[str, str | None]] = []

    def show_stream(self, descriptor: ConnectionDescriptor) -> None:
        self.calls.append(("stream", descriptor.stream_name))

    def show_placeholder(self) -> None:
        self.calls.append(("placeholder", None))

    def show_blank(self) -> None:
        self.calls.append(("blank", None))

    def clear(self) -> None:
        self.calls.append(("clear", None))

    @property
    def streams(self) -> list[str]:
        return [name for kind, name in self.calls if kind == "stream" and name is not None]

    @property
    def last(self) -> tuple[str, str | None] | None:
        return self.calls[-1] if self.calls else None
