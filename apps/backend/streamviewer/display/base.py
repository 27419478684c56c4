from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from urllib.parse import quote


@dataclass(frozen=True)
class ConnectionDescriptor:
    base_url: str
    ws_scheme: str
    host: str
    stream_name: str
    protocol: str

    @property
    def ws_url(self) -> str:
        return f"{self.ws_scheme}{self.host}/api/ws?src={quote(self.stream_name, safe='')}"

    def as_dict(self) -> dict[str, str]:
        return {
            "baseUrl": self.base_url,
            "wsScheme": self.ws_scheme,
            "wsUrl": self.ws_url,
            "streamName": self.stream_name,
            "protocol": self.protocol,
        }


class DisplaySurface(ABC):
    """Rendering sink driven by the playback session.

    Implementations only receive instructions; they report liveness back
    through ``PlaybackSession.record_activity``.
    """

    @abstractmethod
    def show_stream(self, descriptor: ConnectionDescriptor) -> None:
        raise NotImplementedError

    @abstractmethod
    def show_placeholder(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def show_blank(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def clear(self) -> None:
        raise NotImplementedError
