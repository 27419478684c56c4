from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from pydantic import BaseModel, ConfigDict, Field, field_validator

from streamviewer.camera.discovery import discover_streams, normalize_base_url
from streamviewer.config.schema import StreamProtocol
from streamviewer.errors import UpstreamError
from streamviewer.playback.session import PlaybackOwner, normalize_server_url

router = APIRouter(tags=["playback"])


class StreamConfigPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    go2rtc_url: str = Field(alias="go2rtcUrl", min_length=1)
    stream_name: str = Field(alias="streamName", min_length=1)
    protocol: StreamProtocol = "mse"

    @field_validator("stream_name")
    @classmethod
    def stream_name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            msg = "streamName is required"
            raise ValueError(msg)
        return value


class DiscoverPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    server_url: str = Field(alias="serverUrl", min_length=1)


class DefaultStreamPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    stream_name: str | None = Field(default=None, alias="streamName")


class ServerUrlPayload(BaseModel):
    url: str = Field(min_length=1)


def _discover(request: Request, server_url: str) -> dict[str, Any]:
    state = request.app.state.viewer
    settings = state.settings_store.settings
    base = normalize_base_url(server_url)
    state.remember_server_url(base)
    state.log.add(f"Discovering cameras from: {base}")
    try:
        streams = discover_streams(
            base,
            connect_timeout=settings.discovery_connect_timeout_seconds,
            read_timeout=settings.discovery_read_timeout_seconds,
        )
    except UpstreamError as exc:
        state.log.add(f"Discovery error: {exc.message}")
        raise
    state.log.add(f"Discovered {len(streams)} streams from go2rtc")
    return streams


@router.post("/config")
def configure_stream(payload: StreamConfigPayload, request: Request) -> dict[str, object]:
    state = request.app.state.viewer
    # Persist first so a failed write leaves the display untouched.
    server_url = state.remember_server_url(normalize_server_url(payload.go2rtc_url))
    descriptor = state.session.configure(
        server_url,
        payload.stream_name,
        payload.protocol,
        owner=PlaybackOwner.MANUAL,
    )
    return {"success": True, "wsUrl": descriptor.ws_url}


@router.get("/status")
def get_status(request: Request) -> dict[str, object]:
    state = request.app.state.viewer
    target = state.session.target
    state.log.add(f"Status requested: {'Playing ' + target.stream_name if target else 'Idle'}")
    return {
        "playing": target is not None,
        "streamName": target.stream_name if target else None,
        "protocol": target.protocol if target else None,
        "tourActive": state.tour.active,
        "go2rtcUrl": state.server_url or "",
        "defaultStream": state.default_stream,
    }


@router.get("/default")
def get_default(request: Request) -> dict[str, object]:
    return {"defaultStream": request.app.state.viewer.default_stream}


@router.post("/default")
def set_default(payload: DefaultStreamPayload, request: Request) -> dict[str, object]:
    state = request.app.state.viewer
    value = state.set_default_stream(payload.stream_name)
    state.log.add(f"Default stream set: {value}")
    return {"success": True, "defaultStream": value}


@router.post("/discover")
def discover(payload: DiscoverPayload, request: Request) -> dict[str, Any]:
    return _discover(request, payload.server_url)


@router.post("/discover/import")
def discover_and_import(payload: DiscoverPayload, request: Request) -> dict[str, object]:
    state = request.app.state.viewer
    streams = _discover(request, payload.server_url)
    added = state.registry.upsert_from_discovery(streams.keys())
    state.log.add(f"Imported {added} new cameras from discovery")
    return {"success": True, "found": len(streams), "added": added}


@router.post("/save-server-url")
def save_server_url(payload: ServerUrlPayload, request: Request) -> dict[str, object]:
    state = request.app.state.viewer
    url = state.remember_server_url(normalize_base_url(payload.url))
    state.log.add(f"Server URL saved: {url}")
    return {"success": True, "url": url}
