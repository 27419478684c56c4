from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field

from streamviewer.config.schema import StreamProtocol

router = APIRouter(tags=["cameras"])


class NewCameraPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    stream_name: str = Field(alias="streamName", min_length=1)
    protocol: StreamProtocol = "mse"


@router.get("/cameras")
def list_cameras(request: Request) -> list[dict[str, Any]]:
    state = request.app.state.viewer
    cameras = state.registry.list_cameras()
    state.log.add(f"Cameras list requested: {len(cameras)} cameras")
    return [camera.to_json() for camera in cameras]


@router.get("/camera-names", response_class=PlainTextResponse)
def camera_names(request: Request) -> str:
    state = request.app.state.viewer
    names = ",".join(camera.name for camera in state.registry.list_cameras())
    state.log.add(f"Camera names requested: {names}")
    return names


@router.post("/cameras")
def save_cameras(request: Request, payload: list[dict[str, Any]] = Body(...)) -> dict[str, object]:
    state = request.app.state.viewer
    cameras = state.registry.replace_all(payload)
    state.log.add(f"Saved {len(cameras)} cameras")
    return {"success": True}


@router.delete("/cameras")
def clear_cameras(request: Request) -> dict[str, object]:
    state = request.app.state.viewer
    removed = state.registry.clear()
    state.log.add(f"Cleared {removed} cameras")
    return {"success": True, "removed": removed}


@router.post("/camera")
def add_camera(payload: NewCameraPayload, request: Request) -> dict[str, object]:
    state = request.app.state.viewer
    camera = state.registry.add(payload.name, payload.stream_name, payload.protocol)
    state.log.add(f"Added camera {camera.name} ({camera.stream_name})")
    return {"success": True, "camera": camera.to_json()}


@router.post("/camera/{camera_id}/toggle")
def toggle_camera(camera_id: str, request: Request) -> dict[str, object]:
    state = request.app.state.viewer
    camera = state.registry.toggle(camera_id)
    state.log.add(f"Toggled camera {camera.name}: {'enabled' if camera.enabled else 'disabled'}")
    return {
        "success": True,
        "cameraId": camera.id,
        "cameraName": camera.name,
        "enabled": camera.enabled,
    }


@router.delete("/camera/{camera_id}")
def delete_camera(camera_id: str, request: Request) -> dict[str, object]:
    state = request.app.state.viewer
    camera = state.registry.delete(camera_id)
    state.log.add(f"Deleted camera {camera.name}")
    return {"success": True, "cameraId": camera.id}
