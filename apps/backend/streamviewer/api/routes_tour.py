from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

router = APIRouter(prefix="/tour", tags=["tour"])


class TourStartPayload(BaseModel):
    duration: int = Field(description="Seconds each camera stays on screen")


@router.post("/start")
def start_tour(payload: TourStartPayload, request: Request) -> dict[str, object]:
    state = request.app.state.viewer
    tour = state.tour.start(state.registry.enabled(), payload.duration, state.server_url)
    return {"success": True, "cameraCount": len(tour.cameras)}


@router.post("/stop")
def stop_tour(request: Request) -> dict[str, object]:
    request.app.state.viewer.tour.stop()
    return {"success": True}


@router.get("/status")
def tour_status(request: Request) -> dict[str, object]:
    state = request.app.state.viewer
    tour = state.tour.state
    target = state.session.target
    camera = tour.current_camera
    state.log.add(f"Tour status: {'active' if tour.active else 'inactive'}")
    return {
        "active": tour.active,
        "cameraCount": len(state.registry.enabled()),
        "currentStream": target.stream_name if target else None,
        "currentCamera": camera.name if camera else None,
        "currentIndex": tour.current_index if tour.active else None,
        "interval": tour.interval_seconds if tour.active else None,
    }
