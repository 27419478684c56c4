from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel, ConfigDict, Field

router = APIRouter(prefix="/surface", tags=["surface"])


class SurfaceErrorPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(default="unknown error", max_length=2000)
    # Set when the page itself failed to load rather than the stream stalling.
    load_failed: bool = Field(default=False, alias="loadFailed")


@router.get("")
def get_surface(request: Request) -> dict[str, object]:
    state = request.app.state.viewer
    return {**state.surface.snapshot(), "session": state.session.snapshot()}


@router.post("/heartbeat")
def heartbeat(request: Request) -> dict[str, object]:
    request.app.state.viewer.session.record_activity()
    return {"success": True}


@router.post("/error")
def report_error(payload: SurfaceErrorPayload, request: Request) -> dict[str, object]:
    health = request.app.state.viewer.health
    if payload.load_failed:
        recovering = health.report_load_error(payload.message)
    else:
        recovering = health.report_error(payload.message)
    return {"success": True, "recovering": recovering}
