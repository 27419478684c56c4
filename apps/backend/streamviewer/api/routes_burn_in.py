from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel

router = APIRouter(prefix="/burn-in", tags=["burn-in"])


class BurnInTogglePayload(BaseModel):
    enabled: bool


@router.get("/status")
def burn_in_status(request: Request) -> dict[str, object]:
    state = request.app.state.viewer
    status = state.burn_in.status()
    state.log.add(f"Burn-in protection status requested: {'enabled' if status['enabled'] else 'disabled'}")
    return status


@router.post("/toggle")
def toggle_burn_in(payload: BurnInTogglePayload, request: Request) -> dict[str, object]:
    enabled = request.app.state.viewer.burn_in.set_enabled(payload.enabled)
    return {"success": True, "enabled": enabled}
