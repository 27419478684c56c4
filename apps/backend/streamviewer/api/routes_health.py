from __future__ import annotations

from fastapi import APIRouter, Request

from streamviewer.config.defaults import API_VERSION

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
def get_health(request: Request) -> dict[str, object]:
    state = request.app.state.viewer
    settings = state.settings_store.settings
    return {
        "ok": True,
        "version": API_VERSION,
        "bind": settings.bind,
        "port": settings.port,
        "data_dir": settings.data_dir,
        "cameras": len(state.registry.list_cameras()),
        "session": state.session.snapshot(),
        "monitor": {
            "running": state.health.running,
            "recoveryPending": state.health.recovery_pending,
            "recoveries": state.health.recoveries,
        },
        "tourActive": state.tour.active,
        "burnIn": state.burn_in.status(),
    }
