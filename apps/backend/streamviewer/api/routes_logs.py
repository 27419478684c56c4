from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

router = APIRouter(prefix="/logs", tags=["logs"])


@router.get("", response_class=PlainTextResponse)
def get_logs(request: Request) -> str:
    return request.app.state.viewer.log.render()
