from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
import threading
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from streamviewer.api import (
    routes_burn_in,
    routes_cameras,
    routes_health,
    routes_logs,
    routes_playback,
    routes_surface,
    routes_tour,
)
from streamviewer.camera.registry import CameraRegistry
from streamviewer.config.defaults import (
    API_VERSION,
    APP_NAME,
    KEY_DEFAULT_STREAM,
    KEY_INITIALIZED,
    KEY_SERVER_URL,
    NS_APP_PREFS,
    NS_STREAM_SETTINGS,
)
from streamviewer.config.migrate import SettingsStore
from streamviewer.display.kiosk import KioskSurface
from streamviewer.errors import InternalError, ViewerError
from streamviewer.playback.burn_in import BurnInScheduler
from streamviewer.playback.health import HealthMonitor
from streamviewer.playback.session import PlaybackOwner, PlaybackSession
from streamviewer.playback.timers import Scheduler
from streamviewer.playback.tour import TourScheduler
from streamviewer.storage.db import Database
from streamviewer.storage.kv import KeyValueStore
from streamviewer.util.logging import get_logger, setup_logging
from streamviewer.util.paths import ensure_data_tree
from streamviewer.util.ring_log import LogRingBuffer
from streamviewer.util.security import resolve_path_within_base

logger = get_logger(__name__)

# Polled by the kiosk page every few seconds.
_UNLOGGED_PATHS = frozenset({"/api/surface", "/api/surface/heartbeat"})


@dataclass
class ViewerState:
    settings_store: SettingsStore
    log_level: str
    db: Database
    store: KeyValueStore
    log: LogRingBuffer
    registry: CameraRegistry
    scheduler: Scheduler
    surface: KioskSurface
    session: PlaybackSession
    health: HealthMonitor
    tour: TourScheduler
    burn_in: BurnInScheduler
    data_dir: Path
    first_run: bool = False
    _server_url: str | None = field(default=None, repr=False)
    _shutdown_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _shutdown_started: bool = field(default=False, init=False, repr=False)
    _shutdown_complete: bool = field(default=False, init=False, repr=False)

    @classmethod
    def create(
        cls,
        data_dir: str | None = None,
        bind: str | None = None,
        port: int | None = None,
        log_level: str = "info",
        start_timers: bool = True,
    ) -> "ViewerState":
        settings_store = SettingsStore(cli_data_dir=data_dir)

        updates: dict[str, Any] = {}
        if bind:
            updates["bind"] = bind
        if port:
            updates["port"] = port
        if updates:
            settings_store.update(**updates)
        settings = settings_store.settings

        data_path = Path(settings.data_dir)
        ensure_data_tree(data_path)
        setup_logging(log_level, data_path)

        db = Database(data_path / "db" / "streamviewer.db")
        store = KeyValueStore(db)
        log = LogRingBuffer(capacity=settings.log_capacity)
        log.add(f"Server initialized on port {settings.port}")

        first_run = not store.get_bool(NS_APP_PREFS, KEY_INITIALIZED, default=False)
        if first_run:
            logger.info("first run detected; initializing preferences")
            store.set_bool(NS_APP_PREFS, KEY_INITIALIZED, True)

        registry = CameraRegistry(store)
        scheduler = Scheduler()
        surface = KioskSurface()
        session = PlaybackSession(surface, log)
        health = HealthMonitor(
            session,
            scheduler,
            log,
            check_interval=settings.health_check_interval_seconds,
            stream_timeout=settings.stream_timeout_seconds,
            settle_seconds=settings.recovery_settle_seconds,
            load_error_retry=settings.load_error_retry_seconds,
        )
        tour = TourScheduler(session, scheduler, log)
        burn_in = BurnInScheduler(
            session,
            scheduler,
            store,
            log,
            tour_active=lambda: tour.active,
            interval_seconds=settings.burn_in_interval_seconds,
            duration_seconds=settings.burn_in_duration_seconds,
        )

        state = cls(
            settings_store=settings_store,
            log_level=log_level,
            db=db,
            store=store,
            log=log,
            registry=registry,
            scheduler=scheduler,
            surface=surface,
            session=session,
            health=health,
            tour=tour,
            burn_in=burn_in,
            data_dir=data_path,
            first_run=first_run,
            _server_url=store.get_string(NS_STREAM_SETTINGS, KEY_SERVER_URL),
        )
        state.play_boot_stream()
        if start_timers:
            scheduler.start()
            health.start()
            burn_in.start()
        return state

    @property
    def server_url(self) -> str | None:
        return self._server_url

    def remember_server_url(self, url: str) -> str:
        value = url.strip()
        if value != self._server_url:
            self.store.set_string(NS_STREAM_SETTINGS, KEY_SERVER_URL, value)
            self._server_url = value
        return value

    @property
    def default_stream(self) -> str | None:
        return self.store.get_string(NS_STREAM_SETTINGS, KEY_DEFAULT_STREAM) or None

    def set_default_stream(self, stream_name: str | None) -> str | None:
        value = (stream_name or "").strip()
        if value:
            self.store.set_string(NS_STREAM_SETTINGS, KEY_DEFAULT_STREAM, value)
        else:
            self.store.delete(NS_STREAM_SETTINGS, KEY_DEFAULT_STREAM)
        return value or None

    def play_boot_stream(self) -> None:
        stream_name = self.default_stream
        if not stream_name or not self.server_url:
            self.session.show_idle()
            return
        camera = next((c for c in self.registry.list_cameras() if c.stream_name == stream_name), None)
        protocol = camera.protocol if camera else "mse"
        try:
            self.session.configure(self.server_url, stream_name, protocol, owner=PlaybackOwner.BOOT)
        except ViewerError as exc:
            self.log.add(f"Default stream could not start: {exc}")
            self.session.show_idle()

    def begin_shutdown(self) -> None:
        with self._shutdown_lock:
            if self._shutdown_started:
                return
            self._shutdown_started = True
        self.tour.stop()
        self.health.stop()
        self.burn_in.shutdown()
        self.scheduler.shutdown()

    def shutdown(self) -> None:
        self.begin_shutdown()
        with self._shutdown_lock:
            if self._shutdown_complete:
                return
            self._shutdown_complete = True
        self.db.close()


def _packaged_ui_dir() -> Path:
    return Path(__file__).resolve().parent / "web"


def _error_response(state: ViewerState | None, request: Request, status_code: int, message: str) -> JSONResponse:
    if state is not None:
        state.log.add(f"{request.method} {request.url.path} failed ({status_code}): {message}")
    return JSONResponse(status_code=status_code, content={"error": message})


def install_error_handlers(app: FastAPI) -> None:
    """Map every failure to a JSON ``{"error": ...}`` body with a status code."""

    def _state(request: Request) -> ViewerState | None:
        return getattr(request.app.state, "viewer", None)

    @app.exception_handler(ViewerError)
    async def handle_viewer_error(request: Request, exc: ViewerError) -> JSONResponse:
        return _error_response(_state(request), request, exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        if errors:
            first = errors[0]
            location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
            message = f"{location}: {first.get('msg', 'invalid')}" if location else str(first.get("msg", "invalid"))
        else:
            message = "Malformed request body"
        return _error_response(_state(request), request, 400, message)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        state = _state(request)
        path = request.url.path
        if state is not None and path.startswith("/api/") and path not in _UNLOGGED_PATHS:
            state.log.add(f"{request.method} {path}")
        try:
            return await call_next(request)
        except Exception as exc:
            logger.exception("unhandled error serving %s %s", request.method, path)
            error = InternalError(f"Internal error: {exc}")
            return _error_response(state, request, error.status_code, error.message)


def create_app(
    data_dir: str | None = None,
    bind: str | None = None,
    port: int | None = None,
    log_level: str = "info",
) -> FastAPI:
    state = ViewerState.create(data_dir=data_dir, bind=bind, port=port, log_level=log_level)
    ui_dir = _packaged_ui_dir()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            yield
        finally:
            app.state.viewer.shutdown()

    app = FastAPI(title=APP_NAME, version=API_VERSION, lifespan=lifespan)
    app.state.viewer = state

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_error_handlers(app)

    app.include_router(routes_health.router, prefix="/api")
    app.include_router(routes_cameras.router, prefix="/api")
    app.include_router(routes_playback.router, prefix="/api")
    app.include_router(routes_tour.router, prefix="/api")
    app.include_router(routes_burn_in.router, prefix="/api")
    app.include_router(routes_surface.router, prefix="/api")
    app.include_router(routes_logs.router, prefix="/api")

    assets = ui_dir / "assets"
    if assets.exists():
        app.mount("/assets", StaticFiles(directory=assets), name="assets")

    @app.get("/", response_model=None)
    def root():
        index_path = ui_dir / "index.html"
        if index_path.exists():
            return FileResponse(index_path)
        return HTMLResponse(f"<h1>{APP_NAME}</h1><p>Web UI bundle missing.</p>")

    @app.get("/{full_path:path}", response_model=None)
    def static_file(full_path: str):
        if full_path.startswith("api/"):
            return JSONResponse(status_code=404, content={"error": "Not Found"})
        candidate = resolve_path_within_base(ui_dir, full_path)
        if candidate is not None and candidate.exists() and candidate.is_file():
            return FileResponse(candidate)
        return HTMLResponse(f"<h1>{APP_NAME}</h1><p>File not found.</p>", status_code=404)

    return app
