from __future__ import annotations

import argparse
import json
import signal
import sys
import threading

import uvicorn

from streamviewer.camera.discovery import discover_streams
from streamviewer.config.defaults import (
    DEFAULT_BIND,
    DEFAULT_DISCOVERY_CONNECT_TIMEOUT_SECONDS,
    DEFAULT_DISCOVERY_READ_TIMEOUT_SECONDS,
    DEFAULT_LOG_LEVEL,
    DEFAULT_PORT,
)
from streamviewer.main import create_app

_KNOWN_COMMANDS = {"serve", "discover"}


def _add_serve_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--data-dir", default=None, help="Path for runtime data (SQLite/logs/config)")
    parser.add_argument("--bind", default=DEFAULT_BIND, help=f"Bind host (default {DEFAULT_BIND})")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help=f"Bind port (default {DEFAULT_PORT})")
    parser.add_argument("--log-level", default=DEFAULT_LOG_LEVEL, help="Uvicorn log level")


def _build_parser(prog: str) -> argparse.ArgumentParser:
    """Parser used when no explicit command is given; runs the server."""
    parser = argparse.ArgumentParser(prog=prog, description="Stream Viewer kiosk control server")
    _add_serve_arguments(parser)
    return parser


def _build_command_parser(prog: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=prog, description="Stream Viewer kiosk control server")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the control API and kiosk surface")
    _add_serve_arguments(serve)

    discover = subparsers.add_parser("discover", help="List the streams a go2rtc server publishes")
    discover.add_argument("server_url", help="Base URL of the go2rtc server, e.g. http://10.0.0.5:1984")
    discover.add_argument(
        "--connect-timeout",
        type=float,
        default=DEFAULT_DISCOVERY_CONNECT_TIMEOUT_SECONDS,
        help="Connect timeout in seconds",
    )
    discover.add_argument(
        "--read-timeout",
        type=float,
        default=DEFAULT_DISCOVERY_READ_TIMEOUT_SECONDS,
        help="Read timeout in seconds",
    )
    discover.add_argument("--names-only", action="store_true", help="Print one stream name per line")
    return parser


def _run(parsed: argparse.Namespace) -> int:
    if parsed.bind == "0.0.0.0":
        print("[warning] LAN access enabled. Keep the viewer on a trusted network; the control API has no auth.")

    app = create_app(
        data_dir=parsed.data_dir,
        bind=parsed.bind,
        port=parsed.port,
        log_level=parsed.log_level,
    )
    early_shutdown_started = threading.Event()

    print(f"Stream Viewer listening on http://{parsed.bind}:{parsed.port}")
    config = uvicorn.Config(
        app,
        host=parsed.bind,
        port=parsed.port,
        log_level=parsed.log_level,
        workers=1,
        timeout_graceful_shutdown=2,
        timeout_keep_alive=1,
    )
    server = uvicorn.Server(config)
    previous_handlers: dict[int, object] = {}
    run_exit_code: int | None = None

    def _viewer_state():
        return getattr(getattr(app, "state", None), "viewer", None)

    def _begin_runtime_shutdown() -> None:
        if early_shutdown_started.is_set():
            return
        early_shutdown_started.set()
        viewer_state = _viewer_state()
        if viewer_state is None:
            return
        try:
            viewer_state.begin_shutdown()
        except Exception as exc:
            print(f"[warning] shutdown error: {exc}")

    def _finalize_state_shutdown() -> None:
        viewer_state = _viewer_state()
        if viewer_state is None:
            return
        try:
            viewer_state.shutdown()
        except Exception as exc:
            print(f"[warning] shutdown error: {exc}")

    def _request_exit(signum: int, _frame: object) -> None:
        if signum in {signal.SIGINT, signal.SIGTERM}:
            _begin_runtime_shutdown()
            server.should_exit = True

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            previous_handlers[sig] = signal.getsignal(sig)
            signal.signal(sig, _request_exit)
        except (AttributeError, ValueError):
            continue

    try:
        try:
            server.run()
        except KeyboardInterrupt:
            _begin_runtime_shutdown()
            server.should_exit = True
        except SystemExit as exc:
            if server.should_exit or early_shutdown_started.is_set():
                run_exit_code = 0
            else:
                code = exc.code
                run_exit_code = code if isinstance(code, int) else 1
    finally:
        _begin_runtime_shutdown()
        _finalize_state_shutdown()
        for sig, handler in previous_handlers.items():
            try:
                signal.signal(sig, handler)
            except (AttributeError, ValueError):
                continue
    if run_exit_code is not None:
        return run_exit_code
    if bool(getattr(server, "started", False)) or server.should_exit:
        return 0
    return 1


def _discover(parsed: argparse.Namespace) -> int:
    streams = discover_streams(
        parsed.server_url,
        connect_timeout=parsed.connect_timeout,
        read_timeout=parsed.read_timeout,
    )
    if parsed.names_only:
        for name in streams:
            print(name)
    else:
        print(json.dumps(streams, indent=2, sort_keys=True))
    return 0


def _dispatch_command(parsed: argparse.Namespace) -> int:
    if parsed.command == "serve":
        return _run(parsed)
    if parsed.command == "discover":
        return _discover(parsed)
    raise ValueError(f"Unknown command: {parsed.command}")


def main(argv: list[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    try:
        if args and args[0] in _KNOWN_COMMANDS:
            parser = _build_command_parser("streamviewer")
            parsed = parser.parse_args(args)
            return _dispatch_command(parsed)
        parser = _build_parser("streamviewer")
        parsed = parser.parse_args(args)
        return _run(parsed)
    except KeyboardInterrupt:
        return 0
    except Exception as exc:
        print(f"[error] {exc}")
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
