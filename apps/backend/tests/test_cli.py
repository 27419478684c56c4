from __future__ import annotations

import argparse
import json
from types import SimpleNamespace

from streamviewer import cli
from streamviewer.errors import DiscoveryUnreachable


def _parsed() -> argparse.Namespace:
    return cli._build_parser("streamviewer").parse_args(["--bind", "127.0.0.1", "--port", "8877"])


def _fake_app(begin_shutdown_calls: list[int], shutdown_calls: list[int] | None = None) -> object:
    viewer = SimpleNamespace(
        begin_shutdown=lambda: begin_shutdown_calls.append(1),
        shutdown=lambda: (shutdown_calls if shutdown_calls is not None else []).append(1),
    )
    return SimpleNamespace(state=SimpleNamespace(viewer=viewer))


def test_default_parser_uses_kiosk_port_and_lan_bind() -> None:
    parsed = cli._build_parser("streamviewer").parse_args([])
    assert parsed.port == 9090
    assert parsed.bind == "0.0.0.0"
    assert parsed.data_dir is None


def test_cli_returns_zero_on_keyboard_interrupt(monkeypatch) -> None:
    begin_calls: list[int] = []
    shutdown_calls: list[int] = []
    monkeypatch.setattr(cli, "create_app", lambda **kwargs: _fake_app(begin_calls, shutdown_calls))
    monkeypatch.setattr(cli.uvicorn, "Config", lambda *args, **kwargs: object())

    class _InterruptServer:
        def __init__(self, _config: object) -> None:
            self.should_exit = False
            self.started = True

        def run(self) -> None:
            raise KeyboardInterrupt

    monkeypatch.setattr(cli.uvicorn, "Server", _InterruptServer)

    assert cli._run(_parsed()) == 0
    assert len(begin_calls) == 1
    assert len(shutdown_calls) == 1


def test_cli_returns_nonzero_when_server_never_starts(monkeypatch) -> None:
    begin_calls: list[int] = []
    monkeypatch.setattr(cli, "create_app", lambda **kwargs: _fake_app(begin_calls))
    monkeypatch.setattr(cli.uvicorn, "Config", lambda *args, **kwargs: object())

    class _NeverStartedServer:
        def __init__(self, _config: object) -> None:
            self.should_exit = False
            self.started = False

        def run(self) -> None:
            return None

    monkeypatch.setattr(cli.uvicorn, "Server", _NeverStartedServer)

    assert cli._run(_parsed()) == 1
    assert len(begin_calls) == 1


def test_cli_forces_single_uvicorn_worker(monkeypatch) -> None:
    begin_calls: list[int] = []
    monkeypatch.setattr(cli, "create_app", lambda **kwargs: _fake_app(begin_calls))
    captured: dict[str, object] = {}

    def _capture_config(*_args, **kwargs):
        captured.update(kwargs)
        return object()

    monkeypatch.setattr(cli.uvicorn, "Config", _capture_config)

    class _StartedServer:
        def __init__(self, _config: object) -> None:
            self.should_exit = False
            self.started = True

        def run(self) -> None:
            return None

    monkeypatch.setattr(cli.uvicorn, "Server", _StartedServer)

    assert cli._run(_parsed()) == 0
    assert captured["workers"] == 1
    assert captured["port"] == 8877
    assert len(begin_calls) == 1


def test_cli_treats_system_exit_after_should_exit_as_clean(monkeypatch) -> None:
    begin_calls: list[int] = []
    monkeypatch.setattr(cli, "create_app", lambda **kwargs: _fake_app(begin_calls))
    monkeypatch.setattr(cli.uvicorn, "Config", lambda *args, **kwargs: object())

    class _SystemExitServer:
        def __init__(self, _config: object) -> None:
            self.should_exit = True
            self.started = True

        def run(self) -> None:
            raise SystemExit(1)

    monkeypatch.setattr(cli.uvicorn, "Server", _SystemExitServer)

    assert cli._run(_parsed()) == 0
    assert len(begin_calls) == 1


def test_main_returns_zero_on_interrupt(monkeypatch) -> None:
    def _raise_interrupt(_parsed: argparse.Namespace) -> int:
        raise KeyboardInterrupt

    monkeypatch.setattr(cli, "_run", _raise_interrupt)
    assert cli.main(["--port", "9191"]) == 0


def test_serve_command_dispatches_to_run(monkeypatch) -> None:
    seen: list[argparse.Namespace] = []
    monkeypatch.setattr(cli, "_run", lambda parsed: seen.append(parsed) or 0)

    assert cli.main(["serve", "--port", "9191"]) == 0
    assert seen[0].port == 9191


def test_discover_command_prints_stream_names(monkeypatch, capsys) -> None:
    captured: dict[str, object] = {}

    def _fake_discover(server_url: str, connect_timeout: float, read_timeout: float) -> dict[str, object]:
        captured["args"] = (server_url, connect_timeout, read_timeout)
        return {"front": {}, "garage": {}}

    monkeypatch.setattr(cli, "discover_streams", _fake_discover)

    assert cli.main(["discover", "http://10.0.0.5:1984", "--names-only", "--read-timeout", "2"]) == 0
    assert capsys.readouterr().out.splitlines() == ["front", "garage"]
    assert captured["args"] == ("http://10.0.0.5:1984", 5.0, 2.0)

    assert cli.main(["discover", "http://10.0.0.5:1984"]) == 0
    assert json.loads(capsys.readouterr().out) == {"front": {}, "garage": {}}


def test_discover_command_reports_errors(monkeypatch, capsys) -> None:
    def _unreachable(server_url: str, connect_timeout: float, read_timeout: float) -> dict[str, object]:
        raise DiscoveryUnreachable("Upstream server unreachable: refused")

    monkeypatch.setattr(cli, "discover_streams", _unreachable)

    assert cli.main(["discover", "http://10.0.0.5:1984"]) == 2
    assert "[error] Upstream server unreachable: refused" in capsys.readouterr().out
