from __future__ import annotations

import pytest

from streamviewer.camera.registry import CameraRegistry
from streamviewer.config.defaults import KEY_CAMERA_LIST, NS_CAMERAS
from streamviewer.errors import NotFound, PersistenceError, ValidationError
from streamviewer.storage.db import Database
from streamviewer.storage.kv import KeyValueStore


def _store(tmp_path) -> KeyValueStore:
    return KeyValueStore(Database(tmp_path / "db" / "streamviewer.db"))


def _camera(camera_id: str, order: int | None = None, **extra: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "id": camera_id,
        "name": camera_id.upper(),
        "streamName": f"stream_{camera_id}",
        "enabled": True,
        "protocol": "mse",
    }
    if order is not None:
        payload["order"] = order
    payload.update(extra)
    return payload


def test_replace_all_sorts_by_order_and_renumbers(tmp_path) -> None:
    registry = CameraRegistry(_store(tmp_path))
    registry.replace_all([_camera("a", 5), _camera("b", 1), _camera("c", 3)])

    cameras = registry.list_cameras()
    assert [camera.id for camera in cameras] == ["b", "c", "a"]
    assert [camera.order for camera in cameras] == [0, 1, 2]


def test_missing_order_falls_back_to_position(tmp_path) -> None:
    registry = CameraRegistry(_store(tmp_path))
    registry.replace_all([_camera("a"), _camera("b"), _camera("c", 0)])

    assert [camera.id for camera in registry.list_cameras()] == ["a", "c", "b"]


def test_blank_name_falls_back_to_stream_name(tmp_path) -> None:
    registry = CameraRegistry(_store(tmp_path))
    registry.replace_all([_camera("a", name="  ")])

    assert registry.get("a").name == "stream_a"


def test_camera_list_survives_reload(tmp_path) -> None:
    store = _store(tmp_path)
    CameraRegistry(store).replace_all([_camera("a", 1), _camera("b", 0, enabled=False)])

    reloaded = CameraRegistry(store)
    assert [camera.id for camera in reloaded.list_cameras()] == ["b", "a"]
    assert [camera.id for camera in reloaded.enabled()] == ["a"]
    stored = store.get_json(NS_CAMERAS, KEY_CAMERA_LIST)
    assert stored[0]["streamName"] == "stream_b"


def test_toggle_twice_restores_flag(tmp_path) -> None:
    registry = CameraRegistry(_store(tmp_path))
    registry.replace_all([_camera("a")])

    assert registry.toggle("a").enabled is False
    assert registry.toggle("a").enabled is True
    assert registry.get("a").enabled is True


def test_toggle_unknown_camera_raises_not_found(tmp_path) -> None:
    registry = CameraRegistry(_store(tmp_path))
    with pytest.raises(NotFound):
        registry.toggle("missing")


def test_discovery_upsert_is_idempotent(tmp_path) -> None:
    registry = CameraRegistry(_store(tmp_path))
    registry.replace_all([_camera("a", streamName="front")])

    assert registry.upsert_from_discovery(["front", "garage", "yard"]) == 2
    assert registry.upsert_from_discovery(["front", "garage", "yard"]) == 0

    cameras = registry.list_cameras()
    assert [camera.stream_name for camera in cameras] == ["front", "garage", "yard"]
    assert [camera.order for camera in cameras] == [0, 1, 2]
    assert all(camera.enabled and camera.protocol == "mse" for camera in cameras)
    assert cameras[1].name == "garage"


@pytest.mark.parametrize(
    "entries",
    [
        [_camera("a"), _camera("a")],
        [_camera("a", streamName="")],
        [_camera("   ")],
        [{"name": "no id", "streamName": "x"}],
        [_camera("a", protocol="hls")],
    ],
)
def test_invalid_replace_keeps_previous_list(tmp_path, entries) -> None:
    registry = CameraRegistry(_store(tmp_path))
    registry.replace_all([_camera("keep")])

    with pytest.raises(ValidationError):
        registry.replace_all(entries)
    assert [camera.id for camera in registry.list_cameras()] == ["keep"]


def test_add_delete_and_clear(tmp_path) -> None:
    registry = CameraRegistry(_store(tmp_path))
    first = registry.add("Front", "front")
    second = registry.add("", "back", "webrtc")

    assert first.id.startswith("cam-")
    assert second.name == "back"
    assert second.protocol == "webrtc"

    removed = registry.delete(first.id)
    assert removed.stream_name == "front"
    assert [camera.order for camera in registry.list_cameras()] == [0]
    with pytest.raises(NotFound):
        registry.delete(first.id)

    assert registry.clear() == 1
    assert registry.list_cameras() == []


def test_corrupt_stored_entries_are_skipped(tmp_path) -> None:
    store = _store(tmp_path)
    store.set_json(
        NS_CAMERAS,
        KEY_CAMERA_LIST,
        [_camera("a"), {"id": "b", "protocol": "rtsp"}, _camera("a"), "junk"],
    )

    registry = CameraRegistry(store)
    assert [camera.id for camera in registry.list_cameras()] == ["a"]


def _failing_writes(store: KeyValueStore, monkeypatch) -> None:
    def fail(*_args, **_kwargs):
        raise PersistenceError("disk full")

    monkeypatch.setattr(store, "set_json", fail)
    monkeypatch.setattr(store, "set_string", fail)


@pytest.mark.parametrize(
    "mutate",
    [
        lambda registry: registry.replace_all([_camera("x")]),
        lambda registry: registry.toggle("keep"),
        lambda registry: registry.upsert_from_discovery(["garage"]),
        lambda registry: registry.add("Yard", "yard"),
        lambda registry: registry.delete("keep"),
        lambda registry: registry.clear(),
    ],
)
def test_failed_write_keeps_previous_list(tmp_path, monkeypatch, mutate) -> None:
    store = _store(tmp_path)
    registry = CameraRegistry(store)
    registry.replace_all([_camera("keep", streamName="front")])
    before = registry.list_cameras()

    _failing_writes(store, monkeypatch)
    with pytest.raises(PersistenceError, match="disk full"):
        mutate(registry)

    assert registry.list_cameras() == before
    assert registry.get("keep").enabled is True
    assert [camera.id for camera in CameraRegistry(store).list_cameras()] == ["keep"]
