from __future__ import annotations

import threading
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError as SchemaError

from streamviewer.config.defaults import DEFAULT_PROTOCOL, KEY_CAMERA_LIST, NS_CAMERAS
from streamviewer.config.schema import CameraEntry, StreamProtocol
from streamviewer.errors import NotFound, PersistenceError, ValidationError
from streamviewer.storage.kv import KeyValueStore
from streamviewer.util.logging import get_logger

logger = get_logger(__name__)


def _normalize_order(entries: list[CameraEntry]) -> tuple[CameraEntry, ...]:
    """Sort by declared order (input position when absent) and renumber 0..n-1."""
    keyed = [
        (entry.order if entry.order is not None else position, position, entry)
        for position, entry in enumerate(entries)
    ]
    keyed.sort(key=lambda item: (item[0], item[1]))
    return tuple(entry.model_copy(update={"order": index}) for index, (_, _, entry) in enumerate(keyed))


class CameraRegistry:
    """Ordered, persisted camera list.

    The in-memory collection is an immutable tuple replaced wholesale after a
    successful write, so readers never see a half-applied mutation and a
    failed write leaves the previous list in place.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store
        self._lock = threading.RLock()
        self._cameras: tuple[CameraEntry, ...] = self._load()

    def _load(self) -> tuple[CameraEntry, ...]:
        try:
            raw = self.store.get_json(NS_CAMERAS, KEY_CAMERA_LIST, default=[])
        except PersistenceError:
            logger.exception("stored camera list unreadable; starting empty")
            return ()
        if not isinstance(raw, list):
            logger.warning("stored camera list is not an array; starting empty")
            return ()

        entries: list[CameraEntry] = []
        seen_ids: set[str] = set()
        for index, item in enumerate(raw):
            try:
                entry = CameraEntry.model_validate(item)
            except SchemaError:
                logger.warning("skipping invalid stored camera at index %s", index)
                continue
            if not entry.id or entry.id in seen_ids:
                logger.warning("skipping stored camera with missing or duplicate id at index %s", index)
                continue
            seen_ids.add(entry.id)
            entries.append(entry)
        cameras = _normalize_order(entries)
        logger.info("loaded %s cameras from storage", len(cameras))
        return cameras

    def _commit(self, cameras: tuple[CameraEntry, ...]) -> None:
        self.store.set_json(NS_CAMERAS, KEY_CAMERA_LIST, [camera.to_json() for camera in cameras])
        self._cameras = cameras

    def list_cameras(self) -> list[CameraEntry]:
        return list(self._cameras)

    def enabled(self) -> list[CameraEntry]:
        return [camera for camera in self._cameras if camera.enabled]

    def get(self, camera_id: str) -> CameraEntry | None:
        return next((camera for camera in self._cameras if camera.id == camera_id), None)

    def replace_all(self, entries: Iterable[CameraEntry | Mapping[str, Any]]) -> list[CameraEntry]:
        validated: list[CameraEntry] = []
        seen_ids: set[str] = set()
        for position, raw in enumerate(entries):
            if isinstance(raw, Mapping) and not raw.get("id"):
                raise ValidationError(f"Camera at position {position} has no id")
            try:
                entry = raw if isinstance(raw, CameraEntry) else CameraEntry.model_validate(raw)
            except SchemaError as exc:
                raise ValidationError(f"Camera at position {position} is malformed") from exc

            camera_id = entry.id.strip()
            stream_name = entry.stream_name.strip()
            if not camera_id:
                raise ValidationError(f"Camera at position {position} has no id")
            if not stream_name:
                raise ValidationError(f"Camera {camera_id} has no streamName")
            if camera_id in seen_ids:
                raise ValidationError(f"Duplicate camera id: {camera_id}")
            seen_ids.add(camera_id)

            validated.append(
                entry.model_copy(
                    update={
                        "id": camera_id,
                        "stream_name": stream_name,
                        "name": entry.name.strip() or stream_name,
                    }
                )
            )

        with self._lock:
            self._commit(_normalize_order(validated))
            return self.list_cameras()

    def toggle(self, camera_id: str) -> CameraEntry:
        with self._lock:
            cameras = list(self._cameras)
            for index, camera in enumerate(cameras):
                if camera.id == camera_id:
                    updated = camera.model_copy(update={"enabled": not camera.enabled})
                    cameras[index] = updated
                    self._commit(tuple(cameras))
                    return updated
        raise NotFound(f"Camera {camera_id} not found")

    def upsert_from_discovery(self, stream_names: Iterable[str]) -> int:
        with self._lock:
            cameras = list(self._cameras)
            known = {camera.stream_name for camera in cameras}
            added = 0
            for raw_name in stream_names:
                name = str(raw_name).strip()
                if not name or name in known:
                    continue
                cameras.append(
                    CameraEntry(
                        name=name,
                        stream_name=name,
                        enabled=True,
                        protocol=DEFAULT_PROTOCOL,
                        order=len(cameras),
                    )
                )
                known.add(name)
                added += 1
            if added:
                self._commit(tuple(cameras))
            return added

    def add(self, name: str, stream_name: str, protocol: StreamProtocol = DEFAULT_PROTOCOL) -> CameraEntry:
        stream_name = stream_name.strip()
        if not stream_name:
            raise ValidationError("streamName is required")
        with self._lock:
            entry = CameraEntry(
                name=name.strip() or stream_name,
                stream_name=stream_name,
                enabled=True,
                protocol=protocol,
                order=len(self._cameras),
            )
            self._commit((*self._cameras, entry))
            return entry

    def delete(self, camera_id: str) -> CameraEntry:
        with self._lock:
            remaining = [camera for camera in self._cameras if camera.id != camera_id]
            if len(remaining) == len(self._cameras):
                raise NotFound(f"Camera {camera_id} not found")
            removed = next(camera for camera in self._cameras if camera.id == camera_id)
            self._commit(_normalize_order(remaining))
            return removed

    def clear(self) -> int:
        with self._lock:
            count = len(self._cameras)
            self._commit(())
            return count
