"""Canonical marker list with history, auto-save and remote refresh."""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import jsonpatch

from .coordinates import CoordinateTransform
from .defaults import DEFAULT_MAP_CONFIG, default_markers
from .filters import FilterPipeline, visible_at_zoom
from .history import History
from .models import MapConfig, Marker, validate_marker_payload, validate_marker_type
from .remote_source import RemoteSource
from .snapshot_codec import SnapshotError, export_document, parse_document
from .state_store import CacheSlots, KeyValueStore

logger = logging.getLogger(__name__)

CACHE_DURATION_SECONDS = 5 * 60

MarkerList = Tuple[Marker, ...]


@dataclass
class ImportResult:
    ok: bool
    count: int = 0
    error: Optional[str] = None
    kind: Optional[str] = None

    def summary(self) -> Dict[str, object]:
        return {"ok": self.ok, "count": self.count, "error": self.error, "kind": self.kind}


@dataclass
class RefreshResult:
    status: str
    count: int = 0
    from_fallback: bool = False
    error: Optional[str] = None
    overwritten: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def refreshed(self) -> bool:
        return self.status == "refreshed"

    def summary(self) -> Dict[str, object]:
        return {
            "status": self.status,
            "count": self.count,
            "from_fallback": self.from_fallback,
            "error": self.error,
            "overwritten": list(self.overwritten),
        }


class MarkerRepository:
    """Own the live marker list and map configuration.

    Every mutation is applied under one lock, recorded in the undo history,
    written to the cache and followed by a recomputation of the filtered
    list. Only ``refresh_from_source`` blocks on the network, and it does so
    without holding the lock so edits can continue meanwhile.
    """

    def __init__(
        self,
        store: KeyValueStore,
        source: RemoteSource,
        history_size: int = 50,
        cache_duration: float = CACHE_DURATION_SECONDS,
        clock: Callable[[], float] = time.time,
        id_factory: Optional[Callable[[], str]] = None,
        pipeline: Optional[FilterPipeline] = None,
    ):
        self.slots = CacheSlots(store)
        self.source = source
        self.cache_duration = cache_duration
        self.clock = clock
        self._id_factory = id_factory or self._timestamp_id
        self._last_id = 0
        self._lock = threading.RLock()
        self._refresh_guard = threading.Lock()
        self._loading = False
        self._listeners: List[Callable[[str], None]] = []

        cached_markers = self.slots.load_markers()
        if cached_markers is None:
            cached_markers = default_markers()
        self._config = self.slots.load_config(source.publish_base_url) or (
            DEFAULT_MAP_CONFIG.with_publish_base_url(source.publish_base_url)
        )
        self._history: History[MarkerList] = History(tuple(cached_markers), history_size)

        self.pipeline = pipeline or FilterPipeline()
        self.pipeline.subscribe(self._on_filters_changed)
        self._filtered: List[Marker] = self.pipeline.apply(self.markers)

    # ----------------------- read side -----------------------
    @property
    def markers(self) -> MarkerList:
        return self._history.state

    @property
    def filtered_markers(self) -> List[Marker]:
        with self._lock:
            return list(self._filtered)

    def visible_markers(self, zoom: float) -> List[Marker]:
        return visible_at_zoom(self.filtered_markers, zoom)

    @property
    def map_config(self) -> MapConfig:
        return self._config

    @property
    def transform(self) -> CoordinateTransform:
        return CoordinateTransform(self._config.image_height)

    @property
    def is_loading(self) -> bool:
        return self._loading

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo

    @property
    def filters(self):
        return self.pipeline.filters

    def get(self, marker_id: str) -> Optional[Marker]:
        for marker in self.markers:
            if marker.id == marker_id:
                return marker
        return None

    def find_by_name(self, name: str) -> Optional[Marker]:
        wanted = name.lower()
        for marker in self.markers:
            if marker.name.lower() == wanted:
                return marker
        return None

    # ----------------------- listeners -----------------------
    def subscribe(self, listener: Callable[[str], None]) -> None:
        self._listeners.append(listener)

    def _emit(self, event: str) -> None:
        for listener in list(self._listeners):
            listener(event)

    def _on_filters_changed(self) -> None:
        with self._lock:
            self._filtered = self.pipeline.apply(self.markers)
        self._emit("filters")

    # ----------------------- internals -----------------------
    def _timestamp_id(self) -> str:
        candidate = int(self.clock() * 1000)
        if candidate <= self._last_id:
            candidate = self._last_id + 1
        self._last_id = candidate
        return str(candidate)

    def _after_change(self) -> None:
        self._filtered = self.pipeline.apply(self.markers)
        self.slots.save_markers(list(self.markers))

    def _commit(self, markers: MarkerList) -> None:
        self._history.set_state(markers)
        self._after_change()

    def _replace_all(self, markers: MarkerList) -> None:
        self._history.set_state(markers)
        self._history.clear_history()
        self._after_change()

    # ----------------------- CRUD -----------------------
    def add(self, fields: Mapping[str, Any]) -> Marker:
        name = str(fields.get("name", "")).strip()
        if not name:
            raise ValueError("marker name must not be empty")
        validate_marker_type(str(fields.get("type", "")))
        with self._lock:
            existing = {marker.id for marker in self.markers}
            marker_id = self._id_factory()
            while marker_id in existing:
                marker_id = self._id_factory()
            payload = dict(fields)
            payload["id"] = marker_id
            payload["name"] = name
            validate_marker_payload(payload)
            marker = Marker.from_dict(payload)
            self._commit(self.markers + (marker,))
        self._emit("markers")
        return marker

    def update(self, marker_id: str, fields: Mapping[str, Any]) -> bool:
        with self._lock:
            current = self.markers
            for idx, marker in enumerate(current):
                if marker.id == marker_id:
                    break
            else:
                return False
            updated = marker.merged(fields)
            self._commit(current[:idx] + (updated,) + current[idx + 1:])
        self._emit("markers")
        return True

    def delete(self, marker_id: str) -> bool:
        with self._lock:
            current = self.markers
            remaining = tuple(marker for marker in current if marker.id != marker_id)
            if len(remaining) == len(current):
                return False
            self._commit(remaining)
        self._emit("markers")
        return True

    def move(self, marker_id: str, x: int, y: int) -> bool:
        return self.update(marker_id, {"x": x, "y": y})

    def undo(self) -> None:
        with self._lock:
            if not self._history.can_undo:
                return
            self._history.undo()
            self._after_change()
        self._emit("markers")

    def redo(self) -> None:
        with self._lock:
            if not self._history.can_redo:
                return
            self._history.redo()
            self._after_change()
        self._emit("markers")

    # ----------------------- import / export -----------------------
    def export_snapshot(self) -> str:
        with self._lock:
            return export_document(self.markers, self._config)

    def import_snapshot(self, text: str) -> ImportResult:
        try:
            parsed = parse_document(text)
            with self._lock:
                config = self._config.merged(parsed.config) if parsed.config else None
        except SnapshotError as exc:
            return ImportResult(ok=False, error=str(exc), kind=exc.kind)
        except (KeyError, TypeError, ValueError) as exc:
            return ImportResult(
                ok=False,
                error=f"Invalid config: {exc}",
                kind="unrecognized-shape",
            )

        with self._lock:
            self._replace_all(tuple(parsed.markers))
            if config is not None:
                self._config = config
                self.slots.save_config(config)
        self._emit("markers")
        if config is not None:
            self._emit("config")
        return ImportResult(ok=True, count=len(parsed.markers))

    # ----------------------- remote refresh -----------------------
    def _is_fresh(self) -> bool:
        last_fetch = self.slots.last_fetch_ms()
        if last_fetch is None:
            return False
        now_ms = int(self.clock() * 1000)
        return now_ms - last_fetch < self.cache_duration * 1000

    def _set_loading(self, value: bool) -> None:
        self._loading = value
        self._emit("loading")

    def refresh_from_source(self, force: bool = False) -> RefreshResult:
        if not force and self._is_fresh():
            return RefreshResult(status="skipped")
        if not self._refresh_guard.acquire(blocking=False):
            return RefreshResult(status="in_flight")
        try:
            self._set_loading(True)
            fetched_at = int(self.clock() * 1000)
            snapshot = self.source.fetch()
            with self._lock:
                previous = [marker.to_dict() for marker in self.markers]
                fresh = tuple(snapshot.markers)
                patch = jsonpatch.make_patch(previous, [m.to_dict() for m in fresh])
                self._replace_all(fresh)
                self._config = snapshot.config
                self.slots.save_config(snapshot.config)
                self.slots.save_last_fetch(fetched_at)
            if snapshot.from_fallback:
                logger.info("Map data replaced by static fallback (%s)", snapshot.error)
            else:
                logger.info("Map data refreshed from source (%d markers)", len(fresh))
            self._emit("markers")
            self._emit("config")
            return RefreshResult(
                status="refreshed",
                count=len(fresh),
                from_fallback=snapshot.from_fallback,
                error=snapshot.error,
                overwritten=list(patch),
            )
        finally:
            self._set_loading(False)
            self._refresh_guard.release()

    def reset(self) -> RefreshResult:
        return self.refresh_from_source(force=True)
