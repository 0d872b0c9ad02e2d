"""Durable key/value cache for offline-first marker state."""
from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from .models import MapConfig, Marker

logger = logging.getLogger(__name__)

MARKERS_KEY = "map-markers"
CONFIG_KEY = "map-config"
LAST_FETCH_KEY = "map-last-fetch"


class KeyValueStore:
    """String-valued storage addressed by key."""

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._data.get(key, default)

    def set(self, key: str, value: str) -> None:
        self._data[key] = str(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore(KeyValueStore):
    """Keep every slot in one JSON object file with atomic updates."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._lock = threading.Lock()

    # ----------------------- helpers -----------------------
    def load(self) -> Dict[str, str]:
        """Return all persisted slots, or nothing if the file is unreadable."""

        try:
            with open(self.path, "r", encoding="utf-8") as handle:
                data = json.load(handle)
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable cache file %s: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(key): str(value) for key, value in data.items()}

    def _write(self, state: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as handle:
            json.dump(state, handle, ensure_ascii=False, indent=2)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, self.path)

    # ----------------------- public api -----------------------
    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.load().get(key, default)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            state = self.load()
            state[key] = str(value)
            self._write(state)

    def delete(self, key: str) -> None:
        with self._lock:
            state = self.load()
            if state.pop(key, None) is not None:
                self._write(state)


class CacheSlots:
    """Typed access to the marker, config and last-fetch slots.

    Writes are fire-and-forget: a failing write is logged and the in-memory
    state stays authoritative.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store

    def load_markers(self) -> Optional[List[Marker]]:
        raw = self.store.get(MARKERS_KEY)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
            return [Marker.from_dict(item) for item in data]
        except (TypeError, ValueError, KeyError) as exc:
            logger.warning("Discarding cached markers: %s", exc)
            return None

    def load_config(self, publish_base_url: str = "") -> Optional[MapConfig]:
        raw = self.store.get(CONFIG_KEY)
        if raw is None:
            return None
        try:
            return MapConfig.from_dict(json.loads(raw), publish_base_url)
        except (TypeError, ValueError, KeyError) as exc:
            logger.warning("Discarding cached map config: %s", exc)
            return None

    def last_fetch_ms(self) -> Optional[int]:
        raw = self.store.get(LAST_FETCH_KEY)
        if raw is None:
            return None
        try:
            return int(raw)
        except ValueError:
            return None

    def save_markers(self, markers: List[Marker]) -> None:
        self._safe_set(
            MARKERS_KEY,
            json.dumps([marker.to_dict() for marker in markers], ensure_ascii=False),
        )

    def save_config(self, config: MapConfig) -> None:
        self._safe_set(CONFIG_KEY, json.dumps(config.to_dict(), ensure_ascii=False))

    def save_last_fetch(self, timestamp_ms: int) -> None:
        self._safe_set(LAST_FETCH_KEY, str(int(timestamp_ms)))

    def _safe_set(self, key: str, value: Any) -> None:
        try:
            self.store.set(key, value)
        except OSError as exc:
            logger.warning("Failed to persist %s: %s", key, exc)
