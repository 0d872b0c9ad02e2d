"""High-level service orchestration for the map manager."""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .enginelib.defaults import DEFAULT_PUBLISH_BASE_URL
from .enginelib.filters import FilterPipeline
from .enginelib.remote_source import DEFAULT_SOURCE_URL, RemoteSource
from .enginelib.repository import ImportResult, MarkerRepository, RefreshResult
from .enginelib.state_store import JsonFileStore

logger = logging.getLogger(__name__)

MAX_EVENTS = 500


@dataclass
class ManagerConfig:
    storage_path: Path
    source_url: str = DEFAULT_SOURCE_URL
    publish_base_url: str = DEFAULT_PUBLISH_BASE_URL
    cache_duration_seconds: float = 300.0
    max_history: int = 50
    search_debounce_seconds: float = 0.15
    refresh_interval_seconds: float = 0.0
    request_timeout_seconds: float = 10.0

    @staticmethod
    def from_mapping(
        mapping: Dict[str, Any],
        base_dir: Optional[Path] = None,
    ) -> "ManagerConfig":
        def resolve(value: str) -> Path:
            path = Path(value)
            if not path.is_absolute() and base_dir is not None:
                path = base_dir / path
            return path

        return ManagerConfig(
            storage_path=resolve(mapping.get("storage_path", "map_cache.json")),
            source_url=str(mapping.get("source_url", DEFAULT_SOURCE_URL)),
            publish_base_url=str(
                mapping.get("publish_base_url", DEFAULT_PUBLISH_BASE_URL)
            ),
            cache_duration_seconds=float(mapping.get("cache_duration_seconds", 300)),
            max_history=int(mapping.get("max_history", 50)),
            search_debounce_seconds=float(mapping.get("search_debounce_seconds", 0.15)),
            refresh_interval_seconds=float(mapping.get("refresh_interval_seconds", 0)),
            request_timeout_seconds=float(mapping.get("request_timeout_seconds", 10)),
        )


@dataclass
class ManagerStatus:
    last_refresh: Optional[float] = None
    last_result: Optional[RefreshResult] = None
    recent_events: List[Dict[str, Any]] = field(default_factory=list)


class MapManagerService:
    """Wire the cache, remote source and repository together."""

    def __init__(
        self,
        config_path: Path,
        session=None,
        timer_factory=None,
    ):
        self.config_path = Path(config_path)
        self.config = load_config(self.config_path)
        self.store = JsonFileStore(self.config.storage_path)
        self.source = RemoteSource(
            url=self.config.source_url,
            publish_base_url=self.config.publish_base_url,
            session=session,
            timeout=self.config.request_timeout_seconds,
        )
        self.repository = MarkerRepository(
            self.store,
            self.source,
            history_size=self.config.max_history,
            cache_duration=self.config.cache_duration_seconds,
            pipeline=FilterPipeline(
                debounce_seconds=self.config.search_debounce_seconds,
                timer_factory=timer_factory,
            ),
        )
        self.repository.subscribe(self._on_repository_event)
        self.status = ManagerStatus()
        self._refresh_thread: Optional[threading.Thread] = None
        self._refresh_stop = threading.Event()

    # ----------------------- refresh -----------------------
    def startup(self) -> RefreshResult:
        """Background refresh run once when the map is opened."""

        return self.refresh(force=False)

    def refresh(self, force: bool = False) -> RefreshResult:
        result = self.repository.refresh_from_source(force=force)
        if result.status == "refreshed":
            self.status.last_refresh = time.time()
        self.status.last_result = result
        self._record_event("refresh", result.summary())
        return result

    def reset(self) -> RefreshResult:
        result = self.repository.reset()
        self.status.last_result = result
        self._record_event("reset", result.summary())
        return result

    # ----------------------- import / export -----------------------
    def import_snapshot(self, text: str) -> ImportResult:
        result = self.repository.import_snapshot(text)
        self._record_event("import", result.summary())
        return result

    def export_snapshot(self) -> str:
        return self.repository.export_snapshot()

    # ----------------------- status & logs -----------------------
    def status_payload(self) -> Dict[str, Any]:
        repo = self.repository
        last_fetch = repo.slots.last_fetch_ms()
        return {
            "count": len(repo.markers),
            "filtered_count": len(repo.filtered_markers),
            "is_loading": repo.is_loading,
            "can_undo": repo.can_undo,
            "can_redo": repo.can_redo,
            "last_fetch_ms": last_fetch,
            "last_result": (
                self.status.last_result.summary() if self.status.last_result else None
            ),
            "filters": repo.filters.to_dict(),
            "config": repo.map_config.to_dict(),
        }

    def recent_logs(self, limit: int = 50) -> List[Dict[str, Any]]:
        return list(self.status.recent_events[-limit:])

    def _on_repository_event(self, event_type: str) -> None:
        if event_type == "loading":
            self._record_event("loading", {"is_loading": self.repository.is_loading})
        elif event_type == "markers":
            self._record_event("markers", {"count": len(self.repository.markers)})

    def _record_event(self, event_type: str, payload: Dict[str, Any]):
        event = {"type": event_type, "timestamp": time.time(), "payload": payload}
        self.status.recent_events.append(event)
        del self.status.recent_events[:-MAX_EVENTS]

    # ----------------------- periodic refresher -----------------------
    def start_refresher(self, interval: Optional[float] = None) -> bool:
        interval = interval or self.config.refresh_interval_seconds
        if interval <= 0:
            return False
        if self._refresh_thread and self._refresh_thread.is_alive():
            return True

        self._refresh_stop.clear()

        def loop():
            while not self._refresh_stop.wait(interval):
                try:
                    self.refresh(force=False)
                except Exception as error:  # pragma: no cover - logged for troubleshooting
                    logger.exception("Background refresh failed")
                    self._record_event("refresh_error", {"error": str(error)})

        self._refresh_thread = threading.Thread(target=loop, daemon=True)
        self._refresh_thread.start()
        self._record_event("refresher_start", {"interval": interval})
        return True

    def stop_refresher(self):
        if not self._refresh_thread:
            return
        self._refresh_stop.set()
        self._refresh_thread.join(timeout=2)
        self._refresh_thread = None
        self._record_event("refresher_stop", {})


def load_config(path: Path) -> ManagerConfig:
    with open(path, "r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    return ManagerConfig.from_mapping(data, Path(path).parent)
