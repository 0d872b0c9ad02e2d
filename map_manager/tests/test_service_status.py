import json
from pathlib import Path

import yaml

from map_manager.enginelib.defaults import DEFAULT_MAP_CONFIG, default_markers
from map_manager.service import ManagerConfig, MapManagerService


class OfflineSession:
    def __init__(self):
        self.calls = 0

    def get(self, url, timeout=None):
        self.calls += 1
        raise AssertionError("no network access expected")


def write_config(tmp_path: Path) -> Path:
    config_path = tmp_path / "config.yaml"
    payload = {
        "storage_path": "state/map_cache.json",
        "publish_base_url": "https://wiki.example/",
        "max_history": 10,
    }
    with open(config_path, "w", encoding="utf-8") as handle:
        yaml.safe_dump(payload, handle)
    return config_path


def test_config_defaults_and_relative_paths(tmp_path):
    config = ManagerConfig.from_mapping({}, tmp_path)
    assert config.storage_path == tmp_path / "map_cache.json"
    assert config.cache_duration_seconds == 300
    assert config.max_history == 50
    assert config.search_debounce_seconds == 0.15
    assert config.refresh_interval_seconds == 0

    service = MapManagerService(write_config(tmp_path), session=OfflineSession())
    assert service.config.storage_path == tmp_path / "state" / "map_cache.json"
    assert service.repository._history.max_history == 10


def test_first_start_uses_static_defaults(tmp_path):
    service = MapManagerService(write_config(tmp_path), session=OfflineSession())
    repo = service.repository
    assert list(repo.markers) == default_markers()
    assert repo.map_config.image_width == DEFAULT_MAP_CONFIG.image_width
    assert repo.map_config.publish_base_url == "https://wiki.example/"


def test_cached_state_is_restored_before_network(tmp_path):
    config_path = write_config(tmp_path)
    session = OfflineSession()
    service = MapManagerService(config_path, session=session)
    marker = service.repository.add({"name": "Willowdeep", "type": "town", "x": 7, "y": 8})

    restarted = MapManagerService(config_path, session=session)
    assert restarted.repository.get(marker.id) == marker
    assert session.calls == 0

    state_file = tmp_path / "state" / "map_cache.json"
    with open(state_file, "r", encoding="utf-8") as handle:
        persisted = json.load(handle)
    assert any(item["name"] == "Willowdeep" for item in json.loads(persisted["map-markers"]))


def test_status_payload_reports_engine_state(tmp_path):
    service = MapManagerService(write_config(tmp_path), session=OfflineSession())
    service.repository.add({"name": "Willowdeep", "type": "town", "x": 7, "y": 8})
    service.repository.pipeline.set_type("town", False)

    status = service.status_payload()
    assert status["count"] == len(default_markers()) + 1
    assert status["filtered_count"] == status["count"] - 3
    assert status["can_undo"] is True
    assert status["can_redo"] is False
    assert status["is_loading"] is False
    assert status["last_fetch_ms"] is None
    assert status["filters"]["types"]["town"] is False

    logs = service.recent_logs()
    assert logs[-1]["type"] == "markers"
