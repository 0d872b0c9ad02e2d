import json
from pathlib import Path

from map_manager.enginelib.defaults import DEFAULT_MAP_CONFIG, default_markers
from map_manager.enginelib.models import Marker
from map_manager.enginelib.state_store import (
    CONFIG_KEY,
    LAST_FETCH_KEY,
    MARKERS_KEY,
    CacheSlots,
    JsonFileStore,
)


def test_atomic_write_survives_reopen(tmp_path):
    path = tmp_path / "cache" / "map_cache.json"
    store = JsonFileStore(path)
    store.set(MARKERS_KEY, "[]")
    store.set(LAST_FETCH_KEY, "123")

    assert path.exists()
    assert not Path(f"{path}.tmp").exists()

    reopened = JsonFileStore(path)
    assert reopened.get(MARKERS_KEY) == "[]"
    assert reopened.get(LAST_FETCH_KEY) == "123"

    reopened.delete(LAST_FETCH_KEY)
    with open(path, "r", encoding="utf-8") as handle:
        data = json.load(handle)
    assert data == {MARKERS_KEY: "[]"}


def test_corrupt_file_reads_as_empty(tmp_path):
    path = tmp_path / "map_cache.json"
    path.write_text("{not json", encoding="utf-8")
    store = JsonFileStore(path)
    assert store.get(MARKERS_KEY) is None

    store.set(CONFIG_KEY, "{}")
    assert store.get(CONFIG_KEY) == "{}"


def test_cache_slots_round_trip(tmp_path):
    slots = CacheSlots(JsonFileStore(tmp_path / "map_cache.json"))
    assert slots.load_markers() is None
    assert slots.load_config() is None
    assert slots.last_fetch_ms() is None

    slots.save_markers(default_markers())
    slots.save_config(DEFAULT_MAP_CONFIG)
    slots.save_last_fetch(1_700_000_000_000)

    assert slots.load_markers() == default_markers()
    assert slots.load_config() == DEFAULT_MAP_CONFIG
    assert slots.last_fetch_ms() == 1_700_000_000_000


def test_unreadable_slots_are_discarded(tmp_path):
    store = JsonFileStore(tmp_path / "map_cache.json")
    store.set(MARKERS_KEY, '[{"id": "1"}]')
    store.set(CONFIG_KEY, "nope")
    store.set(LAST_FETCH_KEY, "yesterday")

    slots = CacheSlots(store)
    assert slots.load_markers() is None
    assert slots.load_config() is None
    assert slots.last_fetch_ms() is None


def test_failed_write_is_not_raised(tmp_path):
    class BrokenStore(JsonFileStore):
        def set(self, key, value):
            raise OSError("disk full")

    slots = CacheSlots(BrokenStore(tmp_path / "map_cache.json"))
    slots.save_markers([Marker(id="1", name="A", type="town", x=1, y=1)])
