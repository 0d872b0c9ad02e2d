import json
from pathlib import Path

import yaml

from map_manager.gui import create_app
from map_manager.service import MapManagerService

DOCUMENT = """# Map Data

```json
{
  "config": {
    "imageWidth": 2000,
    "imageHeight": 1000,
    "currentLocation": {"name": "Treston", "x": 500, "y": 400, "zoom": 0}
  },
  "markers": [
    {"id": "1", "name": "Treston", "type": "city", "x": 500, "y": 400},
    {"id": "2", "name": "Aerandor", "type": "continent", "x": 900, "y": 600}
  ]
}
```
"""


class FakeResponse:
    status_code = 200
    ok = True
    text = DOCUMENT


class FakeSession:
    def __init__(self):
        self.calls = 0

    def get(self, url, timeout=None):
        self.calls += 1
        return FakeResponse()


def write_config(tmp_path: Path) -> Path:
    config_path = tmp_path / "config.yaml"
    payload = {
        "storage_path": "cache/map_cache.json",
        "source_url": "https://publish.example/Map-Data.md",
        "publish_base_url": "https://wiki.example/",
        "cache_duration_seconds": 300,
        "max_history": 20,
        "search_debounce_seconds": 0.15,
    }
    with open(config_path, "w", encoding="utf-8") as handle:
        yaml.safe_dump(payload, handle)
    return config_path


def make_client(tmp_path):
    service = MapManagerService(write_config(tmp_path), session=FakeSession())
    service.startup()
    return service, create_app(service).test_client()


def test_marker_crud_and_history(tmp_path):
    service, client = make_client(tmp_path)

    response = client.post("/api/markers", json={"name": "Brackenford", "type": "town", "x": 10, "y": 20})
    assert response.status_code == 201
    marker_id = response.get_json()["id"]

    response = client.post(f"/api/markers/{marker_id}/move", json={"x": 11, "y": 21})
    assert response.get_json()["x"] == 11

    response = client.patch(f"/api/markers/{marker_id}", json={"description": "Ford town"})
    assert response.get_json()["description"] == "Ford town"

    assert client.patch("/api/markers/missing", json={"name": "x"}).status_code == 404
    assert client.post("/api/markers", json={"name": "", "type": "town", "x": 1, "y": 1}).status_code == 400
    assert client.post("/api/markers", json={"name": "A", "type": "village", "x": 1, "y": 1}).status_code == 400

    assert client.delete(f"/api/markers/{marker_id}").status_code == 200
    assert len(client.get("/api/markers").get_json()) == 2

    flags = client.post("/api/undo").get_json()
    assert flags["can_redo"] is True
    assert len(client.get("/api/markers").get_json()) == 3

    status = client.get("/api/status").get_json()
    assert status["count"] == 3
    assert status["is_loading"] is False
    assert status["config"]["imageWidth"] == 2000


def test_filters_and_zoom(tmp_path):
    service, client = make_client(tmp_path)

    client.post("/api/filters", json={"search": "Trestn", "immediate": True})
    names = [m["name"] for m in client.get("/api/markers/filtered").get_json()]
    assert names == ["Treston"]

    client.post("/api/filters", json={"search": "", "immediate": True})
    visible = client.get("/api/markers/filtered?zoom=-3").get_json()
    assert [m["type"] for m in visible] == ["continent"]

    response = client.post("/api/filters", json={"types": {"village": False}})
    assert response.status_code == 400


def test_export_import_and_refresh(tmp_path):
    service, client = make_client(tmp_path)

    exported = client.get("/api/export").get_data(as_text=True)
    assert json.loads(exported)["config"]["imageHeight"] == 1000

    bad = client.post("/api/import", data="not json")
    assert bad.status_code == 400
    assert bad.get_json()["kind"] == "malformed-document"

    ok = client.post("/api/import", data='[{"id": "9", "name": "Solo", "type": "town", "x": 1, "y": 1}]')
    assert ok.get_json()["ok"] is True
    assert [m["id"] for m in client.get("/api/markers").get_json()] == ["9"]

    skipped = client.post("/api/refresh", json={}).get_json()
    assert skipped["status"] == "skipped"
    refreshed = client.post("/api/refresh", json={"force": True}).get_json()
    assert refreshed["status"] == "refreshed"
    assert refreshed["overwritten"]
    assert len(client.get("/api/markers").get_json()) == 2

    logs = client.get("/api/logs?limit=100").get_json()
    assert any(entry["type"] == "import" for entry in logs)


def test_share_link_endpoints(tmp_path):
    service, client = make_client(tmp_path)

    url = client.post(
        "/api/share",
        json={"x": 500.2, "y": 400.7, "zoom": 1.04, "marker": "1", "base": "https://map.example/?a=b"},
    ).get_json()["url"]
    assert url == "https://map.example/?x=500&y=401&z=1.0&marker=1"

    view = client.get("/api/share", query_string={"url": url}).get_json()
    assert view["view"] == {"x": 500.0, "y": 401.0, "zoom": 1.0, "marker": "1"}

    located = client.get(
        "/api/share", query_string={"url": "https://map.example/?location=treston"}
    ).get_json()
    assert located["view"] is None
    assert located["location"]["id"] == "1"

    assert client.post("/api/share", json={"x": "a"}).status_code == 400


def test_move_rejects_bad_coordinates(tmp_path):
    service, client = make_client(tmp_path)
    response = client.post("/api/markers", json={"name": "Brackenford", "type": "town", "x": 10, "y": 20})
    marker_id = response.get_json()["id"]

    assert client.post(f"/api/markers/{marker_id}/move", json={"x": "abc", "y": 1}).status_code == 400
    assert client.post(f"/api/markers/{marker_id}/move", json={"x": None, "y": 1}).status_code == 400
    assert client.post(f"/api/markers/{marker_id}/move", json={"x": -3, "y": 1}).status_code == 400
    assert service.repository.get(marker_id).x == 10
