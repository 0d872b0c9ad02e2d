"""Flask JSON API consumed by the map front end."""
from __future__ import annotations

from flask import Flask, Response, jsonify, request

from .enginelib import share_link
from .service import MapManagerService


def _marker_list(markers):
    return [marker.to_dict() for marker in markers]


def create_app(service: MapManagerService) -> Flask:
    app = Flask(__name__)
    app.config["MAP_SERVICE"] = service
    repo = service.repository

    @app.get("/api/status")
    def api_status():
        return jsonify(service.status_payload())

    @app.get("/api/config")
    def api_config():
        return jsonify(repo.map_config.to_dict())

    # ----------------------- markers -----------------------
    @app.get("/api/markers")
    def api_markers():
        return jsonify(_marker_list(repo.markers))

    @app.get("/api/markers/filtered")
    def api_filtered():
        zoom = request.args.get("zoom", type=float)
        if zoom is None:
            return jsonify(_marker_list(repo.filtered_markers))
        return jsonify(_marker_list(repo.visible_markers(zoom)))

    @app.post("/api/markers")
    def api_add():
        payload = request.get_json(force=True)
        try:
            marker = repo.add(payload)
        except (KeyError, TypeError, ValueError) as exc:
            return jsonify({"error": str(exc)}), 400
        return jsonify(marker.to_dict()), 201

    @app.patch("/api/markers/<marker_id>")
    def api_update(marker_id):
        payload = request.get_json(force=True)
        try:
            found = repo.update(marker_id, payload)
        except (KeyError, TypeError, ValueError) as exc:
            return jsonify({"error": str(exc)}), 400
        if not found:
            return jsonify({"error": "unknown marker"}), 404
        return jsonify(repo.get(marker_id).to_dict())

    @app.post("/api/markers/<marker_id>/move")
    def api_move(marker_id):
        payload = request.get_json(force=True)
        if "x" not in payload or "y" not in payload:
            return jsonify({"error": "x and y are required"}), 400
        try:
            found = repo.move(marker_id, payload["x"], payload["y"])
        except (KeyError, TypeError, ValueError) as exc:
            return jsonify({"error": str(exc)}), 400
        if not found:
            return jsonify({"error": "unknown marker"}), 404
        return jsonify(repo.get(marker_id).to_dict())

    @app.delete("/api/markers/<marker_id>")
    def api_delete(marker_id):
        if not repo.delete(marker_id):
            return jsonify({"error": "unknown marker"}), 404
        return jsonify({"deleted": marker_id})

    # ----------------------- history -----------------------
    @app.post("/api/undo")
    def api_undo():
        repo.undo()
        return jsonify({"can_undo": repo.can_undo, "can_redo": repo.can_redo})

    @app.post("/api/redo")
    def api_redo():
        repo.redo()
        return jsonify({"can_undo": repo.can_undo, "can_redo": repo.can_redo})

    # ----------------------- filters -----------------------
    @app.post("/api/filters")
    def api_filters():
        payload = request.get_json(force=True)
        pipeline = repo.pipeline
        try:
            if "all" in payload:
                pipeline.set_all_types(bool(payload["all"]))
            for marker_type, enabled in (payload.get("types") or {}).items():
                pipeline.set_type(marker_type, bool(enabled))
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400
        if "search" in payload:
            pipeline.set_search(str(payload["search"]))
            if payload.get("immediate"):
                pipeline.flush()
        return jsonify(repo.filters.to_dict())

    # ----------------------- sync -----------------------
    @app.post("/api/refresh")
    def api_refresh():
        force = bool((request.get_json(silent=True) or {}).get("force", False))
        return jsonify(service.refresh(force=force).summary())

    @app.post("/api/reset")
    def api_reset():
        return jsonify(service.reset().summary())

    @app.get("/api/export")
    def api_export():
        return Response(service.export_snapshot(), mimetype="application/json")

    @app.post("/api/import")
    def api_import():
        result = service.import_snapshot(request.get_data(as_text=True))
        return jsonify(result.summary()), (200 if result.ok else 400)

    # ----------------------- share links -----------------------
    @app.post("/api/share")
    def api_share():
        payload = request.get_json(force=True)
        try:
            params = share_link.ShareParams(
                x=float(payload["x"]),
                y=float(payload["y"]),
                zoom=float(payload["zoom"]),
                marker=payload.get("marker"),
            )
        except (KeyError, TypeError, ValueError):
            return jsonify({"error": "x, y and zoom are required numbers"}), 400
        base = payload.get("base") or request.host_url
        return jsonify({"url": share_link.encode(params, base)})

    @app.get("/api/share")
    def api_share_decode():
        url = request.args.get("url", "")
        params = share_link.decode(url)
        if params is None:
            name = share_link.location_param(url)
            marker = repo.find_by_name(name) if name else None
            return jsonify({"view": None, "location": marker.to_dict() if marker else None})
        return jsonify({
            "view": {"x": params.x, "y": params.y, "zoom": params.zoom, "marker": params.marker},
            "location": None,
        })

    @app.get("/api/logs")
    def api_logs():
        limit = int(request.args.get("limit", 50))
        return jsonify(service.recent_logs(limit))

    return app
