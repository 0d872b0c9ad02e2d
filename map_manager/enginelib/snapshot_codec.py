"""Portable import/export documents for markers and map configuration."""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

import jsonschema
from jsonschema.exceptions import ValidationError

from .models import MARKER_SCHEMA, MapConfig, Marker


class SnapshotError(ValueError):
    kind = "snapshot-error"


class MalformedDocumentError(SnapshotError):
    kind = "malformed-document"


class UnrecognizedShapeError(SnapshotError):
    kind = "unrecognized-shape"


@dataclass
class ParsedSnapshot:
    markers: List[Marker]
    config: Optional[Dict[str, Any]] = None


def export_document(markers: Iterable[Marker], config: MapConfig) -> str:
    payload = {
        "config": config.export_dict(),
        "markers": [marker.to_dict() for marker in markers],
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)


def parse_document(text: str) -> ParsedSnapshot:
    """Parse an exported document or a bare marker array.

    Raises ``MalformedDocumentError`` when ``text`` is not JSON and
    ``UnrecognizedShapeError`` when it is JSON of neither accepted shape.
    """

    try:
        data = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise MalformedDocumentError(f"Invalid JSON: {exc}") from exc

    config: Optional[Dict[str, Any]] = None
    if isinstance(data, dict) and isinstance(data.get("markers"), list):
        raw_markers = data["markers"]
        raw_config = data.get("config")
        if raw_config is not None:
            if not isinstance(raw_config, dict):
                raise UnrecognizedShapeError("'config' must be an object")
            config = dict(raw_config)
    elif isinstance(data, list):
        raw_markers = data
    else:
        raise UnrecognizedShapeError(
            "Invalid format: expected markers array or {config, markers} object"
        )

    return ParsedSnapshot(markers=parse_markers(raw_markers), config=config)


def parse_markers(raw_markers: List[Any]) -> List[Marker]:
    markers: List[Marker] = []
    seen: set[str] = set()
    for idx, item in enumerate(raw_markers):
        try:
            jsonschema.validate(item, MARKER_SCHEMA)
        except ValidationError as err:
            raise UnrecognizedShapeError(f"marker {idx}: {err.message}") from err
        try:
            marker = Marker.from_dict(item)
        except ValueError as err:
            raise UnrecognizedShapeError(f"marker {idx}: {err}") from err
        if marker.id in seen:
            raise UnrecognizedShapeError(f"marker {idx}: duplicate id {marker.id!r}")
        seen.add(marker.id)
        markers.append(marker)
    return markers
