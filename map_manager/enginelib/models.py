"""Marker and map configuration data model."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional

import jsonschema
from jsonschema.exceptions import ValidationError

from .coordinates import round_half_up


MARKER_TYPES = ("continent", "city", "region", "location", "town")

MARKER_COLORS: Dict[str, str] = {
    "continent": "#3498db",
    "city": "#e74c3c",
    "region": "#2ecc71",
    "location": "#9b59b6",
    "town": "#f39c12",
}

MARKER_TYPE_LABELS: Dict[str, str] = {
    "continent": "Continent",
    "city": "City",
    "region": "Region",
    "location": "Location",
    "town": "Town",
}

_LINK_FOLDERS: Dict[str, str] = {
    "continent": "Continents",
    "city": "Cities",
    "region": "Regions",
    "location": "Locations",
    "town": "Towns",
}

# wire key -> attribute name, in export order
_MARKER_FIELDS = (
    ("id", "id"),
    ("name", "name"),
    ("type", "type"),
    ("x", "x"),
    ("y", "y"),
    ("link", "link"),
    ("visible", "visible"),
    ("description", "description"),
    ("quickFacts", "quick_facts"),
)
_OPTIONAL_FIELDS = {"link", "visible", "description", "quick_facts"}


MARKER_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["id", "name", "type", "x", "y"],
    "properties": {
        "id": {"type": ["string", "number"]},
        "name": {"type": "string", "minLength": 1},
        "type": {"enum": list(MARKER_TYPES)},
        "x": {"type": "number", "minimum": 0},
        "y": {"type": "number", "minimum": 0},
        "link": {"type": "string"},
        "visible": {"type": "boolean"},
        "description": {"type": "string"},
        "quickFacts": {
            "type": "object",
            "additionalProperties": {"type": "string"},
        },
    },
}

CURRENT_LOCATION_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["name", "x", "y", "zoom"],
    "properties": {
        "name": {"type": "string"},
        "x": {"type": "number"},
        "y": {"type": "number"},
        "zoom": {"type": "number"},
    },
}

SNAPSHOT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["config", "markers"],
    "properties": {
        "config": {
            "type": "object",
            "required": ["imageWidth", "imageHeight", "currentLocation"],
            "properties": {
                "imageWidth": {"type": "integer", "exclusiveMinimum": 0},
                "imageHeight": {"type": "integer", "exclusiveMinimum": 0},
                "currentLocation": CURRENT_LOCATION_SCHEMA,
            },
        },
        "markers": {"type": "array", "items": MARKER_SCHEMA},
    },
}


def validate_marker_type(marker_type: str) -> str:
    if marker_type not in MARKER_TYPES:
        raise ValueError(f"Unknown marker type: {marker_type}")
    return marker_type


def validate_marker_payload(payload: Mapping[str, Any]) -> None:
    """Raise ``ValueError`` when a wire-keyed marker breaks ``MARKER_SCHEMA``."""

    try:
        jsonschema.validate(dict(payload), MARKER_SCHEMA)
    except ValidationError as err:
        raise ValueError(f"Invalid marker: {err.message}") from err


def generate_link(name: str, marker_type: str) -> str:
    """Return the relative reference page path derived from name and type."""

    folder = _LINK_FOLDERS[validate_marker_type(marker_type)]
    prefix = MARKER_TYPE_LABELS[marker_type]
    encoded = name.replace(" ", "+")
    return f"{folder}/{prefix}+-+{encoded}"


@dataclass(frozen=True)
class Marker:
    id: str
    name: str
    type: str
    x: int
    y: int
    link: Optional[str] = None
    visible: Optional[bool] = None
    description: Optional[str] = None
    quick_facts: Optional[Dict[str, str]] = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Marker":
        quick_facts = payload.get("quickFacts")
        visible = payload.get("visible")
        return cls(
            id=str(payload["id"]),
            name=str(payload["name"]),
            type=validate_marker_type(str(payload["type"])),
            x=round_half_up(payload["x"]),
            y=round_half_up(payload["y"]),
            link=_optional_str(payload.get("link")),
            visible=None if visible is None else bool(visible),
            description=_optional_str(payload.get("description")),
            quick_facts=(
                {str(k): str(v) for k, v in quick_facts.items()}
                if isinstance(quick_facts, Mapping)
                else None
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        output: Dict[str, Any] = {}
        for wire_key, attr in _MARKER_FIELDS:
            value = getattr(self, attr)
            if attr in _OPTIONAL_FIELDS and value is None:
                continue
            output[wire_key] = dict(value) if attr == "quick_facts" else value
        return output

    def merged(self, updates: Mapping[str, Any]) -> "Marker":
        """Return a copy with wire-keyed ``updates`` applied; ``id`` is kept."""

        payload = self.to_dict()
        payload.update({k: v for k, v in updates.items() if k != "id"})
        validate_marker_payload(payload)
        return Marker.from_dict(payload)

    @property
    def color(self) -> str:
        return MARKER_COLORS[self.type]

    @property
    def resolved_link(self) -> str:
        return self.link or generate_link(self.name, self.type)


def wiki_url(marker: Marker, publish_base_url: str) -> str:
    return publish_base_url + marker.resolved_link


@dataclass(frozen=True)
class CurrentLocation:
    name: str
    x: int
    y: int
    zoom: float

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "CurrentLocation":
        return cls(
            name=str(payload["name"]),
            x=round_half_up(payload["x"]),
            y=round_half_up(payload["y"]),
            zoom=float(payload["zoom"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "x": self.x, "y": self.y, "zoom": self.zoom}


@dataclass(frozen=True)
class MapConfig:
    image_width: int
    image_height: int
    current_location: CurrentLocation
    publish_base_url: str = ""

    @classmethod
    def from_dict(
        cls,
        payload: Mapping[str, Any],
        publish_base_url: str = "",
    ) -> "MapConfig":
        image_width = int(payload["imageWidth"])
        image_height = int(payload["imageHeight"])
        if image_width <= 0 or image_height <= 0:
            raise ValueError("image dimensions must be positive")
        return cls(
            image_width=image_width,
            image_height=image_height,
            current_location=CurrentLocation.from_dict(payload["currentLocation"]),
            publish_base_url=str(payload.get("publishBaseUrl", publish_base_url)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "imageWidth": self.image_width,
            "imageHeight": self.image_height,
            "publishBaseUrl": self.publish_base_url,
            "currentLocation": self.current_location.to_dict(),
        }

    def export_dict(self) -> Dict[str, Any]:
        return {
            "imageWidth": self.image_width,
            "imageHeight": self.image_height,
            "currentLocation": self.current_location.to_dict(),
        }

    def merged(self, updates: Mapping[str, Any]) -> "MapConfig":
        payload = self.to_dict()
        payload.update(updates)
        return MapConfig.from_dict(payload)

    def with_publish_base_url(self, publish_base_url: str) -> "MapConfig":
        return replace(self, publish_base_url=publish_base_url)


@dataclass
class MarkerFilters:
    search: str = ""
    types: Dict[str, bool] = field(
        default_factory=lambda: {name: True for name in MARKER_TYPES}
    )

    def to_dict(self) -> Dict[str, Any]:
        return {"search": self.search, "types": dict(self.types)}


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)
