"""Built-in map data used when neither the cache nor the remote source can help."""
from __future__ import annotations

from typing import List

from .models import CurrentLocation, MapConfig, Marker

DEFAULT_PUBLISH_BASE_URL = "https://publish.obsidian.md/elvensong/"

DEFAULT_MAP_CONFIG = MapConfig(
    image_width=8192,
    image_height=6144,
    current_location=CurrentLocation(name="Treston", x=4210, y=3380, zoom=0),
    publish_base_url=DEFAULT_PUBLISH_BASE_URL,
)

_DEFAULT_MARKER_ROWS = (
    ("1", "Aerandor", "continent", 3200, 2600),
    ("2", "Velmara", "continent", 6100, 3900),
    ("3", "The Silverreach", "region", 3900, 3100),
    ("4", "Duskmoor", "region", 5600, 4200),
    ("5", "Treston", "city", 4210, 3380),
    ("6", "Highmere", "city", 2750, 2280),
    ("7", "Brackenford", "town", 4480, 3560),
    ("8", "Willowdeep", "town", 3620, 2950),
    ("9", "The Sunken Archive", "location", 4050, 3240),
)


def default_markers() -> List[Marker]:
    return [
        Marker(id=marker_id, name=name, type=marker_type, x=x, y=y)
        for marker_id, name, marker_type, x, y in _DEFAULT_MARKER_ROWS
    ]
