"""Encode and decode the map view into shareable URLs."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qs, urlencode, urlsplit, urlunsplit

from .coordinates import round_half_up

MAX_COORDINATE = 20000
MIN_ZOOM = -5.0
MAX_ZOOM = 5.0


@dataclass(frozen=True)
class ShareParams:
    x: float
    y: float
    zoom: float
    marker: Optional[str] = None


def encode(params: ShareParams, base_url: str) -> str:
    """Return ``base_url`` with its query replaced by the view parameters."""

    query = [
        ("x", str(round_half_up(params.x))),
        ("y", str(round_half_up(params.y))),
        ("z", f"{params.zoom:.1f}"),
    ]
    if params.marker:
        query.append(("marker", params.marker))
    parts = urlsplit(base_url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


def _first(query: dict, key: str) -> Optional[str]:
    values = query.get(key)
    if not values:
        return None
    return values[0]


def _number(raw: Optional[str]) -> Optional[float]:
    if raw is None:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def decode(url: str) -> Optional[ShareParams]:
    """Return the view encoded in ``url`` or ``None`` if absent or invalid."""

    query = parse_qs(urlsplit(url).query)
    x = _number(_first(query, "x"))
    y = _number(_first(query, "y"))
    zoom = _number(_first(query, "z"))
    if x is None or y is None or zoom is None:
        return None
    if not (0 <= x <= MAX_COORDINATE and 0 <= y <= MAX_COORDINATE):
        return None
    if not MIN_ZOOM <= zoom <= MAX_ZOOM:
        return None
    return ShareParams(x=x, y=y, zoom=zoom, marker=_first(query, "marker"))


def location_param(url: str) -> Optional[str]:
    return _first(parse_qs(urlsplit(url).query), "location")
