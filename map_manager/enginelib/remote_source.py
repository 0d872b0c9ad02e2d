"""Fetch published map data and fall back to built-in defaults."""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import jsonschema
import requests
from jsonschema.exceptions import ValidationError

from .defaults import DEFAULT_MAP_CONFIG, DEFAULT_PUBLISH_BASE_URL, default_markers
from .models import SNAPSHOT_SCHEMA, MapConfig, Marker
from .snapshot_codec import parse_markers

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_URL = (
    "https://publish-01.obsidian.md/access/"
    "889558bf3470938e471de91ad951317b/Map-Data.md"
)

_JSON_BLOCK = re.compile(r"```json\s*([\s\S]*?)\s*```")


class SourceFormatError(ValueError):
    """The fetched document carries no usable data block."""


@dataclass
class RemoteSnapshot:
    markers: List[Marker]
    config: MapConfig
    from_fallback: bool = False
    error: Optional[str] = None


def extract_payload(text: str) -> Dict[str, Any]:
    match = _JSON_BLOCK.search(text)
    if not match or not match.group(1):
        raise SourceFormatError("no ```json block found in document")
    try:
        data = json.loads(match.group(1))
    except ValueError as exc:
        raise SourceFormatError(f"data block is not valid JSON: {exc}") from exc
    try:
        jsonschema.validate(data, SNAPSHOT_SCHEMA)
    except ValidationError as err:
        raise SourceFormatError(f"data block has unexpected shape: {err.message}") from err
    return data


class RemoteSource:
    """Read-only adapter over the published map data document."""

    def __init__(
        self,
        url: str = DEFAULT_SOURCE_URL,
        publish_base_url: str = DEFAULT_PUBLISH_BASE_URL,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ):
        self.url = url
        self.publish_base_url = publish_base_url
        self.session = session or requests.Session()
        self.timeout = timeout

    def fallback(self, reason: str) -> RemoteSnapshot:
        return RemoteSnapshot(
            markers=default_markers(),
            config=DEFAULT_MAP_CONFIG.with_publish_base_url(self.publish_base_url),
            from_fallback=True,
            error=reason,
        )

    def fetch(self) -> RemoteSnapshot:
        try:
            response = self.session.get(self.url, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("Error fetching map data, using static fallback: %s", exc)
            return self.fallback(str(exc))

        if not 200 <= response.status_code < 300:
            logger.warning(
                "Failed to fetch map data (HTTP %s), using static fallback",
                response.status_code,
            )
            return self.fallback(f"HTTP {response.status_code}")

        try:
            data = extract_payload(response.text)
            markers = parse_markers(data["markers"])
            config = MapConfig.from_dict(data["config"], self.publish_base_url)
        except ValueError as exc:
            logger.warning("Could not read map data document, using static fallback: %s", exc)
            return self.fallback(str(exc))

        # the published document never carries the base url; keep ours
        config = config.with_publish_base_url(self.publish_base_url)
        return RemoteSnapshot(markers=markers, config=config)
