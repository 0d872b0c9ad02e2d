"""Engine layer modules for the map manager."""

from .coordinates import CoordinateTransform
from .filters import FilterPipeline
from .history import History
from .models import MapConfig, Marker
from .remote_source import RemoteSource
from .repository import MarkerRepository
from .state_store import JsonFileStore, MemoryStore

__all__ = [
    "CoordinateTransform",
    "FilterPipeline",
    "History",
    "JsonFileStore",
    "MapConfig",
    "Marker",
    "MarkerRepository",
    "MemoryStore",
    "RemoteSource",
]
