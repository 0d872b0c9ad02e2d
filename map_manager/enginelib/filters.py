"""Type, text and zoom filtering of the canonical marker list."""
from __future__ import annotations

import threading
from difflib import SequenceMatcher
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .models import MARKER_TYPES, Marker, MarkerFilters, validate_marker_type

MIN_QUERY_LENGTH = 2
MIN_FRAGMENT_LENGTH = 2
# similarity needed to keep a marker (0 = unrelated, 1 = identical)
MATCH_THRESHOLD = 0.6
DEFAULT_DEBOUNCE_SECONDS = 0.15

DEFAULT_ZOOM = 0.0
MIN_ZOOM_BY_TYPE: Dict[str, Optional[float]] = {
    "continent": None,
    "region": -2.0,
    "city": -1.0,
    "town": 0.5,
    "location": 0.5,
}


def fuzzy_score(query: str, text: str) -> float:
    """Return how well ``query`` matches anywhere inside ``text``.

    Both whole-string similarity and the best window of the query's length
    are considered, so a match is not penalised for where it occurs.
    """

    query = query.lower()
    text = text.lower()
    if len(query) < MIN_FRAGMENT_LENGTH or len(text) < MIN_FRAGMENT_LENGTH:
        return 0.0
    if query in text:
        return 1.0

    matcher = SequenceMatcher(None, query, text, autojunk=False)
    longest = matcher.find_longest_match(0, len(query), 0, len(text))
    if longest.size < MIN_FRAGMENT_LENGTH:
        return 0.0

    best = matcher.ratio()
    width = len(query)
    for start in range(0, max(1, len(text) - width + 1)):
        window = text[start:start + width]
        score = SequenceMatcher(None, query, window, autojunk=False).ratio()
        if score > best:
            best = score
    return best


def search_markers(markers: Sequence[Marker], query: str) -> List[Marker]:
    scored: List[Tuple[float, int, Marker]] = []
    for idx, marker in enumerate(markers):
        score = fuzzy_score(query, marker.name)
        if marker.description:
            score = max(score, fuzzy_score(query, marker.description))
        if score >= MATCH_THRESHOLD:
            scored.append((score, idx, marker))
    scored.sort(key=lambda item: (-item[0], item[1]))
    return [marker for _, _, marker in scored]


def visible_at_zoom(markers: Iterable[Marker], zoom: float) -> List[Marker]:
    """Drop marker types that are too detailed for ``zoom``."""

    visible = []
    for marker in markers:
        threshold = MIN_ZOOM_BY_TYPE.get(marker.type)
        if threshold is None or zoom >= threshold:
            visible.append(marker)
    return visible


class Debouncer:
    """Run ``callback`` once input has been quiet for ``interval`` seconds."""

    def __init__(
        self,
        interval: float,
        callback: Callable[[], None],
        timer_factory=None,
    ):
        self.interval = interval
        self.callback = callback
        self.timer_factory = timer_factory or threading.Timer
        self._timer = None
        self._lock = threading.Lock()

    def trigger(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = self.timer_factory(self.interval, self._fire)
            self._timer.start()

    def cancel(self) -> bool:
        with self._lock:
            pending = self._timer is not None
            if pending:
                self._timer.cancel()
                self._timer = None
            return pending

    def _fire(self) -> None:
        with self._lock:
            self._timer = None
        self.callback()


class FilterPipeline:
    """Hold filter state and derive the visible marker subset."""

    def __init__(
        self,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        timer_factory=None,
    ):
        self.filters = MarkerFilters()
        self._effective_query = ""
        self._listeners: List[Callable[[], None]] = []
        self._debouncer = Debouncer(
            debounce_seconds,
            self._apply_pending_query,
            timer_factory=timer_factory,
        )

    @property
    def effective_query(self) -> str:
        return self._effective_query

    def subscribe(self, listener: Callable[[], None]) -> None:
        self._listeners.append(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()

    # ----------------------- search -----------------------
    def set_search(self, query: str) -> None:
        self.filters.search = query
        self._debouncer.trigger()

    def flush(self) -> None:
        """Apply a pending search immediately."""

        self._debouncer.cancel()
        self._apply_pending_query()

    def cancel(self) -> None:
        self._debouncer.cancel()

    def _apply_pending_query(self) -> None:
        if self.filters.search == self._effective_query:
            return
        self._effective_query = self.filters.search
        self._notify()

    # ----------------------- type visibility -----------------------
    def set_type(self, marker_type: str, enabled: bool) -> None:
        self.filters.types[validate_marker_type(marker_type)] = bool(enabled)
        self._notify()

    def toggle_type(self, marker_type: str) -> None:
        validate_marker_type(marker_type)
        self.set_type(marker_type, not self.filters.types[marker_type])

    def set_all_types(self, enabled: bool) -> None:
        self.filters.types = {name: bool(enabled) for name in MARKER_TYPES}
        self._notify()

    # ----------------------- evaluation -----------------------
    def apply(self, markers: Sequence[Marker]) -> List[Marker]:
        by_type = [marker for marker in markers if self.filters.types.get(marker.type, False)]
        query = self._effective_query.strip()
        if len(query) < MIN_QUERY_LENGTH:
            return by_type
        return search_markers(by_type, query)
