from map_manager.enginelib.filters import (
    FilterPipeline,
    fuzzy_score,
    visible_at_zoom,
)
from map_manager.enginelib.models import MARKER_TYPES, Marker


class FakeTimer:
    def __init__(self, interval, callback):
        self.interval = interval
        self.callback = callback
        self.cancelled = False

    def start(self):
        return None

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.callback()


def make_pipeline():
    timers = []

    def timer_factory(interval, callback):
        timer = FakeTimer(interval, callback)
        timers.append(timer)
        return timer

    return FilterPipeline(timer_factory=timer_factory), timers


MARKERS = [
    Marker(id="1", name="Aerandor", type="continent", x=10, y=10),
    Marker(id="2", name="Tresham", type="town", x=20, y=20),
    Marker(id="3", name="Treston", type="city", x=30, y=30),
    Marker(id="4", name="Duskmoor", type="region", x=40, y=40),
    Marker(
        id="5",
        name="The Sunken Archive",
        type="location",
        x=50,
        y=50,
        description="Flooded library beneath the lake",
    ),
    Marker(id="6", name="Highmere", type="city", x=60, y=60),
]


def test_no_search_keeps_type_filtered_order():
    pipeline, _ = make_pipeline()
    assert pipeline.apply(MARKERS) == MARKERS


def test_short_query_returns_type_filtered_set_unchanged():
    pipeline, _ = make_pipeline()
    pipeline.set_type("region", False)
    pipeline.set_search("  T ")
    pipeline.flush()

    result = pipeline.apply(MARKERS)
    assert result == [marker for marker in MARKERS if marker.type != "region"]


def test_disabling_type_removes_only_that_type():
    for query in ("", "tre", "zzzz", "Highmere"):
        for marker_type in MARKER_TYPES:
            pipeline, _ = make_pipeline()
            pipeline.set_search(query)
            pipeline.flush()
            baseline = pipeline.apply(MARKERS)
            pipeline.set_type(marker_type, False)
            result = pipeline.apply(MARKERS)
            assert all(marker.type != marker_type for marker in result)
            assert result == [m for m in baseline if m.type != marker_type]


def test_fuzzy_search_tolerates_typos_and_ranks_by_score():
    pipeline, _ = make_pipeline()
    pipeline.set_search("trest")
    pipeline.flush()

    names = [marker.name for marker in pipeline.apply(MARKERS)]
    assert names[:2] == ["Treston", "Tresham"]
    assert "Aerandor" not in names

    pipeline.set_search("Trestn")
    pipeline.flush()
    names = [marker.name for marker in pipeline.apply(MARKERS)]
    assert names[0] == "Treston"


def test_search_matches_description():
    pipeline, _ = make_pipeline()
    pipeline.set_search("library")
    pipeline.flush()
    assert [marker.id for marker in pipeline.apply(MARKERS)] == ["5"]


def test_unrelated_query_matches_nothing():
    assert fuzzy_score("qx", "Treston") == 0.0
    pipeline, _ = make_pipeline()
    pipeline.set_search("qqqqq")
    pipeline.flush()
    assert pipeline.apply(MARKERS) == []


def test_search_is_debounced():
    pipeline, timers = make_pipeline()
    changes = []
    pipeline.subscribe(lambda: changes.append(pipeline.effective_query))

    pipeline.set_search("Tr")
    pipeline.set_search("Tre")
    pipeline.set_search("Highmere")

    assert pipeline.apply(MARKERS) == MARKERS
    assert len(timers) == 3
    assert timers[0].cancelled and timers[1].cancelled
    assert timers[0].interval == 0.15

    timers[0].fire()
    assert changes == []
    timers[-1].fire()
    assert changes == ["Highmere"]
    assert [marker.name for marker in pipeline.apply(MARKERS)] == ["Highmere"]


def test_toggle_and_set_all_types():
    pipeline, _ = make_pipeline()
    pipeline.toggle_type("city")
    assert pipeline.filters.types["city"] is False
    pipeline.toggle_type("city")
    assert pipeline.filters.types["city"] is True

    pipeline.set_all_types(False)
    assert pipeline.apply(MARKERS) == []
    pipeline.set_all_types(True)
    assert pipeline.apply(MARKERS) == MARKERS


def test_zoom_visibility_thresholds():
    def types_at(zoom):
        return {marker.type for marker in visible_at_zoom(MARKERS, zoom)}

    assert types_at(-4) == {"continent"}
    assert types_at(-2) == {"continent", "region"}
    assert types_at(0) == {"continent", "region", "city"}
    assert types_at(1) == set(MARKER_TYPES)
