from __future__ import annotations

import asyncio

import pytest

from tests.fakes import FakeWidget
from voyonx.core.enums import MarkerColor
from voyonx.services.geo import LatLon
from voyonx.services.map_surface import (
    ROUTE_LAYER_ID,
    FoliumMapWidget,
    MapOptions,
    MapSurface,
    MarkerSpec,
)


def _surface() -> tuple[MapSurface, FakeWidget]:
    widget = FakeWidget()
    surface = MapSurface(lambda: widget)
    surface.init()
    return surface, widget


def test_init_is_idempotent():
    created = []

    def factory():
        created.append(FakeWidget())
        return created[-1]

    surface = MapSurface(factory)
    first = surface.init()
    second = surface.init()

    assert first is second
    assert len(created) == 1


def test_set_markers_replaces_previous_set():
    surface, widget = _surface()
    surface.set_markers([MarkerSpec(key="a", lat=1, lon=1), MarkerSpec(key="b", lat=2, lon=2)])
    surface.set_markers([MarkerSpec(key="c", lat=3, lon=3)])

    assert [spec.key for spec in widget.markers.values()] == ["c"]


def test_user_marker_is_kept_apart_from_place_markers():
    surface, widget = _surface()
    surface.set_markers([MarkerSpec(key="a", lat=1, lon=1)])
    surface.set_user_marker(LatLon(lat=5, lon=5))
    surface.set_markers([])

    assert [spec.kind for spec in widget.markers.values()] == ["user"]
    assert list(widget.markers.values())[0].color == MarkerColor.USER.value

    surface.set_user_marker(None)
    assert widget.markers == {}


def test_route_line_needs_two_distinct_points():
    surface, widget = _surface()

    assert surface.set_route_line([LatLon(lat=1, lon=1), LatLon(lat=2, lon=2)])
    assert surface.has_route_line

    assert surface.set_route_line([LatLon(lat=1, lon=1), LatLon(lat=1, lon=1)]) is False
    assert ROUTE_LAYER_ID not in widget.lines


def test_fit_to_bounds_uses_extremes_and_skips_empty():
    surface, widget = _surface()
    surface.fit_to_bounds([], padding=70)
    assert widget.fits == []

    surface.fit_to_bounds([LatLon(lat=2, lon=5), LatLon(lat=1, lon=7)], padding=80, max_zoom=14)
    south_west, north_east, padding, max_zoom = widget.fits[0]
    assert south_west == LatLon(lat=1, lon=5)
    assert north_east == LatLon(lat=2, lon=7)
    assert (padding, max_zoom) == (80, 14)


@pytest.mark.asyncio
async def test_when_ready_waits_for_style():
    widget = FakeWidget(style_loaded=False)
    surface = MapSurface(lambda: widget)
    surface.init()

    waiter = asyncio.create_task(surface.when_ready())
    await asyncio.sleep(0)
    assert not waiter.done()

    widget.idle.set()
    await asyncio.wait_for(waiter, timeout=1)


def test_teardown_removes_everything_once():
    surface, widget = _surface()
    surface.set_markers([MarkerSpec(key="a", lat=1, lon=1)])
    surface.set_route_line([LatLon(lat=1, lon=1), LatLon(lat=2, lon=2)])

    surface.teardown()
    surface.teardown()

    assert widget.removed
    assert widget.markers == {}
    assert widget.lines == {}
    assert surface.widget is None


def test_folium_widget_renders_markers_and_line():
    options = MapOptions(center=LatLon(lat=40.4093, lon=49.8671), zoom=11, pitch=60, bearing=-20)
    surface = MapSurface(lambda: FoliumMapWidget(options))
    surface.set_markers([MarkerSpec(key="a", lat=40.41, lon=49.87, color=MarkerColor.UNVISITED.value, label="1")])
    surface.set_route_line([LatLon(lat=40.41, lon=49.87), LatLon(lat=40.42, lon=49.88)])
    surface.fit_to_bounds([LatLon(lat=40.41, lon=49.87), LatLon(lat=40.42, lon=49.88)], padding=70)

    snapshot = surface.snapshot()
    html = surface.render_html()

    assert snapshot["route_line"] == [[40.41, 49.87], [40.42, 49.88]]
    assert snapshot["camera"]["padding"] == 70
    assert snapshot["camera"]["pitch"] == 60
    assert len(snapshot["markers"]) == 1
    assert "#FF5722" in html
