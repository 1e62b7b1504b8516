from __future__ import annotations

import abc
import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import asdict, dataclass
from typing import Any

import folium

from voyonx.core.enums import MarkerColor
from voyonx.services.geo import LatLon, prepare_route_points

logger = logging.getLogger(__name__)

ROUTE_LAYER_ID = "route-line-layer"
ROUTE_LINE_COLOR = "#FF5722"
ROUTE_LINE_WEIGHT = 5
ROUTE_LINE_OPACITY = 0.9
USER_MARKER_KEY = "user-location"


@dataclass(slots=True)
class MarkerSpec:
    key: str
    lat: float
    lon: float
    color: str = MarkerColor.PLACE.value
    label: str | None = None
    title: str | None = None
    kind: str = "place"


@dataclass(slots=True)
class CameraState:
    lat: float
    lon: float
    zoom: float
    pitch: float = 0.0
    bearing: float = 0.0
    bounds: list[list[float]] | None = None
    padding: int | None = None
    max_zoom: int | None = None


@dataclass(slots=True)
class MapOptions:
    center: LatLon
    zoom: float
    pitch: float = 0.0
    bearing: float = 0.0
    tiles: str = "CartoDB dark_matter"


class MapWidget(abc.ABC):
    """Seam around the third-party map widget."""

    @abc.abstractmethod
    def add_marker(self, spec: MarkerSpec) -> Any:
        raise NotImplementedError

    @abc.abstractmethod
    def remove_marker(self, handle: Any) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def set_line_layer(self, layer_id: str, path: Sequence[LatLon]) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def remove_line_layer(self, layer_id: str) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def has_line_layer(self, layer_id: str) -> bool:
        raise NotImplementedError

    @abc.abstractmethod
    def fit_bounds(self, south_west: LatLon, north_east: LatLon, padding: int, max_zoom: int | None = None) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def fly_to(self, center: LatLon, zoom: float) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def is_style_loaded(self) -> bool:
        raise NotImplementedError

    @abc.abstractmethod
    async def wait_idle(self) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def remove(self) -> None:
        raise NotImplementedError

    def camera(self) -> CameraState | None:
        return None

    def line_path(self, layer_id: str) -> list[LatLon] | None:
        return None

    def to_html(self) -> str:
        return ""


class FoliumMapWidget(MapWidget):
    """Keeps a scene of markers and lines and renders it as a folium map.

    Folium builds a static document, so the scene is kept here and a fresh
    `folium.Map` is produced on every `build()`.
    """

    def __init__(self, options: MapOptions) -> None:
        self.options = options
        self._markers: dict[int, MarkerSpec] = {}
        self._lines: dict[str, list[LatLon]] = {}
        self._next_handle = 0
        self._camera = CameraState(
            lat=options.center.lat,
            lon=options.center.lon,
            zoom=options.zoom,
            pitch=options.pitch,
            bearing=options.bearing,
        )
        self._idle = asyncio.Event()
        self._idle.set()
        self._removed = False

    def add_marker(self, spec: MarkerSpec) -> int:
        self._next_handle += 1
        self._markers[self._next_handle] = spec
        return self._next_handle

    def remove_marker(self, handle: int) -> None:
        self._markers.pop(handle, None)

    def set_line_layer(self, layer_id: str, path: Sequence[LatLon]) -> None:
        self._lines[layer_id] = list(path)

    def remove_line_layer(self, layer_id: str) -> None:
        self._lines.pop(layer_id, None)

    def has_line_layer(self, layer_id: str) -> bool:
        return layer_id in self._lines

    def line_path(self, layer_id: str) -> list[LatLon] | None:
        path = self._lines.get(layer_id)
        return list(path) if path is not None else None

    def fit_bounds(self, south_west: LatLon, north_east: LatLon, padding: int, max_zoom: int | None = None) -> None:
        self._camera.bounds = [[south_west.lat, south_west.lon], [north_east.lat, north_east.lon]]
        self._camera.padding = padding
        self._camera.max_zoom = max_zoom
        self._camera.lat = (south_west.lat + north_east.lat) / 2
        self._camera.lon = (south_west.lon + north_east.lon) / 2

    def fly_to(self, center: LatLon, zoom: float) -> None:
        self._camera.lat = center.lat
        self._camera.lon = center.lon
        self._camera.zoom = zoom
        self._camera.bounds = None
        self._camera.padding = None
        self._camera.max_zoom = None

    def is_style_loaded(self) -> bool:
        return not self._removed

    async def wait_idle(self) -> None:
        await self._idle.wait()

    def remove(self) -> None:
        self._markers.clear()
        self._lines.clear()
        self._removed = True

    def camera(self) -> CameraState:
        return self._camera

    @property
    def markers(self) -> list[MarkerSpec]:
        return list(self._markers.values())

    @staticmethod
    def _marker_icon(spec: MarkerSpec) -> folium.DivIcon:
        if spec.kind == "user":
            html = (
                f'<div style="width:16px;height:16px;border-radius:999px;background:{spec.color};'
                'border:2px solid white;box-shadow:0 0 0 6px rgba(37,99,235,0.25);"></div>'
            )
            return folium.DivIcon(html=html, icon_size=(16, 16), icon_anchor=(8, 8))
        label = spec.label or ""
        html = (
            f'<div style="width:28px;height:28px;border-radius:999px;display:grid;place-items:center;'
            f'font-weight:800;background:{spec.color};color:white;box-shadow:0 6px 18px rgba(0,0,0,0.35);">'
            f"{label}</div>"
        )
        return folium.DivIcon(html=html, icon_size=(28, 28), icon_anchor=(14, 14))

    def build(self) -> folium.Map:
        camera = self._camera
        fmap = folium.Map(
            location=[camera.lat, camera.lon],
            zoom_start=camera.zoom,
            tiles=self.options.tiles,
            control_scale=True,
        )
        for layer_id, path in self._lines.items():
            folium.PolyLine(
                [[point.lat, point.lon] for point in path],
                color=ROUTE_LINE_COLOR,
                weight=ROUTE_LINE_WEIGHT,
                opacity=ROUTE_LINE_OPACITY,
                tooltip=layer_id,
            ).add_to(fmap)
        for spec in self._markers.values():
            folium.Marker(
                location=[spec.lat, spec.lon],
                icon=self._marker_icon(spec),
                tooltip=spec.title,
            ).add_to(fmap)
        if camera.bounds:
            padding = camera.padding or 0
            fmap.fit_bounds(camera.bounds, padding=(padding, padding), max_zoom=camera.max_zoom)
        return fmap

    def to_html(self) -> str:
        return self.build().get_root().render()


class MapSurface:
    """Owns one map widget together with its markers and the route line layer."""

    def __init__(self, widget_factory: Callable[[], MapWidget]) -> None:
        self._widget_factory = widget_factory
        self.widget: MapWidget | None = None
        self._marker_handles: list[Any] = []
        self._marker_specs: list[MarkerSpec] = []
        self._user_marker: Any | None = None
        self._user_spec: MarkerSpec | None = None

    def init(self) -> MapWidget:
        if self.widget is None:
            self.widget = self._widget_factory()
        return self.widget

    def _require_widget(self) -> MapWidget:
        return self.widget if self.widget is not None else self.init()

    def set_markers(self, points: Sequence[MarkerSpec]) -> None:
        widget = self._require_widget()
        for handle in self._marker_handles:
            widget.remove_marker(handle)
        self._marker_handles = [widget.add_marker(spec) for spec in points]
        self._marker_specs = list(points)

    def set_user_marker(self, point: LatLon | None) -> None:
        widget = self._require_widget()
        if self._user_marker is not None:
            widget.remove_marker(self._user_marker)
            self._user_marker = None
            self._user_spec = None
        if point is None:
            return
        spec = MarkerSpec(
            key=USER_MARKER_KEY,
            lat=point.lat,
            lon=point.lon,
            color=MarkerColor.USER.value,
            kind="user",
        )
        self._user_marker = widget.add_marker(spec)
        self._user_spec = spec

    def set_route_line(self, path: Sequence[LatLon] | None) -> bool:
        """Draw the route line. Returns False ("no route") when fewer than two usable points remain."""
        widget = self._require_widget()
        prepared = prepare_route_points(path or [])
        if len(prepared) < 2:
            if widget.has_line_layer(ROUTE_LAYER_ID):
                widget.remove_line_layer(ROUTE_LAYER_ID)
            return False
        widget.set_line_layer(ROUTE_LAYER_ID, prepared)
        return True

    @property
    def has_route_line(self) -> bool:
        return self.widget is not None and self.widget.has_line_layer(ROUTE_LAYER_ID)

    def fit_to_bounds(self, points: Sequence[LatLon], padding: int, max_zoom: int | None = None) -> None:
        if not points:
            return
        widget = self._require_widget()
        south_west = LatLon(lat=min(p.lat for p in points), lon=min(p.lon for p in points))
        north_east = LatLon(lat=max(p.lat for p in points), lon=max(p.lon for p in points))
        widget.fit_bounds(south_west, north_east, padding, max_zoom)

    def fly_to(self, center: LatLon, zoom: float) -> None:
        self._require_widget().fly_to(center, zoom)

    async def when_ready(self) -> None:
        widget = self._require_widget()
        if widget.is_style_loaded():
            return
        await widget.wait_idle()

    def teardown(self) -> None:
        if self.widget is None:
            return
        widget = self.widget
        for handle in self._marker_handles:
            widget.remove_marker(handle)
        if self._user_marker is not None:
            widget.remove_marker(self._user_marker)
        if widget.has_line_layer(ROUTE_LAYER_ID):
            widget.remove_line_layer(ROUTE_LAYER_ID)
        try:
            widget.remove()
        except Exception as exc:
            logger.warning("Map widget removal failed", extra={"error": str(exc)})
        self._marker_handles = []
        self._marker_specs = []
        self._user_marker = None
        self._user_spec = None
        self.widget = None

    def snapshot(self) -> dict[str, Any]:
        markers = [asdict(spec) for spec in self._marker_specs]
        if self._user_spec is not None:
            markers.append(asdict(self._user_spec))
        line = self.widget.line_path(ROUTE_LAYER_ID) if self.widget is not None else None
        camera = self.widget.camera() if self.widget is not None else None
        return {
            "markers": markers,
            "route_line": [[point.lat, point.lon] for point in line] if line else None,
            "camera": asdict(camera) if camera is not None else None,
        }

    def render_html(self) -> str:
        return self._require_widget().to_html()
