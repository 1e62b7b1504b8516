from __future__ import annotations

import abc
import asyncio
import logging
import math
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

import httpx

from voyonx.core.config import get_settings
from voyonx.core.enums import RouteProfile
from voyonx.core.exceptions import DirectionsFailure
from voyonx.services.geo import LatLon, haversine_km, prepare_route_points, round_half_up
from voyonx.services.map_surface import MapSurface

logger = logging.getLogger(__name__)


def _safe_float(value: Any) -> float | None:
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(result):
        return None
    return result


def _geometry_to_latlon(geometry: Any) -> list[LatLon]:
    """GeoJSON LineString ([lon, lat] pairs) to an ordered list of points."""
    raw_coords: Any = None
    if isinstance(geometry, dict):
        if geometry.get("type") == "Feature" and isinstance(geometry.get("geometry"), dict):
            raw_coords = geometry["geometry"].get("coordinates")
        else:
            raw_coords = geometry.get("coordinates")
    elif isinstance(geometry, list):
        raw_coords = geometry

    if not isinstance(raw_coords, list):
        return []

    points: list[LatLon] = []
    for pair in raw_coords:
        if not isinstance(pair, (list, tuple)) or len(pair) < 2:
            continue
        lon = _safe_float(pair[0])
        lat = _safe_float(pair[1])
        if lon is None or lat is None:
            continue
        points.append(LatLon(lat=lat, lon=lon))
    return points


@dataclass(slots=True)
class RouteSummary:
    distance_km: float
    duration_min: int
    geometry: dict[str, Any] | None = None
    path: list[LatLon] = field(default_factory=list)

    @classmethod
    def from_metrics(cls, distance_m: float, duration_sec: float, geometry: dict[str, Any] | None) -> "RouteSummary":
        return cls(
            distance_km=round_half_up(distance_m / 1000, 1),
            duration_min=int(round_half_up(duration_sec / 60)),
            geometry=geometry,
            path=_geometry_to_latlon(geometry),
        )


class DirectionsProvider(abc.ABC):
    @abc.abstractmethod
    async def fetch(self, points: Sequence[LatLon], profile: RouteProfile) -> RouteSummary:
        raise NotImplementedError


class StraightLineDirectionsProvider(DirectionsProvider):
    """Offline provider: joins the stops with straight segments at walking pace."""

    _speed_m_s = {
        RouteProfile.WALKING: 1.3,
        RouteProfile.CYCLING: 4.5,
        RouteProfile.DRIVING: 11.0,
    }

    async def fetch(self, points: Sequence[LatLon], profile: RouteProfile) -> RouteSummary:
        distance_m = sum(haversine_km(a, b) for a, b in zip(points, points[1:])) * 1000
        speed = self._speed_m_s.get(profile, 1.3)
        geometry = {"type": "LineString", "coordinates": [[point.lon, point.lat] for point in points]}
        return RouteSummary.from_metrics(distance_m, distance_m / speed, geometry)


class MapboxDirectionsProvider(DirectionsProvider):
    def __init__(
        self,
        access_token: str,
        *,
        base_url: str = "https://api.mapbox.com",
        timeout_sec: float = 8.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.timeout_sec = timeout_sec
        self.transport = transport

    def build_url(self, points: Sequence[LatLon], profile: RouteProfile) -> str:
        coords = ";".join(f"{point.lon},{point.lat}" for point in points)
        return f"{self.base_url}/directions/v5/mapbox/{profile.value}/{coords}"

    async def fetch(self, points: Sequence[LatLon], profile: RouteProfile) -> RouteSummary:
        params = {
            "geometries": "geojson",
            "overview": "full",
            "access_token": self.access_token,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout_sec, transport=self.transport) as client:
                response = await client.get(self.build_url(points, profile), params=params)
        except httpx.HTTPError as exc:
            raise DirectionsFailure("Directions request failed", details={"error": str(exc)}) from exc

        if not response.is_success:
            raise DirectionsFailure(
                f"Directions HTTP {response.status_code}",
                details={"status": response.status_code, "body": response.text[:180]},
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise DirectionsFailure("Directions response is not JSON") from exc

        routes = payload.get("routes") if isinstance(payload, dict) else None
        route = routes[0] if isinstance(routes, list) and routes and isinstance(routes[0], dict) else {}
        geometry = route.get("geometry")
        if not geometry:
            raise DirectionsFailure("Directions response is missing geometry", details={"body": str(payload)[:220]})

        distance = _safe_float(route.get("distance")) or 0.0
        duration = _safe_float(route.get("duration")) or 0.0
        return RouteSummary.from_metrics(distance, duration, geometry)


def build_directions_provider() -> DirectionsProvider:
    settings = get_settings()
    if not settings.mapbox_access_token:
        logger.info("No directions token configured, using straight-line provider")
        return StraightLineDirectionsProvider()
    return MapboxDirectionsProvider(
        access_token=settings.mapbox_access_token,
        base_url=settings.directions_base_url,
        timeout_sec=settings.directions_timeout_sec,
    )


class DirectionsResolver:
    """Walking directions for an ordered list of stops.

    `resolve` tries once more after a short delay and raises `DirectionsFailure`
    when both attempts fail. `render` is the caller-facing entry point: it waits
    for the map to be ready, draws the line on success and clears the line on
    any failure, never raising.
    """

    def __init__(
        self,
        provider: DirectionsProvider | None = None,
        *,
        profile: RouteProfile | None = None,
        retry_delay_sec: float | None = None,
        max_coordinates: int | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        settings = get_settings()
        self.provider = provider or build_directions_provider()
        self.profile = profile or RouteProfile(settings.directions_profile)
        self.retry_delay_sec = settings.directions_retry_delay_sec if retry_delay_sec is None else retry_delay_sec
        self.max_coordinates = max_coordinates or settings.directions_max_coordinates
        self._sleep = sleep

    def prepare(self, points: Sequence[LatLon]) -> list[LatLon]:
        # The provider rejects requests above its coordinate ceiling.
        return prepare_route_points(points)[: self.max_coordinates]

    async def resolve(self, points: Sequence[LatLon]) -> RouteSummary | None:
        prepared = self.prepare(points)
        if len(prepared) < 2:
            return None

        try:
            return await self.provider.fetch(prepared, self.profile)
        except Exception as exc:
            logger.warning("Directions attempt failed, retrying", extra={"attempt": 1, "error": str(exc)})

        await self._sleep(self.retry_delay_sec)
        try:
            return await self.provider.fetch(prepared, self.profile)
        except Exception as exc:
            logger.warning("Directions attempt failed", extra={"attempt": 2, "error": str(exc)})
            raise DirectionsFailure("Directions unavailable after retry", details={"error": str(exc)}) from exc

    async def render(self, surface: MapSurface, points: Sequence[LatLon]) -> RouteSummary | None:
        if len(self.prepare(points)) < 2:
            surface.set_route_line(None)
            return None

        await surface.when_ready()
        try:
            summary = await self.resolve(points)
        except DirectionsFailure:
            surface.set_route_line(None)
            return None

        if summary is None or not surface.set_route_line(summary.path):
            surface.set_route_line(None)
            return None
        return summary
