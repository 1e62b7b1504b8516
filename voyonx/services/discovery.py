from __future__ import annotations

import abc
import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from uuid import UUID

from voyonx.core.enums import MarkerColor
from voyonx.core.exceptions import GeolocationError, RemoteFailure
from voyonx.repositories.place import PlaceRecord
from voyonx.services.geo import LatLon, category_key, clean, haversine_km, starts_with_word, unique_categories
from voyonx.services.map_surface import MapSurface, MarkerSpec

logger = logging.getLogger(__name__)

NEAR_ME_ZOOM = 14
SELECTED_PLACE_MIN_ZOOM = 13


class GeolocationProvider(abc.ABC):
    @abc.abstractmethod
    async def current_position(self) -> LatLon:
        raise NotImplementedError


class StaticGeolocation(GeolocationProvider):
    """Position reported by the client device along with the request."""

    def __init__(self, lat: float | None, lon: float | None) -> None:
        self.lat = lat
        self.lon = lon

    async def current_position(self) -> LatLon:
        if self.lat is None or self.lon is None:
            raise GeolocationError("Location permission denied or position unavailable")
        return LatLon(lat=self.lat, lon=self.lon)


@dataclass(slots=True)
class DiscoveryView:
    categories: list[str]
    active_category: str | None
    near_mode: bool
    user_location: LatLon | None
    query: str
    places: list[PlaceRecord]
    search_results: list[PlaceRecord]
    selected_place: PlaceRecord | None
    loading: bool


class DiscoveryPageController:
    """Place discovery screen: category filter, word-prefix search and "near me"."""

    def __init__(
        self,
        load_places: Callable[[], Awaitable[Sequence[PlaceRecord]]],
        surface: MapSurface,
        *,
        geolocation: GeolocationProvider | None = None,
        geolocation_timeout_sec: float = 10.0,
        near_radius_km: float = 3.0,
        search_limit: int = 8,
        fit_padding: int = 80,
        fit_max_zoom: int = 14,
    ) -> None:
        self._load_places = load_places
        self.surface = surface
        self.geolocation = geolocation
        self.geolocation_timeout_sec = geolocation_timeout_sec
        self.near_radius_km = near_radius_km
        self.search_limit = search_limit
        self.fit_padding = fit_padding
        self.fit_max_zoom = fit_max_zoom

        self.all_places: list[PlaceRecord] = []
        self.loading = True
        self.category: str | None = None
        self.search = ""
        self.near_mode = False
        self.user_location: LatLon | None = None
        self.selected_place: PlaceRecord | None = None
        self._cancelled = False
        self._pending: set[asyncio.Task] = set()

    async def _track(self, awaitable: Awaitable):
        task = asyncio.ensure_future(awaitable)
        self._pending.add(task)
        try:
            return await task
        finally:
            self._pending.discard(task)

    async def open(self) -> None:
        self.surface.init()
        await self.load()

    async def load(self) -> None:
        self.loading = True
        try:
            places = await self._track(self._load_places())
        except RemoteFailure as exc:
            logger.error("Places load failed", extra={"error": exc.message})
            places = []
        except asyncio.CancelledError:
            if self._cancelled:
                return
            raise
        if self._cancelled:
            return
        self.all_places = list(places)
        self.loading = False
        self._default_category()
        self.refresh_map()

    def _default_category(self) -> None:
        if self.loading or self.near_mode or self.search.strip():
            return
        categories = self.categories
        if not categories:
            return
        active = category_key(self.category)
        if not self.category or not any(category_key(item) == active for item in categories):
            self.category = categories[0]

    @property
    def categories(self) -> list[str]:
        return unique_categories(place.category for place in self.all_places)

    @property
    def query(self) -> str:
        return self.search.strip().lower()

    @property
    def visible_places(self) -> list[PlaceRecord]:
        places = self.all_places
        query = self.query
        if not query:
            if self.category:
                active = clean(self.category)
                places = [place for place in places if clean(place.category) == active]
            if self.near_mode and self.user_location is not None:
                origin = self.user_location
                distances = [
                    (haversine_km(origin, LatLon(lat=place.latitude, lon=place.longitude)), place)
                    for place in places
                ]
                places = [place for dist, place in sorted(distances, key=lambda item: item[0]) if dist <= self.near_radius_km]
        else:
            places = [place for place in places if starts_with_word(place.title or "", query)]
        return places

    @property
    def search_results(self) -> list[PlaceRecord]:
        if not self.query:
            return []
        return self.visible_places[: self.search_limit]

    def select_category(self, category: str | None) -> None:
        self.category = category
        self.near_mode = False
        self.user_location = None
        self.surface.set_user_marker(None)
        self.search = ""
        self.selected_place = None
        self.refresh_map()

    def set_search(self, text: str) -> None:
        self.search = text
        self.selected_place = None
        if text.strip():
            self.near_mode = False
            self.user_location = None
            self.surface.set_user_marker(None)
        self.refresh_map()

    def select_place(self, place_id: UUID) -> PlaceRecord | None:
        place = next((item for item in self.all_places if item.id == place_id), None)
        self.selected_place = place
        if place is not None:
            camera = self.surface.widget.camera() if self.surface.widget is not None else None
            zoom = max(camera.zoom if camera is not None else SELECTED_PLACE_MIN_ZOOM, SELECTED_PLACE_MIN_ZOOM)
            self.surface.fly_to(LatLon(lat=place.latitude, lon=place.longitude), zoom)
        return place

    def clear_selection(self) -> None:
        self.selected_place = None

    async def near_me(self) -> LatLon | None:
        """Switch to places around the device position; raises GeolocationError with a user-facing message."""
        if self.geolocation is None:
            raise GeolocationError("Geolocation is not supported on this device")
        try:
            position = await self._track(
                asyncio.wait_for(self.geolocation.current_position(), timeout=self.geolocation_timeout_sec)
            )
        except asyncio.TimeoutError as exc:
            logger.warning("Geolocation timed out", extra={"timeout_sec": self.geolocation_timeout_sec})
            raise GeolocationError(
                "Could not get your location in time. Check location permission and that the site is served over HTTPS.",
                details={"reason": "timeout"},
            ) from exc
        except GeolocationError:
            logger.info("Geolocation unavailable")
            raise
        except asyncio.CancelledError:
            if self._cancelled:
                return None
            raise
        if self._cancelled:
            return None

        self.user_location = position
        self.near_mode = True
        self.category = None
        self.search = ""
        self.selected_place = None
        self.surface.set_user_marker(position)
        self.surface.fly_to(position, NEAR_ME_ZOOM)
        self.refresh_map()
        return position

    def refresh_map(self) -> None:
        if self._cancelled or self.surface.widget is None:
            return
        places = self.visible_places
        self.surface.set_markers(
            [
                MarkerSpec(
                    key=str(place.id),
                    lat=place.latitude,
                    lon=place.longitude,
                    color=MarkerColor.PLACE.value,
                    title=place.title,
                    kind="place",
                )
                for place in places
            ]
        )
        # Camera follows the list only in plain category mode.
        if self.near_mode or self.query or not places:
            return
        self.surface.fit_to_bounds(
            [LatLon(lat=place.latitude, lon=place.longitude) for place in places],
            padding=self.fit_padding,
            max_zoom=self.fit_max_zoom,
        )

    def view(self) -> DiscoveryView:
        return DiscoveryView(
            categories=self.categories,
            active_category=self.category,
            near_mode=self.near_mode,
            user_location=self.user_location,
            query=self.search,
            places=self.visible_places,
            search_results=self.search_results,
            selected_place=self.selected_place,
            loading=self.loading,
        )

    async def close(self) -> None:
        self._cancelled = True
        for task in list(self._pending):
            task.cancel()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        self._pending.clear()
        self.surface.teardown()
