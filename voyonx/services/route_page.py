from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol
from uuid import UUID

from voyonx.core.enums import MarkerColor, RouteAction
from voyonx.repositories.place import PlaceRecord
from voyonx.repositories.route import StopRecord
from voyonx.services.directions import DirectionsResolver, RouteSummary
from voyonx.services.geo import LatLon
from voyonx.services.map_surface import MapSurface, MarkerSpec
from voyonx.services.route_store import RouteStore

logger = logging.getLogger(__name__)


class PlaceLookup(Protocol):
    async def places_by_ids(self, place_ids: Sequence[UUID]) -> list[PlaceRecord]: ...


class JourneyFlag(Protocol):
    async def read(self) -> str | None: ...

    async def write(self, value: str) -> None: ...


@dataclass(slots=True)
class ButtonState:
    action: RouteAction
    enabled: bool = True


@dataclass(slots=True)
class StopCard:
    index: int
    place_id: UUID
    title: str
    address: str | None
    visited: bool
    is_next: bool
    highlighted: bool
    anchor: str


@dataclass(slots=True)
class RouteScreen:
    title: str
    status: str
    journey_on: bool
    journey_finished: bool
    total_count: int
    visited_count: int
    progress_percent: int
    summary_text: str
    progress_text: str
    next_stop_text: str | None
    distance_km: float | None
    duration_min: int | None
    scroll_target: str | None
    stops: list[StopCard] = field(default_factory=list)
    buttons: list[ButtonState] = field(default_factory=list)


def stop_anchor(place_id: UUID) -> str:
    return f"stop-{place_id}"


class RoutePageController:
    """State of the "My Route" screen.

    Journey mode is a session flag; it is forced off whenever every stop has
    been visited. After each change to the stop list the markers, camera and
    route line are rebuilt. `close()` cancels pending work and later results
    are dropped.
    """

    def __init__(
        self,
        store: RouteStore,
        places: PlaceLookup,
        surface: MapSurface,
        resolver: DirectionsResolver,
        *,
        fit_padding: int = 70,
        journey_on: bool = False,
    ) -> None:
        self.store = store
        self.place_lookup = places
        self.surface = surface
        self.resolver = resolver
        self.fit_padding = fit_padding
        self._journey_on = journey_on
        self.places: list[PlaceRecord] = []
        self.summary: RouteSummary | None = None
        self.scroll_target: str | None = None
        self._cancelled = False
        self._route_task: asyncio.Task | None = None

    @property
    def journey_on(self) -> bool:
        return self._journey_on

    def _enforce_finished(self) -> None:
        if self._journey_on and self.store.journey_finished:
            self._journey_on = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    async def open(self) -> None:
        self.surface.init()
        await self.store.refresh()
        await self.sync()

    async def sync(self) -> None:
        """Rebuild everything derived from the current stop list."""
        if self._cancelled:
            return
        ordered = self.store.ordered_stops
        self._enforce_finished()

        if not ordered:
            self.places = []
            self.summary = None
            self.scroll_target = None
            self.surface.set_markers([])
            self.surface.set_route_line(None)
            return

        places = await self.place_lookup.places_by_ids([stop.place_id for stop in ordered])
        if self._cancelled:
            return
        self.places = places

        self.surface.set_markers(self._markers(ordered, places))
        points = [LatLon(lat=place.latitude, lon=place.longitude) for place in places]
        self.surface.fit_to_bounds(points, padding=self.fit_padding)

        next_stop = self.store.next_unvisited_stop
        self.scroll_target = stop_anchor(next_stop.place_id) if next_stop is not None else None

        await self._draw_route(points)

    def _markers(self, ordered: Sequence[StopRecord], places: Sequence[PlaceRecord]) -> list[MarkerSpec]:
        places_by_id = {place.id: place for place in places}
        markers: list[MarkerSpec] = []
        # Labels follow the stop ordinal even when a place is missing from the catalog.
        for index, stop in enumerate(ordered):
            place = places_by_id.get(stop.place_id)
            if place is None:
                continue
            visited = stop.visited_at is not None
            markers.append(
                MarkerSpec(
                    key=str(place.id),
                    lat=place.latitude,
                    lon=place.longitude,
                    color=MarkerColor.VISITED.value if visited else MarkerColor.UNVISITED.value,
                    label=str(index + 1),
                    title=place.title,
                    kind="stop",
                )
            )
        return markers

    async def _draw_route(self, points: Sequence[LatLon]) -> None:
        # A newer stop list supersedes a directions request still in flight.
        if self._route_task is not None and not self._route_task.done():
            self._route_task.cancel()
        task = asyncio.create_task(self.resolver.render(self.surface, points))
        self._route_task = task
        try:
            summary = await task
        except asyncio.CancelledError:
            if self._cancelled or task is not self._route_task:
                return
            raise
        if self._cancelled or task is not self._route_task:
            return
        self.summary = summary

    async def start_journey(self) -> bool:
        started = self.store.total_count > 0 and not self.store.journey_finished
        if started:
            self._journey_on = True
        await self.sync()
        return started

    async def stop_journey(self) -> None:
        self._journey_on = False
        await self.sync()

    async def mark_next_visited(self) -> bool:
        next_stop = self.store.next_unvisited_stop
        changed = False
        if next_stop is not None:
            changed = await self.store.toggle_visited(next_stop.place_id)
        await self.sync()
        return changed

    async def reset_route(self, confirmed: bool) -> bool:
        cleared = False
        if self.store.total_count and confirmed:
            self._journey_on = False
            cleared = await self.store.clear_route()
        await self.sync()
        return cleared

    async def add_stop(self, place_id: UUID) -> bool:
        changed = await self.store.add_to_route(place_id)
        await self.sync()
        return changed

    async def remove_stop(self, place_id: UUID) -> bool:
        changed = await self.store.remove_from_route(place_id)
        await self.sync()
        return changed

    async def move_stop(self, place_id: UUID, direction: int) -> bool:
        changed = await self.store.move_stop(place_id, direction)
        await self.sync()
        return changed

    async def toggle_visited(self, place_id: UUID) -> bool:
        changed = await self.store.toggle_visited(place_id)
        await self.sync()
        return changed

    def buttons(self) -> list[ButtonState]:
        has_stops = self.store.total_count > 0
        if self.store.journey_finished:
            return [ButtonState(RouteAction.CREATE_NEW_ROUTE)]
        if self.journey_on:
            return [
                ButtonState(RouteAction.MARK_NEXT_VISITED, enabled=self.store.next_unvisited_stop is not None),
                ButtonState(RouteAction.STOP),
                ButtonState(RouteAction.RESET, enabled=has_stops),
                ButtonState(RouteAction.EXPLORE),
            ]
        return [
            ButtonState(RouteAction.START_JOURNEY, enabled=has_stops),
            ButtonState(RouteAction.RESET, enabled=has_stops),
            ButtonState(RouteAction.EXPLORE),
        ]

    def view(self) -> RouteScreen:
        store = self.store
        journey_on = self.journey_on
        next_stop = store.next_unvisited_stop
        places_by_id = {place.id: place for place in self.places}

        cards: list[StopCard] = []
        for index, stop in enumerate(store.ordered_stops):
            place = places_by_id.get(stop.place_id)
            if place is None:
                continue
            is_next = next_stop is not None and next_stop.place_id == place.id
            cards.append(
                StopCard(
                    index=index + 1,
                    place_id=place.id,
                    title=place.title,
                    address=place.address,
                    visited=stop.visited_at is not None,
                    is_next=is_next,
                    highlighted=journey_on and is_next,
                    anchor=stop_anchor(place.id),
                )
            )

        summary_text = f"{store.total_count} stops"
        if self.summary is not None:
            summary_text += f" · {self.summary.distance_km:g} km · ~{self.summary.duration_min} min"

        if store.journey_finished:
            next_stop_text = "All stops visited. Nice!"
        elif next_stop is not None:
            next_place = places_by_id.get(next_stop.place_id)
            title = next_place.title if next_place is not None else "place unavailable"
            next_stop_text = f"Next stop: {title}"
        else:
            next_stop_text = None

        return RouteScreen(
            title=store.route.title if store.route is not None else store.title,
            status=store.status.value,
            journey_on=journey_on,
            journey_finished=store.journey_finished,
            total_count=store.total_count,
            visited_count=store.visited_count,
            progress_percent=store.progress_percent,
            summary_text=summary_text,
            progress_text=f"Progress: {store.visited_count}/{store.total_count} ({store.progress_percent}%)",
            next_stop_text=next_stop_text,
            distance_km=self.summary.distance_km if self.summary else None,
            duration_min=self.summary.duration_min if self.summary else None,
            scroll_target=self.scroll_target,
            stops=cards,
            buttons=self.buttons(),
        )

    async def close(self) -> None:
        self._cancelled = True
        task = self._route_task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._route_task = None
        self.surface.teardown()


class JourneySession:
    """Journey mode flag for one user, kept outside the database."""

    def __init__(self, slot: JourneyFlag) -> None:
        self.slot = slot

    async def load(self) -> bool:
        try:
            return (await self.slot.read()) == "1"
        except Exception as exc:
            logger.warning("Journey flag read failed", extra={"error": str(exc)})
            return False

    async def save(self, journey_on: bool) -> None:
        try:
            await self.slot.write("1" if journey_on else "0")
        except Exception as exc:
            logger.warning("Journey flag write failed", extra={"error": str(exc)})
