from __future__ import annotations

import asyncio
import uuid

import pytest

from tests.fakes import FakePlaceLookup, FakeRouteRepository, FakeSlot, FakeWidget, make_place
from voyonx.core.enums import MarkerColor, RouteAction, RouteProfile
from voyonx.services.directions import DirectionsResolver, RouteSummary
from voyonx.services.map_surface import ROUTE_LAYER_ID, MapSurface
from voyonx.services.route_page import JourneySession, RoutePageController
from voyonx.services.route_store import AuthUser, RouteStore


async def _no_sleep(_delay: float) -> None:
    return None


class StubProvider:
    def __init__(self) -> None:
        self.calls = 0

    async def fetch(self, points, profile) -> RouteSummary:
        self.calls += 1
        geometry = {"type": "LineString", "coordinates": [[point.lon, point.lat] for point in points]}
        return RouteSummary.from_metrics(4200, 3000, geometry)


class BlockingProvider:
    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def fetch(self, points, profile) -> RouteSummary:
        self.started.set()
        await self.release.wait()
        geometry = {"type": "LineString", "coordinates": [[point.lon, point.lat] for point in points]}
        return RouteSummary.from_metrics(1000, 600, geometry)


PLACES = [
    make_place("Maiden Tower", 40.3661, 49.8372),
    make_place("Flame Towers", 40.3597, 49.8263),
    make_place("Fountain Square", 40.3719, 49.8376),
    make_place("Heydar Aliyev Center", 40.3959, 49.8678),
]


async def _controller(count: int = 4, provider=None) -> tuple[RoutePageController, FakeWidget, RouteStore]:
    repo = FakeRouteRepository()
    store = RouteStore(repo, AuthUser(id=uuid.uuid4()))
    await store.refresh()
    for place in PLACES[:count]:
        await store.add_to_route(place.id)

    widget = FakeWidget()
    surface = MapSurface(lambda: widget)
    resolver = DirectionsResolver(
        provider or StubProvider(),
        profile=RouteProfile.WALKING,
        retry_delay_sec=0,
        sleep=_no_sleep,
    )
    controller = RoutePageController(store, FakePlaceLookup(PLACES), surface, resolver)
    await controller.open()
    return controller, widget, store


@pytest.mark.asyncio
async def test_open_draws_markers_line_and_summary():
    controller, widget, _store = await _controller()

    labels = [spec.label for spec in widget.markers.values()]
    assert labels == ["1", "2", "3", "4"]
    assert all(spec.color == MarkerColor.UNVISITED.value for spec in widget.markers.values())
    assert ROUTE_LAYER_ID in widget.lines
    assert widget.fits[-1][2] == 70

    screen = controller.view()
    assert screen.summary_text == "4 stops · 4.2 km · ~50 min"
    assert screen.next_stop_text == "Next stop: Maiden Tower"
    assert screen.scroll_target == f"stop-{PLACES[0].id}"


@pytest.mark.asyncio
async def test_journey_progress_and_buttons():
    controller, widget, _store = await _controller()

    assert [button.action for button in controller.buttons()] == [
        RouteAction.START_JOURNEY,
        RouteAction.RESET,
        RouteAction.EXPLORE,
    ]
    assert await controller.start_journey()
    assert await controller.mark_next_visited()

    screen = controller.view()
    assert screen.progress_percent == 25
    assert screen.progress_text == "Progress: 1/4 (25%)"
    assert screen.stops[1].highlighted
    assert not screen.stops[0].highlighted
    assert [button.action for button in screen.buttons] == [
        RouteAction.MARK_NEXT_VISITED,
        RouteAction.STOP,
        RouteAction.RESET,
        RouteAction.EXPLORE,
    ]
    first_marker = next(spec for spec in widget.markers.values() if spec.key == str(PLACES[0].id))
    assert first_marker.color == MarkerColor.VISITED.value


@pytest.mark.asyncio
async def test_journey_turns_off_when_route_is_finished():
    controller, _widget, store = await _controller(count=2)
    await controller.start_journey()

    await controller.mark_next_visited()
    await controller.mark_next_visited()

    assert store.journey_finished
    assert controller.journey_on is False
    screen = controller.view()
    assert screen.next_stop_text == "All stops visited. Nice!"
    assert [button.action for button in screen.buttons] == [RouteAction.CREATE_NEW_ROUTE]
    assert await controller.start_journey() is False


@pytest.mark.asyncio
async def test_start_journey_requires_stops():
    controller, widget, _store = await _controller(count=0)

    assert await controller.start_journey() is False
    assert controller.buttons()[0].enabled is False
    assert widget.markers == {}
    assert controller.view().next_stop_text is None


@pytest.mark.asyncio
async def test_reset_needs_confirmation():
    controller, widget, store = await _controller()
    await controller.start_journey()

    assert await controller.reset_route(False) is False
    assert store.total_count == 4

    assert await controller.reset_route(True)
    assert store.total_count == 0
    assert controller.journey_on is False
    assert widget.markers == {}
    assert ROUTE_LAYER_ID not in widget.lines


@pytest.mark.asyncio
async def test_single_stop_clears_route_line():
    controller, widget, _store = await _controller(count=2)
    await controller.remove_stop(PLACES[1].id)

    assert ROUTE_LAYER_ID not in widget.lines
    assert controller.view().summary_text == "1 stops"


@pytest.mark.asyncio
async def test_move_stop_relabels_markers():
    controller, widget, _store = await _controller(count=3)

    assert await controller.move_stop(PLACES[2].id, -1)

    keys = [spec.key for spec in widget.markers.values()]
    assert keys == [str(PLACES[0].id), str(PLACES[2].id), str(PLACES[1].id)]


@pytest.mark.asyncio
async def test_close_drops_in_flight_directions():
    repo = FakeRouteRepository()
    store = RouteStore(repo, AuthUser(id=uuid.uuid4()))
    await store.refresh()
    for place in PLACES[:2]:
        await store.add_to_route(place.id)
    provider = BlockingProvider()
    widget = FakeWidget()
    resolver = DirectionsResolver(provider, profile=RouteProfile.WALKING, retry_delay_sec=0, sleep=_no_sleep)
    controller = RoutePageController(store, FakePlaceLookup(PLACES), MapSurface(lambda: widget), resolver)

    opening = asyncio.create_task(controller.open())
    await asyncio.wait_for(provider.started.wait(), timeout=1)
    await controller.close()
    await asyncio.wait_for(opening, timeout=1)

    assert controller.summary is None
    assert widget.removed


@pytest.mark.asyncio
async def test_journey_session_round_trip():
    slot = FakeSlot()
    session = JourneySession(slot)

    assert await session.load() is False
    await session.save(True)
    assert await session.load() is True
    await session.save(False)
    assert slot.value == "0"


@pytest.mark.asyncio
async def test_journey_session_survives_storage_errors():
    session = JourneySession(FakeSlot(fail_read=True, fail_write=True))

    await session.save(True)
    assert await session.load() is False


async def _controller_with_missing_place(missing_first: bool) -> tuple[RoutePageController, FakeWidget, RouteStore]:
    repo = FakeRouteRepository()
    store = RouteStore(repo, AuthUser(id=uuid.uuid4()))
    await store.refresh()
    removed_from_catalog = uuid.uuid4()
    order = [removed_from_catalog, PLACES[0].id] if missing_first else [PLACES[0].id, removed_from_catalog]
    for place_id in order:
        await store.add_to_route(place_id)

    widget = FakeWidget()
    resolver = DirectionsResolver(StubProvider(), profile=RouteProfile.WALKING, retry_delay_sec=0, sleep=_no_sleep)
    controller = RoutePageController(store, FakePlaceLookup(PLACES), MapSurface(lambda: widget), resolver)
    await controller.open()
    return controller, widget, store


@pytest.mark.asyncio
async def test_next_stop_missing_from_catalog_is_not_reported_as_finished():
    controller, _widget, store = await _controller_with_missing_place(missing_first=False)

    await controller.mark_next_visited()

    screen = controller.view()
    assert store.journey_finished is False
    assert screen.next_stop_text == "Next stop: place unavailable"
    assert screen.progress_text == "Progress: 1/2 (50%)"
    assert [button.action for button in screen.buttons][0] == RouteAction.START_JOURNEY


@pytest.mark.asyncio
async def test_stop_ordinals_skip_places_missing_from_catalog():
    controller, widget, _store = await _controller_with_missing_place(missing_first=True)

    screen = controller.view()

    assert [(card.index, card.title) for card in screen.stops] == [(2, "Maiden Tower")]
    assert [spec.label for spec in widget.markers.values()] == ["2"]


@pytest.mark.asyncio
async def test_finished_route_turns_journey_off_on_sync():
    repo = FakeRouteRepository()
    store = RouteStore(repo, AuthUser(id=uuid.uuid4()))
    await store.refresh()
    await store.add_to_route(PLACES[0].id)
    await store.toggle_visited(PLACES[0].id)
    widget = FakeWidget()
    resolver = DirectionsResolver(StubProvider(), profile=RouteProfile.WALKING, retry_delay_sec=0, sleep=_no_sleep)
    controller = RoutePageController(
        store,
        FakePlaceLookup(PLACES),
        MapSurface(lambda: widget),
        resolver,
        journey_on=True,
    )

    assert controller.journey_on is True
    await controller.open()

    assert controller.journey_on is False
    assert controller.view().journey_on is False


@pytest.mark.asyncio
async def test_each_action_fetches_directions_once():
    provider = StubProvider()
    controller, _widget, _store = await _controller(count=2, provider=provider)
    provider.calls = 0

    await controller.add_stop(PLACES[2].id)
    assert provider.calls == 1

    await controller.start_journey()
    assert provider.calls == 2
