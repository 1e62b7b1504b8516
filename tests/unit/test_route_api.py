from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt

from tests.fakes import FakeRouteRepository, make_place
from voyonx.api import deps
from voyonx.core.config import get_settings
from voyonx.core.enums import RouteProfile
from voyonx.core.exceptions import NotFoundError
from voyonx.main import app
from voyonx.services.directions import DirectionsResolver, StraightLineDirectionsProvider
from voyonx.services.geo import unique_categories

PLACES = [
    make_place("Maiden Tower", 40.3661, 49.8372, "Landmarks"),
    make_place("Flame Towers", 40.3597, 49.8263, "Landmarks"),
    make_place("Carpet Museum", 40.3603, 49.8355, "Museums"),
]


class FakeRedis:
    def __init__(self) -> None:
        self.storage: dict[str, str] = {}

    async def get(self, key: str):
        return self.storage.get(key)

    async def set(self, key: str, value: str) -> None:
        self.storage[key] = value

    async def setex(self, key: str, _ttl: int, value: str) -> None:
        self.storage[key] = value

    async def delete(self, key: str) -> None:
        self.storage.pop(key, None)


class FakePlaceService:
    def __init__(self, places) -> None:
        self.by_id = {place.id: place for place in places}

    async def list_places(self):
        return list(self.by_id.values())

    async def get_place(self, place_id):
        place = self.by_id.get(place_id)
        if place is None:
            raise NotFoundError("Place not found")
        return place

    async def places_by_ids(self, place_ids):
        return [self.by_id[place_id] for place_id in place_ids if place_id in self.by_id]

    async def categories(self):
        return unique_categories(place.category for place in self.by_id.values())


async def _no_sleep(_delay: float) -> None:
    return None


def _auth_headers(user_id: uuid.UUID) -> dict[str, str]:
    settings = get_settings()
    token = jwt.encode(
        {
            "sub": str(user_id),
            "aud": settings.auth_jwt_audience,
            "exp": datetime.now(timezone.utc) + timedelta(minutes=5),
        },
        settings.auth_jwt_secret,
        algorithm=settings.auth_jwt_algorithm,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
async def api():
    repo = FakeRouteRepository()
    redis = FakeRedis()
    places = FakePlaceService(PLACES)

    async def override_redis():
        return redis

    app.dependency_overrides[deps.get_route_remote] = lambda: repo
    app.dependency_overrides[deps.get_place_service] = lambda: places
    app.dependency_overrides[deps.get_redis_client] = override_redis
    app.dependency_overrides[deps.get_directions_resolver] = lambda: DirectionsResolver(
        StraightLineDirectionsProvider(),
        profile=RouteProfile.WALKING,
        retry_delay_sec=0,
        sleep=_no_sleep,
    )

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client, redis

    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_route_requires_authentication(api):
    client, _redis = api

    response = await client.get("/api/v1/route")

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "not_authenticated"


@pytest.mark.asyncio
async def test_build_route_and_walk_it(api):
    client, redis = api
    user_id = uuid.uuid4()
    headers = _auth_headers(user_id)

    for place in PLACES:
        added = await client.post("/api/v1/route/stops", json={"place_id": str(place.id)}, headers=headers)
        assert added.status_code == 201
    body = added.json()["data"]
    assert body["screen"]["total_count"] == 3
    assert [stop["position"] for stop in body["stops"]] == [0, 1, 2]
    assert body["map"]["route_line"] is not None

    started = await client.post("/api/v1/route/journey/start", headers=headers)
    assert started.json()["data"]["screen"]["journey_on"] is True
    assert redis.storage[f"route:journey:{user_id}"] == "1"

    marked = await client.post("/api/v1/route/journey/mark-next", headers=headers)
    screen = marked.json()["data"]["screen"]
    assert screen["visited_count"] == 1
    assert screen["progress_percent"] == 33
    assert screen["journey_on"] is True
    assert screen["next_stop_text"] == "Next stop: Flame Towers"

    moved = await client.post(
        f"/api/v1/route/stops/{PLACES[2].id}/move",
        json={"direction": -1},
        headers=headers,
    )
    titles = [card["title"] for card in moved.json()["data"]["screen"]["stops"]]
    assert titles == ["Maiden Tower", "Carpet Museum", "Flame Towers"]

    not_confirmed = await client.delete("/api/v1/route", headers=headers)
    assert not_confirmed.json()["data"]["changed"] is False

    reset = await client.delete("/api/v1/route", params={"confirm": "true"}, headers=headers)
    data = reset.json()["data"]
    assert data["screen"]["total_count"] == 0
    assert data["screen"]["journey_on"] is False
    assert redis.storage[f"route:journey:{user_id}"] == "0"


@pytest.mark.asyncio
async def test_move_rejects_invalid_direction(api):
    client, _redis = api
    headers = _auth_headers(uuid.uuid4())

    response = await client.post(
        f"/api/v1/route/stops/{PLACES[0].id}/move",
        json={"direction": 2},
        headers=headers,
    )

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "validation_error"


@pytest.mark.asyncio
async def test_place_detail_reports_route_and_favorite_state(api):
    client, _redis = api
    headers = {**_auth_headers(uuid.uuid4()), "X-Device-ID": "device-1"}
    place = PLACES[0]

    await client.post("/api/v1/route/stops", json={"place_id": str(place.id)}, headers=headers)
    toggled = await client.post(f"/api/v1/favorites/{place.id}/toggle", headers=headers)
    assert toggled.json()["data"]["is_favorite"] is True

    detail = await client.get(f"/api/v1/places/{place.id}", headers=headers)
    data = detail.json()["data"]
    assert data["in_route"] is True
    assert data["is_favorite"] is True
    assert data["ride_url"] == f"https://bolt.eu/ride/?lat={place.latitude}&lng={place.longitude}"

    favorites = await client.get("/api/v1/favorites", headers=headers)
    assert [item["title"] for item in favorites.json()["data"]["places"]] == ["Maiden Tower"]


@pytest.mark.asyncio
async def test_unknown_place_is_not_found(api):
    client, _redis = api

    response = await client.get(f"/api/v1/places/{uuid.uuid4()}", headers=_auth_headers(uuid.uuid4()))

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "not_found"


@pytest.mark.asyncio
async def test_discovery_defaults_to_first_category(api):
    client, _redis = api

    response = await client.get("/api/v1/discovery")

    data = response.json()["data"]
    assert data["categories"] == ["Landmarks", "Museums"]
    assert data["active_category"] == "Landmarks"
    assert [place["title"] for place in data["places"]] == ["Maiden Tower", "Flame Towers"]


@pytest.mark.asyncio
async def test_discovery_near_me_without_location_is_rejected(api):
    client, _redis = api

    response = await client.get("/api/v1/discovery", params={"near": "true"})

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "geolocation_error"


@pytest.mark.asyncio
async def test_discovery_search_and_map_html(api):
    client, _redis = api

    response = await client.get("/api/v1/discovery", params={"q": "mus"})
    data = response.json()["data"]
    assert [place["title"] for place in data["search_results"]] == ["Carpet Museum"]

    html = await client.get("/api/v1/discovery/map")
    assert html.status_code == 200
    assert "leaflet" in html.text.lower()


class CountingProvider(StraightLineDirectionsProvider):
    def __init__(self) -> None:
        super().__init__()
        self.calls = 0

    async def fetch(self, points, profile):
        self.calls += 1
        return await super().fetch(points, profile)


@pytest.mark.asyncio
async def test_route_requests_fetch_directions_once(api):
    client, _redis = api
    headers = _auth_headers(uuid.uuid4())
    provider = CountingProvider()
    app.dependency_overrides[deps.get_directions_resolver] = lambda: DirectionsResolver(
        provider,
        profile=RouteProfile.WALKING,
        retry_delay_sec=0,
        sleep=_no_sleep,
    )
    for place in PLACES[:2]:
        await client.post("/api/v1/route/stops", json={"place_id": str(place.id)}, headers=headers)
    provider.calls = 0

    added = await client.post("/api/v1/route/stops", json={"place_id": str(PLACES[2].id)}, headers=headers)
    assert added.status_code == 201
    assert provider.calls == 1

    fetched = await client.get("/api/v1/route", headers=headers)
    assert fetched.json()["data"]["screen"]["total_count"] == 3
    assert provider.calls == 2


@pytest.mark.asyncio
async def test_anonymous_place_detail_is_not_in_route(api):
    client, _redis = api
    place = PLACES[1]

    await client.post(f"/api/v1/favorites/{place.id}/toggle", headers={"X-Device-ID": "d1"})
    response = await client.get(f"/api/v1/places/{place.id}", headers={"X-Device-ID": "d1"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["in_route"] is False
    assert data["is_favorite"] is True
