from __future__ import annotations

from typing import AsyncGenerator

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from voyonx.core.config import get_settings
from voyonx.core.exceptions import NotAuthenticated
from voyonx.core.security import decode_token, subject_from_payload
from voyonx.db.session import get_session
from voyonx.integrations.redis import RedisSlot, get_redis
from voyonx.repositories.route import RouteRepository
from voyonx.services.directions import DirectionsResolver
from voyonx.services.favorites import FavoritesStore
from voyonx.services.geo import LatLon
from voyonx.services.map_surface import FoliumMapWidget, MapOptions, MapSurface
from voyonx.services.places import PlaceService
from voyonx.services.route_page import JourneySession, RoutePageController
from voyonx.services.route_store import AuthUser, RouteRemote, RouteStore

bearer_scheme = HTTPBearer(auto_error=False)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    async for session in get_session():
        yield session


async def get_redis_client() -> Redis:
    return await get_redis()


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> AuthUser | None:
    if credentials is None:
        return None
    payload = decode_token(credentials.credentials)
    return AuthUser(id=subject_from_payload(payload), email=payload.get("email"))


async def get_current_user(user: AuthUser | None = Depends(get_optional_user)) -> AuthUser:
    if user is None:
        raise NotAuthenticated("Authorization header missing")
    return user


def get_route_remote(session: AsyncSession = Depends(get_db_session)) -> RouteRemote:
    return RouteRepository(session)


def _route_store(user: AuthUser, remote: RouteRemote) -> RouteStore:
    settings = get_settings()
    return RouteStore(
        remote,
        user,
        title=settings.default_route_title,
        single_flight=settings.route_single_flight,
    )


async def get_route_store(
    current_user: AuthUser = Depends(get_current_user),
    remote: RouteRemote = Depends(get_route_remote),
) -> RouteStore:
    store = _route_store(current_user, remote)
    await store.refresh()
    return store


async def get_optional_route_store(
    user: AuthUser | None = Depends(get_optional_user),
    remote: RouteRemote = Depends(get_route_remote),
) -> RouteStore | None:
    if user is None:
        return None
    store = _route_store(user, remote)
    await store.refresh()
    return store


def get_place_service(session: AsyncSession = Depends(get_db_session)) -> PlaceService:
    return PlaceService(session)


def get_directions_resolver() -> DirectionsResolver:
    return DirectionsResolver()


async def get_optional_favorites_store(
    user: AuthUser | None = Depends(get_optional_user),
    redis: Redis = Depends(get_redis_client),
    device_id: str | None = Header(default=None, alias="X-Device-ID"),
) -> FavoritesStore | None:
    settings = get_settings()
    scope = (device_id or "").strip() or (str(user.id) if user is not None else "")
    if not scope:
        return None
    store = FavoritesStore(RedisSlot(redis, f"{settings.favorites_storage_key}:{scope}"))
    await store.load()
    return store


async def get_favorites_store(
    store: FavoritesStore | None = Depends(get_optional_favorites_store),
) -> FavoritesStore:
    if store is None:
        raise NotAuthenticated("Device id or authorization required")
    return store


async def get_journey_session(
    current_user: AuthUser = Depends(get_current_user),
    redis: Redis = Depends(get_redis_client),
) -> JourneySession:
    settings = get_settings()
    key = f"route:journey:{current_user.id}"
    return JourneySession(RedisSlot(redis, key, ttl_sec=settings.journey_session_ttl_sec))


def _surface(zoom: float) -> MapSurface:
    settings = get_settings()
    options = MapOptions(
        center=LatLon(lat=settings.map_default_lat, lon=settings.map_default_lon),
        zoom=zoom,
        pitch=settings.map_pitch,
        bearing=settings.map_bearing,
    )
    return MapSurface(lambda: FoliumMapWidget(options))


def get_route_surface() -> MapSurface:
    return _surface(get_settings().route_map_zoom)


def get_discovery_surface() -> MapSurface:
    return _surface(get_settings().discovery_map_zoom)


async def get_route_page(
    store: RouteStore = Depends(get_route_store),
    places: PlaceService = Depends(get_place_service),
    surface: MapSurface = Depends(get_route_surface),
    resolver: DirectionsResolver = Depends(get_directions_resolver),
    journey: JourneySession = Depends(get_journey_session),
) -> AsyncGenerator[RoutePageController, None]:
    controller = RoutePageController(
        store,
        places,
        surface,
        resolver,
        fit_padding=get_settings().route_fit_padding,
        journey_on=await journey.load(),
    )
    # The store is already loaded; each handler syncs the screen once after its action.
    surface.init()
    try:
        yield controller
    finally:
        await controller.close()
