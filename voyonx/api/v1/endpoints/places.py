from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from voyonx.api.deps import get_optional_favorites_store, get_optional_route_store, get_place_service
from voyonx.core.responses import success_response
from voyonx.schemas.place import PlaceDetail, PlaceRead
from voyonx.services.favorites import FavoritesStore
from voyonx.services.geo import clean, starts_with_word
from voyonx.services.places import PlaceService, ride_url
from voyonx.services.route_store import RouteStore

router = APIRouter(prefix="/places", tags=["Places"])


@router.get("")
async def list_places(
    request: Request,
    category: str | None = None,
    q: str | None = Query(default=None, max_length=200),
    service: PlaceService = Depends(get_place_service),
):
    items = await service.list_places()
    if category:
        items = [item for item in items if clean(item.category) == clean(category)]
    query = (q or "").strip().lower()
    if query:
        items = [item for item in items if starts_with_word(item.title or "", query)]
    data = [PlaceRead.model_validate(item) for item in items]
    return success_response(data=data, request=request)


@router.get("/categories")
async def list_categories(request: Request, service: PlaceService = Depends(get_place_service)):
    return success_response(data=await service.categories(), request=request)


@router.get("/{place_id}")
async def get_place(
    place_id: UUID,
    request: Request,
    service: PlaceService = Depends(get_place_service),
    store: RouteStore | None = Depends(get_optional_route_store),
    favorites: FavoritesStore | None = Depends(get_optional_favorites_store),
):
    place = await service.get_place(place_id)
    detail = PlaceDetail(
        **PlaceRead.model_validate(place).model_dump(),
        description=place.description,
        in_route=store is not None and store.is_in_route(place.id),
        is_favorite=favorites is not None and favorites.is_favorite(place.id),
        ride_url=ride_url(place),
    )
    return success_response(data=detail, request=request)
