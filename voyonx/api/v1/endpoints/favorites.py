from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Request

from voyonx.api.deps import get_favorites_store, get_place_service
from voyonx.core.responses import success_response
from voyonx.schemas.favorites import FavoritesResponse, FavoriteToggleResponse
from voyonx.schemas.place import PlaceRead
from voyonx.services.favorites import FavoritesStore
from voyonx.services.places import PlaceService

router = APIRouter(prefix="/favorites", tags=["Favorites"])


def _as_uuid(value: str) -> UUID | None:
    try:
        return UUID(value)
    except ValueError:
        return None


@router.get("")
async def list_favorites(
    request: Request,
    favorites: FavoritesStore = Depends(get_favorites_store),
    service: PlaceService = Depends(get_place_service),
):
    ids = [place_id for place_id in map(_as_uuid, favorites.favorites) if place_id is not None]
    places = await service.places_by_ids(ids)
    payload = FavoritesResponse(
        favorites=favorites.favorites,
        places=[PlaceRead.model_validate(place) for place in places],
    )
    return success_response(data=payload, request=request)


@router.post("/{place_id}/toggle")
async def toggle_favorite(
    place_id: UUID,
    request: Request,
    favorites: FavoritesStore = Depends(get_favorites_store),
):
    is_favorite = await favorites.toggle(place_id)
    payload = FavoriteToggleResponse(place_id=place_id, is_favorite=is_favorite, favorites=favorites.favorites)
    return success_response(data=payload, request=request)
