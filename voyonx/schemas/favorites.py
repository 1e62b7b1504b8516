from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel

from voyonx.schemas.place import PlaceRead


class FavoriteToggleResponse(BaseModel):
    place_id: UUID
    is_favorite: bool
    favorites: list[str]


class FavoritesResponse(BaseModel):
    favorites: list[str]
    places: list[PlaceRead]
