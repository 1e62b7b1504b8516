from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from voyonx.schemas.common import LatLonRead
from voyonx.schemas.place import PlaceRead


class SelectedPlaceRead(PlaceRead):
    is_favorite: bool = False


class DiscoveryResponse(BaseModel):
    categories: list[str]
    active_category: str | None = None
    near_mode: bool
    user_location: LatLonRead | None = None
    query: str
    places: list[PlaceRead]
    search_results: list[PlaceRead]
    selected_place: SelectedPlaceRead | None = None
    map: dict[str, Any]
