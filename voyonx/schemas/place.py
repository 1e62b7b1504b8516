from __future__ import annotations

from uuid import UUID

from voyonx.schemas.common import BaseReadModel


class PlaceRead(BaseReadModel):
    id: UUID
    title: str
    address: str | None = None
    latitude: float
    longitude: float
    category: str | None = None
    image_url: str | None = None


class PlaceDetail(PlaceRead):
    description: str | None = None
    in_route: bool = False
    is_favorite: bool = False
    ride_url: str
