from __future__ import annotations

import logging
from collections.abc import Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from voyonx.core.exceptions import NotFoundError, RemoteFailure
from voyonx.repositories.place import PlaceRecord, PlaceRepository
from voyonx.services.geo import unique_categories

logger = logging.getLogger(__name__)


def ride_url(place: PlaceRecord) -> str:
    return f"https://bolt.eu/ride/?lat={place.latitude}&lng={place.longitude}"


class PlaceService:
    def __init__(self, session: AsyncSession, repository: PlaceRepository | None = None) -> None:
        self.session = session
        self.places = repository or PlaceRepository(session)

    async def list_places(self) -> list[PlaceRecord]:
        return list(await self.places.list_all())

    async def get_place(self, place_id: UUID) -> PlaceRecord:
        place = await self.places.get(place_id)
        if place is None:
            raise NotFoundError("Place not found")
        return place

    async def places_by_ids(self, place_ids: Sequence[UUID]) -> list[PlaceRecord]:
        """Places for `place_ids` in that order; ids missing from the catalog are dropped."""
        if not place_ids:
            return []
        try:
            rows = await self.places.list_by_ids(place_ids)
        except RemoteFailure as exc:
            logger.error("Places lookup failed", extra={"count": len(place_ids), "error": exc.message})
            return []
        by_id = {row.id: row for row in rows}
        return [by_id[place_id] for place_id in place_ids if place_id in by_id]

    async def categories(self) -> list[str]:
        try:
            values = await self.places.list_categories()
        except RemoteFailure as exc:
            logger.error("Categories lookup failed", extra={"error": exc.message})
            return []
        return unique_categories(values)
