from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from voyonx.core.exceptions import RemoteFailure
from voyonx.models import Place


@dataclass(slots=True, frozen=True)
class PlaceRecord:
    id: UUID
    title: str
    latitude: float
    longitude: float
    address: str | None = None
    category: str | None = None
    image_url: str | None = None
    description: str | None = None


def _place_record(row: Place) -> PlaceRecord:
    return PlaceRecord(
        id=row.id,
        title=row.title,
        latitude=row.latitude,
        longitude=row.longitude,
        address=row.address,
        category=row.category,
        image_url=row.image_url,
        description=row.description,
    )


class PlaceRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_all(self) -> Sequence[PlaceRecord]:
        try:
            result = await self.session.scalars(select(Place).order_by(Place.title.asc()))
            rows = result.all()
        except SQLAlchemyError as exc:
            raise RemoteFailure("places_select failed", details={"error": str(exc)}) from exc
        return [_place_record(row) for row in rows]

    async def get(self, place_id: UUID) -> PlaceRecord | None:
        try:
            row = await self.session.scalar(select(Place).where(Place.id == place_id))
        except SQLAlchemyError as exc:
            raise RemoteFailure("place_select failed", details={"error": str(exc)}) from exc
        return _place_record(row) if row is not None else None

    async def list_by_ids(self, place_ids: Iterable[UUID]) -> Sequence[PlaceRecord]:
        ids = list(place_ids)
        if not ids:
            return []
        try:
            result = await self.session.scalars(select(Place).where(Place.id.in_(ids)))
            rows = result.all()
        except SQLAlchemyError as exc:
            raise RemoteFailure("places_select failed", details={"error": str(exc)}) from exc
        return [_place_record(row) for row in rows]

    async def list_categories(self) -> Sequence[str]:
        stmt = select(Place.category).where(Place.category.is_not(None))
        try:
            result = await self.session.scalars(stmt)
            values = result.all()
        except SQLAlchemyError as exc:
            raise RemoteFailure("categories_select failed", details={"error": str(exc)}) from exc
        return [value for value in values if value]
