from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from voyonx.core.exceptions import RemoteFailure
from voyonx.models import RouteStop, UserRoute

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class RouteRecord:
    id: UUID
    user_id: UUID
    title: str


@dataclass(slots=True, frozen=True)
class StopRecord:
    id: UUID
    route_id: UUID
    place_id: UUID
    position: int
    visited_at: datetime | None = None

    @property
    def visited(self) -> bool:
        return self.visited_at is not None


def _route_record(row: UserRoute) -> RouteRecord:
    return RouteRecord(id=row.id, user_id=row.user_id, title=row.title)


def _stop_record(row: RouteStop) -> StopRecord:
    return StopRecord(
        id=row.id,
        route_id=row.route_id,
        place_id=row.place_id,
        position=row.position,
        visited_at=row.visited_at,
    )


class RouteRepository:
    """Row-level access to `user_routes` and `route_stops`.

    Every write commits on its own, so a multi-step operation built on top of
    these calls is not atomic. Database errors are rolled back and re-raised as
    `RemoteFailure`.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _fail(self, operation: str, exc: Exception) -> RemoteFailure:
        await self.session.rollback()
        return RemoteFailure(f"{operation} failed", details={"operation": operation, "error": str(exc)})

    async def get_by_user(self, user_id: UUID) -> RouteRecord | None:
        try:
            row = await self.session.scalar(select(UserRoute).where(UserRoute.user_id == user_id))
        except SQLAlchemyError as exc:
            raise await self._fail("route_select", exc) from exc
        return _route_record(row) if row is not None else None

    async def create(self, user_id: UUID, title: str) -> RouteRecord:
        row = UserRoute(id=uuid.uuid4(), user_id=user_id, title=title)
        self.session.add(row)
        try:
            await self.session.commit()
        except IntegrityError as exc:
            # Another request created the route first; the caller re-reads it.
            raise await self._fail("route_insert_conflict", exc) from exc
        except SQLAlchemyError as exc:
            raise await self._fail("route_insert", exc) from exc
        return _route_record(row)

    async def list_stops(self, route_id: UUID) -> Sequence[StopRecord]:
        stmt = select(RouteStop).where(RouteStop.route_id == route_id).order_by(RouteStop.position.asc())
        try:
            result = await self.session.scalars(stmt)
            rows = result.all()
        except SQLAlchemyError as exc:
            raise await self._fail("stops_select", exc) from exc
        return [_stop_record(row) for row in rows]

    async def insert_stop(self, route_id: UUID, place_id: UUID, position: int) -> StopRecord:
        row = RouteStop(id=uuid.uuid4(), route_id=route_id, place_id=place_id, position=position)
        self.session.add(row)
        try:
            await self.session.commit()
        except SQLAlchemyError as exc:
            raise await self._fail("stop_insert", exc) from exc
        return _stop_record(row)

    async def delete_stop(self, route_id: UUID, place_id: UUID) -> int:
        stmt = delete(RouteStop).where(RouteStop.route_id == route_id, RouteStop.place_id == place_id)
        try:
            result = await self.session.execute(stmt)
            await self.session.commit()
        except SQLAlchemyError as exc:
            raise await self._fail("stop_delete", exc) from exc
        return int(result.rowcount or 0)

    async def update_position(self, stop_id: UUID, position: int) -> None:
        stmt = update(RouteStop).where(RouteStop.id == stop_id).values(position=position)
        try:
            await self.session.execute(stmt)
            await self.session.commit()
        except SQLAlchemyError as exc:
            raise await self._fail("stop_position_update", exc) from exc

    async def set_visited(self, stop_id: UUID, visited_at: datetime | None) -> None:
        stmt = update(RouteStop).where(RouteStop.id == stop_id).values(visited_at=visited_at)
        try:
            await self.session.execute(stmt)
            await self.session.commit()
        except SQLAlchemyError as exc:
            raise await self._fail("stop_visited_update", exc) from exc

    async def delete_all_stops(self, route_id: UUID) -> int:
        stmt = delete(RouteStop).where(RouteStop.route_id == route_id)
        try:
            result = await self.session.execute(stmt)
            await self.session.commit()
        except SQLAlchemyError as exc:
            raise await self._fail("stops_clear", exc) from exc
        logger.info("Route cleared", extra={"route_id": str(route_id), "deleted": result.rowcount})
        return int(result.rowcount or 0)
