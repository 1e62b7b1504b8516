from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol
from uuid import UUID

from voyonx.core.enums import RouteStatus
from voyonx.core.exceptions import NotAuthenticated, RemoteFailure
from voyonx.repositories.route import RouteRecord, StopRecord
from voyonx.services.geo import round_half_up

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class AuthUser:
    id: UUID
    email: str | None = None


class RouteRemote(Protocol):
    async def get_by_user(self, user_id: UUID) -> RouteRecord | None: ...

    async def create(self, user_id: UUID, title: str) -> RouteRecord: ...

    async def list_stops(self, route_id: UUID) -> Sequence[StopRecord]: ...

    async def insert_stop(self, route_id: UUID, place_id: UUID, position: int) -> StopRecord: ...

    async def delete_stop(self, route_id: UUID, place_id: UUID) -> int: ...

    async def update_position(self, stop_id: UUID, position: int) -> None: ...

    async def set_visited(self, stop_id: UUID, visited_at: datetime | None) -> None: ...

    async def delete_all_stops(self, route_id: UUID) -> int: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RouteStore:
    """The signed-in user's route and its ordered stops.

    Mutations go through the remote collaborator and are followed by a reload,
    so the in-memory collection always reflects what the store returned last.
    Failed calls are logged and leave the last-known-good state in place.
    Mutations return True when they were applied, False on a no-op or failure.
    """

    def __init__(
        self,
        remote: RouteRemote,
        user: AuthUser | None,
        *,
        title: str = "My Route",
        single_flight: bool = False,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.remote = remote
        self.user = user
        self.title = title
        self.clock = clock
        self.route: RouteRecord | None = None
        self.stops: list[StopRecord] = []
        self.loading = False
        self._lock = asyncio.Lock() if single_flight else None

    @contextlib.asynccontextmanager
    async def _mutation(self) -> AsyncIterator[None]:
        if self._lock is None:
            yield
            return
        async with self._lock:
            yield

    async def ensure_route(self, user: AuthUser | None = None) -> RouteRecord:
        user = user or self.user
        if user is None:
            raise NotAuthenticated("Route operations require a signed-in user")
        if self.route is not None and self.route.user_id == user.id:
            return self.route

        existing = await self.remote.get_by_user(user.id)
        if existing is not None:
            self.route = existing
            return existing

        try:
            created = await self.remote.create(user.id, self.title)
        except RemoteFailure as exc:
            # A concurrent caller may have won the insert; whatever is stored now is the route.
            logger.warning("Route insert failed, re-reading", extra={"user_id": str(user.id), "error": exc.message})
            existing = await self.remote.get_by_user(user.id)
            if existing is None:
                raise
            created = existing
        self.route = created
        return created

    async def _route_or_none(self) -> RouteRecord | None:
        if self.route is not None:
            return self.route
        try:
            return await self.ensure_route()
        except NotAuthenticated:
            logger.info("Route operation skipped, no user")
        except RemoteFailure as exc:
            logger.error("Route ensure failed", extra={"error": exc.message})
        return None

    async def load_stops(self, route_id: UUID) -> list[StopRecord]:
        try:
            rows = await self.remote.list_stops(route_id)
        except RemoteFailure as exc:
            logger.error("Stops load failed", extra={"route_id": str(route_id), "error": exc.message})
            self.stops = []
            return []
        self.stops = sorted(rows, key=lambda stop: stop.position)
        return list(self.stops)

    async def refresh(self) -> None:
        if self.user is None:
            self.route = None
            self.stops = []
            return
        self.loading = True
        try:
            route = await self._route_or_none()
            if route is not None:
                await self.load_stops(route.id)
        finally:
            self.loading = False

    def _find(self, place_id: UUID) -> StopRecord | None:
        for stop in self.stops:
            if stop.place_id == place_id:
                return stop
        return None

    def is_in_route(self, place_id: UUID) -> bool:
        return self._find(place_id) is not None

    async def add_to_route(self, place_id: UUID) -> bool:
        async with self._mutation():
            route = self.route
            if route is None:
                route = await self._route_or_none()
                if route is None:
                    return False
                # First touch of this route: positions must be computed against stored stops.
                await self.load_stops(route.id)
            if self.is_in_route(place_id):
                return False

            position = max(stop.position for stop in self.stops) + 1 if self.stops else 0
            try:
                await self.remote.insert_stop(route.id, place_id, position)
            except RemoteFailure as exc:
                logger.error("Add stop failed", extra={"place_id": str(place_id), "error": exc.message})
                return False

            await self.load_stops(route.id)
            return True

    async def remove_from_route(self, place_id: UUID) -> bool:
        async with self._mutation():
            route = self.route
            if route is None or not self.is_in_route(place_id):
                return False

            try:
                await self.remote.delete_stop(route.id, place_id)
            except RemoteFailure as exc:
                logger.error("Remove stop failed", extra={"place_id": str(place_id), "error": exc.message})
                return False

            remaining = sorted((stop for stop in self.stops if stop.place_id != place_id), key=lambda stop: stop.position)
            renumbered = True
            for index, stop in enumerate(remaining):
                if stop.position == index:
                    continue
                try:
                    await self.remote.update_position(stop.id, index)
                except RemoteFailure as exc:
                    renumbered = False
                    logger.error(
                        "Stop renumber failed",
                        extra={"stop_id": str(stop.id), "position": index, "error": exc.message},
                    )

            await self.load_stops(route.id)
            return renumbered

    async def move_stop(self, place_id: UUID, direction: int) -> bool:
        if direction not in (-1, 1):
            return False
        async with self._mutation():
            route = self.route
            if route is None:
                return False

            ordered = self.ordered_stops
            index = next((i for i, stop in enumerate(ordered) if stop.place_id == place_id), -1)
            target = index + direction
            if index < 0 or target < 0 or target >= len(ordered):
                return False

            current = ordered[index]
            neighbour = ordered[target]
            try:
                await self.remote.update_position(current.id, neighbour.position)
            except RemoteFailure as exc:
                logger.error("Move stop failed", extra={"place_id": str(place_id), "error": exc.message})
                await self.load_stops(route.id)
                return False

            try:
                await self.remote.update_position(neighbour.id, current.position)
            except RemoteFailure as exc:
                logger.error("Move stop second write failed", extra={"place_id": str(place_id), "error": exc.message})
                await self._revert_position(current)
                await self.load_stops(route.id)
                return False

            await self.load_stops(route.id)
            return True

    async def _revert_position(self, stop: StopRecord) -> None:
        try:
            await self.remote.update_position(stop.id, stop.position)
        except RemoteFailure as exc:
            logger.error(
                "Move stop revert failed, positions may be inconsistent until the next write",
                extra={"stop_id": str(stop.id), "error": exc.message},
            )

    async def toggle_visited(self, place_id: UUID) -> bool:
        async with self._mutation():
            route = self.route
            if route is None:
                return False
            stop = self._find(place_id)
            if stop is None:
                return False

            visited_at = None if stop.visited_at is not None else self.clock()
            try:
                await self.remote.set_visited(stop.id, visited_at)
            except RemoteFailure as exc:
                logger.error("Toggle visited failed", extra={"place_id": str(place_id), "error": exc.message})
                return False

            await self.load_stops(route.id)
            return True

    async def clear_route(self) -> bool:
        async with self._mutation():
            route = self.route
            if route is None:
                return False
            try:
                await self.remote.delete_all_stops(route.id)
            except RemoteFailure as exc:
                logger.error("Clear route failed", extra={"route_id": str(route.id), "error": exc.message})
                return False
            self.stops = []
            return True

    @property
    def ordered_stops(self) -> list[StopRecord]:
        return sorted(self.stops, key=lambda stop: stop.position)

    @property
    def next_unvisited_stop(self) -> StopRecord | None:
        return next((stop for stop in self.ordered_stops if stop.visited_at is None), None)

    @property
    def visited_count(self) -> int:
        return sum(1 for stop in self.stops if stop.visited_at is not None)

    @property
    def total_count(self) -> int:
        return len(self.stops)

    @property
    def journey_finished(self) -> bool:
        return self.total_count > 0 and self.next_unvisited_stop is None

    @property
    def progress_percent(self) -> int:
        if not self.total_count:
            return 0
        return int(round_half_up(self.visited_count / self.total_count * 100))

    @property
    def status(self) -> RouteStatus:
        if not self.stops:
            return RouteStatus.EMPTY
        if self.journey_finished:
            return RouteStatus.COMPLETED
        if self.visited_count:
            return RouteStatus.IN_PROGRESS
        return RouteStatus.POPULATING
