from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel

from voyonx.core.enums import RouteAction
from voyonx.schemas.common import BaseReadModel


class StopAdd(BaseModel):
    place_id: UUID


class StopMove(BaseModel):
    direction: Literal[-1, 1]


class StopRead(BaseReadModel):
    id: UUID
    place_id: UUID
    position: int
    visited_at: datetime | None = None


class StopCardRead(BaseReadModel):
    index: int
    place_id: UUID
    title: str
    address: str | None = None
    visited: bool
    is_next: bool
    highlighted: bool
    anchor: str


class ButtonRead(BaseReadModel):
    action: RouteAction
    enabled: bool


class RouteScreenRead(BaseReadModel):
    title: str
    status: str
    journey_on: bool
    journey_finished: bool
    total_count: int
    visited_count: int
    progress_percent: int
    summary_text: str
    progress_text: str
    next_stop_text: str | None = None
    distance_km: float | None = None
    duration_min: int | None = None
    scroll_target: str | None = None
    stops: list[StopCardRead]
    buttons: list[ButtonRead]


class RouteScreenResponse(BaseModel):
    screen: RouteScreenRead
    stops: list[StopRead]
    map: dict[str, Any]
    changed: bool | None = None
