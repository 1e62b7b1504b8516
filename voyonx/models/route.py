from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from voyonx.db.base import Base
from voyonx.models.mixins import TimestampMixin, UUIDPrimaryKeyMixin


class UserRoute(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "user_routes"

    # Identity comes from the auth provider, so there is no local users table to reference.
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), unique=True, index=True, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="My Route")

    stops = relationship("RouteStop", back_populates="route", cascade="all,delete-orphan")


class RouteStop(Base, UUIDPrimaryKeyMixin):
    __tablename__ = "route_stops"
    __table_args__ = (UniqueConstraint("route_id", "place_id", name="uq_route_stops_route_place"),)

    route_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("user_routes.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    place_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("places.id", ondelete="CASCADE"),
        nullable=False,
    )
    # Not unique at the database level: the position swap writes one row at a time.
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    visited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    route = relationship("UserRoute", back_populates="stops")
