from __future__ import annotations

from typing import AsyncGenerator
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse

from voyonx.api.deps import get_discovery_surface, get_optional_favorites_store, get_place_service
from voyonx.core.config import get_settings
from voyonx.core.responses import success_response
from voyonx.schemas.common import LatLonRead
from voyonx.schemas.discovery import DiscoveryResponse, SelectedPlaceRead
from voyonx.schemas.place import PlaceRead
from voyonx.services.discovery import DiscoveryPageController, StaticGeolocation
from voyonx.services.favorites import FavoritesStore
from voyonx.services.map_surface import MapSurface
from voyonx.services.places import PlaceService

router = APIRouter(prefix="/discovery", tags=["Discovery"])


async def get_discovery_page(
    category: str | None = None,
    q: str | None = Query(default=None, max_length=200),
    near: bool = False,
    lat: float | None = Query(default=None, ge=-90, le=90),
    lon: float | None = Query(default=None, ge=-180, le=180),
    selected: UUID | None = None,
    service: PlaceService = Depends(get_place_service),
    surface: MapSurface = Depends(get_discovery_surface),
) -> AsyncGenerator[DiscoveryPageController, None]:
    settings = get_settings()
    controller = DiscoveryPageController(
        service.list_places,
        surface,
        geolocation=StaticGeolocation(lat, lon),
        geolocation_timeout_sec=settings.geolocation_timeout_sec,
        near_radius_km=settings.near_radius_km,
        search_limit=settings.search_results_limit,
        fit_padding=settings.discovery_fit_padding,
        fit_max_zoom=settings.discovery_fit_max_zoom,
    )
    try:
        await controller.open()
        if near:
            await controller.near_me()
        elif q and q.strip():
            controller.set_search(q)
        elif category:
            controller.select_category(category)
        if selected is not None:
            controller.select_place(selected)
        yield controller
    finally:
        await controller.close()


@router.get("")
async def get_discovery(
    request: Request,
    controller: DiscoveryPageController = Depends(get_discovery_page),
    favorites: FavoritesStore | None = Depends(get_optional_favorites_store),
):
    view = controller.view()
    selected = None
    if view.selected_place is not None:
        selected = SelectedPlaceRead(
            **PlaceRead.model_validate(view.selected_place).model_dump(),
            is_favorite=favorites is not None and favorites.is_favorite(view.selected_place.id),
        )
    payload = DiscoveryResponse(
        categories=view.categories,
        active_category=view.active_category,
        near_mode=view.near_mode,
        user_location=LatLonRead.model_validate(view.user_location) if view.user_location else None,
        query=view.query,
        places=[PlaceRead.model_validate(place) for place in view.places],
        search_results=[PlaceRead.model_validate(place) for place in view.search_results],
        selected_place=selected,
        map=controller.surface.snapshot(),
    )
    return success_response(data=payload, request=request)


@router.get("/map", response_class=HTMLResponse)
async def get_discovery_map(controller: DiscoveryPageController = Depends(get_discovery_page)):
    return HTMLResponse(controller.surface.render_html())
