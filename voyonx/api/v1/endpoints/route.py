from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import HTMLResponse

from voyonx.api.deps import get_journey_session, get_route_page
from voyonx.core.responses import success_response
from voyonx.schemas.route import RouteScreenRead, RouteScreenResponse, StopAdd, StopMove, StopRead
from voyonx.services.route_page import JourneySession, RoutePageController

router = APIRouter(prefix="/route", tags=["Route"])


async def _respond(
    request: Request,
    controller: RoutePageController,
    journey: JourneySession,
    changed: bool | None = None,
):
    # Persist the flag as seen by the view, so a finished route also clears it.
    screen = controller.view()
    await journey.save(screen.journey_on)
    payload = RouteScreenResponse(
        screen=RouteScreenRead.model_validate(screen),
        stops=[StopRead.model_validate(stop) for stop in controller.store.ordered_stops],
        map=controller.surface.snapshot(),
        changed=changed,
    )
    return success_response(data=payload, request=request)


@router.get("")
async def get_route(
    request: Request,
    controller: RoutePageController = Depends(get_route_page),
    journey: JourneySession = Depends(get_journey_session),
):
    await controller.sync()
    return await _respond(request, controller, journey)


@router.get("/map", response_class=HTMLResponse)
async def get_route_map(controller: RoutePageController = Depends(get_route_page)):
    await controller.sync()
    return HTMLResponse(controller.surface.render_html())


@router.post("/stops", status_code=status.HTTP_201_CREATED)
async def add_stop(
    payload: StopAdd,
    request: Request,
    controller: RoutePageController = Depends(get_route_page),
    journey: JourneySession = Depends(get_journey_session),
):
    changed = await controller.add_stop(payload.place_id)
    return await _respond(request, controller, journey, changed)


@router.delete("/stops/{place_id}")
async def remove_stop(
    place_id: UUID,
    request: Request,
    controller: RoutePageController = Depends(get_route_page),
    journey: JourneySession = Depends(get_journey_session),
):
    changed = await controller.remove_stop(place_id)
    return await _respond(request, controller, journey, changed)


@router.post("/stops/{place_id}/move")
async def move_stop(
    place_id: UUID,
    payload: StopMove,
    request: Request,
    controller: RoutePageController = Depends(get_route_page),
    journey: JourneySession = Depends(get_journey_session),
):
    changed = await controller.move_stop(place_id, payload.direction)
    return await _respond(request, controller, journey, changed)


@router.post("/stops/{place_id}/visited")
async def toggle_visited(
    place_id: UUID,
    request: Request,
    controller: RoutePageController = Depends(get_route_page),
    journey: JourneySession = Depends(get_journey_session),
):
    changed = await controller.toggle_visited(place_id)
    return await _respond(request, controller, journey, changed)


@router.post("/journey/start")
async def start_journey(
    request: Request,
    controller: RoutePageController = Depends(get_route_page),
    journey: JourneySession = Depends(get_journey_session),
):
    changed = await controller.start_journey()
    return await _respond(request, controller, journey, changed)


@router.post("/journey/stop")
async def stop_journey(
    request: Request,
    controller: RoutePageController = Depends(get_route_page),
    journey: JourneySession = Depends(get_journey_session),
):
    await controller.stop_journey()
    return await _respond(request, controller, journey, True)


@router.post("/journey/mark-next")
async def mark_next_visited(
    request: Request,
    controller: RoutePageController = Depends(get_route_page),
    journey: JourneySession = Depends(get_journey_session),
):
    changed = await controller.mark_next_visited()
    return await _respond(request, controller, journey, changed)


@router.delete("")
async def reset_route(
    request: Request,
    confirm: bool = Query(default=False),
    controller: RoutePageController = Depends(get_route_page),
    journey: JourneySession = Depends(get_journey_session),
):
    changed = await controller.reset_route(confirm)
    return await _respond(request, controller, journey, changed)
