from fastapi import APIRouter

from voyonx.api.v1.endpoints import discovery, favorites, places, route

api_router = APIRouter()
api_router.include_router(places.router)
api_router.include_router(route.router)
api_router.include_router(favorites.router)
api_router.include_router(discovery.router)
