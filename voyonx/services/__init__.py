from voyonx.services.directions import DirectionsResolver
from voyonx.services.discovery import DiscoveryPageController
from voyonx.services.favorites import FavoritesStore
from voyonx.services.map_surface import MapSurface
from voyonx.services.places import PlaceService
from voyonx.services.route_page import RoutePageController
from voyonx.services.route_store import RouteStore

__all__ = [
    "DirectionsResolver",
    "DiscoveryPageController",
    "FavoritesStore",
    "MapSurface",
    "PlaceService",
    "RoutePageController",
    "RouteStore",
]
