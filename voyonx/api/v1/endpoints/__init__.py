from voyonx.api.v1.endpoints import discovery, favorites, places, route

__all__ = [
    "places",
    "route",
    "favorites",
    "discovery",
]
