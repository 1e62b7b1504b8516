from voyonx.models.place import Place
from voyonx.models.route import RouteStop, UserRoute

__all__ = [
    "Place",
    "UserRoute",
    "RouteStop",
]
