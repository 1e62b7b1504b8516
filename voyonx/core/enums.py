from enum import Enum


class RouteStatus(str, Enum):
    EMPTY = "empty"
    POPULATING = "populating"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class RouteProfile(str, Enum):
    WALKING = "walking"
    CYCLING = "cycling"
    DRIVING = "driving"


class MarkerColor(str, Enum):
    VISITED = "#22C55E"
    UNVISITED = "#FF5722"
    PLACE = "#FF5722"
    USER = "#2563EB"


class RouteAction(str, Enum):
    START_JOURNEY = "start_journey"
    MARK_NEXT_VISITED = "mark_next_visited"
    STOP = "stop"
    RESET = "reset"
    EXPLORE = "explore"
    CREATE_NEW_ROUTE = "create_new_route"
