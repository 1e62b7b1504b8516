from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Iterable

EARTH_RADIUS_KM = 6371.0

_WORD_SPLIT = re.compile(r"[\W_]+", flags=re.UNICODE)


@dataclass(slots=True, frozen=True)
class LatLon:
    lat: float
    lon: float


def round_half_up(value: float, digits: int = 0) -> float:
    """Round .5 away from zero for positive values, the way UI percentages are shown."""
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def haversine_km(a: LatLon, b: LatLon) -> float:
    d_lat = math.radians(b.lat - a.lat)
    d_lon = math.radians(b.lon - a.lon)
    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)

    s = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(min(1.0, s)))


def is_valid_lat_lon(lat: float, lon: float) -> bool:
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return False
    return -90 <= lat <= 90 and -180 <= lon <= 180


def prepare_route_points(points: Iterable[LatLon]) -> list[LatLon]:
    """Drop invalid coordinates and collapse consecutive duplicates."""
    prepared: list[LatLon] = []
    for point in points:
        try:
            lat = float(point.lat)
            lon = float(point.lon)
        except (TypeError, ValueError):
            continue
        if not is_valid_lat_lon(lat, lon):
            continue
        if prepared and prepared[-1].lat == lat and prepared[-1].lon == lon:
            continue
        prepared.append(LatLon(lat=lat, lon=lon))
    return prepared


def clean(value: str | None) -> str:
    return (value or "").strip()


def category_key(value: str | None) -> str:
    return clean(value).lower()


def words_of(text: str) -> list[str]:
    return [word for word in _WORD_SPLIT.split(text.lower().strip()) if word]


def starts_with_word(text: str, query: str | None) -> bool:
    """True when any word of `text` starts with `query`; an empty query matches everything."""
    q = (query or "").lower().strip()
    if not q:
        return True
    return any(word.startswith(q) for word in words_of(text))


def unique_categories(values: Iterable[str | None]) -> list[str]:
    # First spelling of a category wins; comparison ignores case and padding.
    seen: dict[str, str] = {}
    for value in values:
        raw = clean(value)
        if not raw:
            continue
        seen.setdefault(category_key(raw), raw)
    return sorted(seen.values(), key=lambda item: item.casefold())
