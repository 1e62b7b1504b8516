from __future__ import annotations

import json
import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class StorageSlot(Protocol):
    async def read(self) -> str | None: ...

    async def write(self, value: str) -> None: ...


class FavoritesStore:
    """Favorite place ids kept in one JSON-encoded storage slot.

    The slot is read once by `load()` and rewritten after every change. Corrupt
    or missing data resets the set to empty. Write failures are logged and the
    in-memory set stays authoritative for the rest of the session.
    """

    def __init__(self, slot: StorageSlot) -> None:
        self.slot = slot
        self._favorites: list[str] = []
        self._loaded = False

    @property
    def favorites(self) -> list[str]:
        return list(self._favorites)

    async def load(self) -> list[str]:
        if self._loaded:
            return self.favorites
        self._loaded = True
        try:
            raw = await self.slot.read()
        except Exception as exc:
            logger.warning("Favorites slot read failed", extra={"error": str(exc)})
            raw = None

        self._favorites = self._decode(raw)
        return self.favorites

    @staticmethod
    def _decode(raw: str | None) -> list[str]:
        if not raw:
            return []
        try:
            parsed = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Favorites slot holds invalid JSON, resetting")
            return []
        if not isinstance(parsed, list):
            return []
        # Keep first occurrence order, drop anything that is not a plain id.
        ids = [str(item) for item in parsed if isinstance(item, (str, int)) and str(item)]
        return list(dict.fromkeys(ids))

    async def save(self) -> None:
        try:
            await self.slot.write(json.dumps(self._favorites))
        except Exception as exc:
            logger.warning("Favorites slot write failed", extra={"error": str(exc)})

    def is_favorite(self, place_id: object) -> bool:
        return str(place_id) in self._favorites

    async def toggle(self, place_id: object) -> bool:
        """Flip membership and persist. Returns the new favorite state."""
        key = str(place_id)
        if key in self._favorites:
            self._favorites = [item for item in self._favorites if item != key]
            now_favorite = False
        else:
            self._favorites = [*self._favorites, key]
            now_favorite = True
        await self.save()
        return now_favorite
