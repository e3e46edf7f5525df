"""In-memory result cache with read-time TTL expiry"""

import time
from typing import Any, Callable, Iterable

from .core.types import CachedResult, Guest

GUESTS_KEY = "guests"
ROOMS_KEY = "rooms"
DEFAULT_TTL_SECONDS = 600


class ResultCache:
    """Latest dataset and derived views, each with its own TTL"""

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, CachedResult] = {}

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        self._entries[key] = CachedResult(
            value=value,
            produced_at=self._clock(),
            ttl=self.default_ttl if ttl is None else ttl,
        )

    def _live(self, key: str) -> CachedResult | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.produced_at >= entry.ttl:
            return None
        return entry

    def get(self, key: str) -> Any | None:
        """Cached value, or None once the TTL has elapsed"""
        entry = self._live(key)
        return entry.value if entry else None

    def produced_at(self, key: str) -> float | None:
        entry = self._live(key)
        return entry.produced_at if entry else None

    def clear(self) -> None:
        self._entries.clear()


def group_by_room(guests: Iterable[Guest]) -> dict[str, list[dict]]:
    """Group guests by room type; guests without one go under ''"""
    rooms: dict[str, list[dict]] = {}
    for guest in guests:
        rooms.setdefault(guest.room_type or "", []).append(
            {
                "name": guest.name,
                "persons": guest.persons,
                "dates": guest.dates,
                "amount_due": guest.amount_due,
            }
        )
    return rooms
