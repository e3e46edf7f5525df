"""Session cookie storage protocol"""

from typing import Protocol


class SessionStore(Protocol):
    """Protocol for persisting a reusable login session (cookie bundle)"""

    async def load(self) -> list[dict] | None:
        """Load the persisted bundle. Returns None if absent, expired or unreadable"""
        ...

    async def save(self, cookies: list[dict]) -> bool:
        """Persist the bundle, replacing any previous one. Returns False on failure"""
        ...

    async def clear(self) -> None:
        """Remove the persisted bundle (no-op if none)"""
        ...

    def exists(self) -> bool:
        """Whether a bundle is currently persisted"""
        ...
