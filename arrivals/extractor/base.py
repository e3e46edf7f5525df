"""Extractor protocol"""

from typing import Protocol

from ..core.types import Guest


class Extractor(Protocol):
    """Browser-side collaborator: drives the login surface and scrapes arrivals.

    One instance owns one browsing context, from ``open()`` to ``close()``.
    """

    async def open(self) -> None:
        """Start the browser and a fresh browsing context"""
        ...

    async def close(self) -> None:
        """Release the browsing context. Safe to call more than once"""
        ...

    async def goto_login(self) -> None:
        """Navigate to the back-office entry page"""
        ...

    async def reload(self) -> None:
        ...

    async def apply_cookies(self, cookies: list[dict]) -> None:
        ...

    async def export_cookies(self) -> list[dict]:
        ...

    async def is_logged_in(self) -> bool:
        """Whether the current page is the authenticated surface"""
        ...

    async def submit_credentials(self, email: str, password: str) -> None:
        ...

    async def challenge_detected(self) -> bool:
        """Whether the current page asks for a second factor"""
        ...

    async def submit_code(self, code: str) -> None:
        ...

    async def fetch_records(self) -> list[Guest]:
        """Scrape today's arrivals. Raises on failure"""
        ...

    async def screenshot(self, name: str) -> None:
        """Capture the current page if screenshots are enabled"""
        ...
