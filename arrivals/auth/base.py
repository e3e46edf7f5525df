"""Authentication protocols"""

from typing import Protocol


class CodeProvider(Protocol):
    """Supplies a one-time code when the login flow hits a second factor"""

    async def __call__(self, message: str | None = None) -> str:
        """
        Return the code, or an empty string if none could be obtained
        (timeout, user gave up). Never raises for a missing code.
        """
        ...
