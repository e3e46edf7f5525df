"""JSON file session storage implementation"""

import asyncio
import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Callable

from ..core.exceptions import StorageFailure

logger = logging.getLogger(__name__)

COOKIES_FILENAME = "cookies.json"


def is_expired(cookie: dict, now: float) -> bool:
    """Session cookies (no/zero/negative expires) never expire"""
    expires = cookie.get("expires")
    if expires is None:
        return False
    try:
        expires = float(expires)
    except (TypeError, ValueError):
        return False
    return 0 < expires <= now


class JsonFileSessionStore:
    """Store the login cookie bundle in a JSON file"""

    def __init__(self, session_dir: str | Path, clock: Callable[[], float] = time.time):
        self._path = Path(session_dir) / COOKIES_FILENAME
        self._clock = clock
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read_file(self) -> list[dict] | None:
        """Read cookies from file"""
        if not self._path.exists():
            return None

        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (ValueError, OSError) as e:
            logger.warning(f"Could not read saved session {self._path}: {e}")
            return None

        if not isinstance(data, list):
            logger.warning(f"Ignoring malformed session file {self._path}")
            return None
        return [c for c in data if isinstance(c, dict)]

    def _write_file(self, cookies: list[dict]) -> None:
        """Write cookies to a temp file and swap it in"""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._path.parent, prefix=".cookies-", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(cookies, f, ensure_ascii=False, indent=2)
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except (OSError, TypeError, ValueError) as e:
            raise StorageFailure(str(self._path), str(e)) from e

    def _remove_file(self) -> None:
        try:
            self._path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove saved session {self._path}: {e}")

    async def load(self) -> list[dict] | None:
        """Load cookies; an expired cookie invalidates the whole bundle"""
        async with self._lock:
            cookies = self._read_file()
            if not cookies:
                if self._path.exists():
                    # Unreadable or empty bundle
                    self._remove_file()
                logger.info("No saved session found")
                return None

            now = self._clock()
            expired = [c.get("name", "?") for c in cookies if is_expired(c, now)]
            if expired:
                logger.info(
                    "Saved session expired (%d of %d cookies), discarding",
                    len(expired),
                    len(cookies),
                )
                self._remove_file()
                return None

            logger.info("Saved session loaded (%d cookies)", len(cookies))
            return cookies

    async def save(self, cookies: list[dict]) -> bool:
        """Save cookies, reporting failure instead of raising"""
        async with self._lock:
            try:
                self._write_file(list(cookies))
            except StorageFailure as e:
                logger.error(f"Failed to save session: {e}")
                return False
            logger.info("Session saved (%d cookies)", len(cookies))
            return True

    async def clear(self) -> None:
        async with self._lock:
            if self._path.exists():
                self._remove_file()
                logger.info("Saved session cleared")

    def exists(self) -> bool:
        return self._path.exists()
