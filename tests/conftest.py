"""Pytest configuration and fixtures."""

import asyncio
from pathlib import Path
from typing import Callable

import pytest

from arrivals.auth.two_factor import TwoFactorBridge
from arrivals.cache import ResultCache
from arrivals.coordinator import RefreshCoordinator
from arrivals.core.types import Credentials, Guest
from arrivals.retention import RetentionSweeper
from arrivals.storage.json_file import JsonFileSessionStore

SESSION_COOKIE = {
    "name": "_amenitiz_session",
    "value": "abc123",
    "domain": ".amenitiz.io",
    "path": "/",
    "expires": -1,
}

SAMPLE_GUESTS = [
    Guest(name="Alice Martin", room_type="Chambre Marocaine", persons="2", amount_due="120,00 €", dates="12 - 14 juin"),
    Guest(name="Bruno Petit", room_type="Suite Provençale", persons="3", amount_due="0,00 €", dates="12 - 13 juin"),
    Guest(name="Chloé Roux", room_type="Chambre Marocaine", persons="1", amount_due="", dates="12 - 15 juin"),
]


class FakeExtractor:
    """In-memory stand-in for the Playwright extractor"""

    def __init__(
        self,
        *,
        accept_saved_session: bool = False,
        credentials_ok: bool = True,
        challenge: bool = False,
        accepted_code: str = "123456",
        guests: list[Guest] | None = None,
        fetch_error: Exception | None = None,
        open_error: Exception | None = None,
        gate: asyncio.Event | None = None,
    ):
        self.accept_saved_session = accept_saved_session
        self.credentials_ok = credentials_ok
        self.challenge = challenge
        self.accepted_code = accepted_code
        self.guests = list(SAMPLE_GUESTS if guests is None else guests)
        self.fetch_error = fetch_error
        self.open_error = open_error
        self.gate = gate

        self.opened = False
        self.closed = False
        self.logged_in = False
        self.challenge_shown = False
        self.applied_cookies: list[dict] = []
        self.submitted_credentials: list[tuple[str, str]] = []
        self.submitted_codes: list[str] = []
        self.screenshots: list[str] = []

    async def open(self):
        if self.open_error:
            raise self.open_error
        self.opened = True

    async def close(self):
        self.closed = True

    async def goto_login(self):
        pass

    async def reload(self):
        pass

    async def apply_cookies(self, cookies):
        self.applied_cookies = list(cookies)
        if self.accept_saved_session:
            self.logged_in = True

    async def export_cookies(self):
        return [dict(SESSION_COOKIE)]

    async def is_logged_in(self):
        return self.logged_in

    async def submit_credentials(self, email, password):
        self.submitted_credentials.append((email, password))
        if not self.credentials_ok:
            return
        if self.challenge:
            self.challenge_shown = True
        else:
            self.logged_in = True

    async def challenge_detected(self):
        return self.challenge_shown

    async def submit_code(self, code):
        self.submitted_codes.append(code)
        if code == self.accepted_code:
            self.challenge_shown = False
            self.logged_in = True

    async def fetch_records(self):
        if self.gate is not None:
            await self.gate.wait()
        if self.fetch_error:
            raise self.fetch_error
        return list(self.guests)

    async def screenshot(self, name):
        self.screenshots.append(name)


class FakeClock:
    """Manually advanced clock"""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ExtractorFactory:
    """Hands out prepared extractors in order and records them"""

    def __init__(self, *extractors: FakeExtractor):
        self._queue = list(extractors)
        self.created: list[FakeExtractor] = []

    def add(self, extractor: FakeExtractor) -> None:
        self._queue.append(extractor)

    def __call__(self) -> FakeExtractor:
        extractor = self._queue.pop(0) if self._queue else FakeExtractor()
        self.created.append(extractor)
        return extractor


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session_store(tmp_path: Path, clock: FakeClock) -> JsonFileSessionStore:
    return JsonFileSessionStore(tmp_path / "session", clock=clock)


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(email="owner@example.com", password="s3cret")


@pytest.fixture
def make_coordinator(
    tmp_path: Path, clock: FakeClock, session_store, credentials
) -> Callable[..., RefreshCoordinator]:
    """Build a coordinator around fake extractors"""

    def _make(*extractors: FakeExtractor, **overrides) -> RefreshCoordinator:
        factory = overrides.pop("extractor_factory", None) or ExtractorFactory(*extractors)
        kwargs = dict(
            extractor_factory=factory,
            session_store=session_store,
            bridge=TwoFactorBridge(timeout=5),
            cache=ResultCache(default_ttl=600, clock=clock),
            credentials=credentials,
            sweeper=RetentionSweeper([tmp_path / "data"], max_age_days=7),
            interval=600,
            clock=clock,
        )
        kwargs.update(overrides)
        return RefreshCoordinator(**kwargs)

    return _make
