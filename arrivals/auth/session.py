"""Login state machine: session reuse, credential login, second factor"""

import logging

from ..core.exceptions import (
    AuthenticationFailed,
    ConfigurationError,
    TwoFactorRejected,
    TwoFactorUnavailable,
)
from ..core.types import AuthState, Credentials
from ..extractor.base import Extractor
from ..storage.base import SessionStore
from .base import CodeProvider

logger = logging.getLogger(__name__)


class AuthSession:
    """Drives one login to AUTHENTICATED or FAILED.

    START -> SESSION_PROBE -> AUTHENTICATED
                           -> CREDENTIAL_LOGIN -> AUTHENTICATED
                                               -> TWO_FACTOR_CHALLENGE -> AUTHENTICATED
    Any error moves to FAILED and propagates; the caller owns the browser.
    """

    def __init__(
        self,
        extractor: Extractor,
        session_store: SessionStore,
        credentials: Credentials,
        code_provider: CodeProvider | None = None,
    ):
        self._extractor = extractor
        self._store = session_store
        self._credentials = credentials
        self._code_provider = code_provider
        self.state = AuthState.START
        self.history: list[AuthState] = [AuthState.START]

    def _enter(self, state: AuthState) -> None:
        logger.debug("Auth state %s -> %s", self.state.name, state.name)
        self.state = state
        self.history.append(state)

    async def login(self) -> None:
        if self.state is not AuthState.START:
            raise RuntimeError(f"AuthSession already used (state={self.state.name})")

        try:
            if await self._probe_session():
                await self._authenticated()
                return

            challenged = await self._credential_login()
            if challenged:
                await self._two_factor_challenge()
            await self._authenticated()
        except BaseException:
            self._enter(AuthState.FAILED)
            raise

    async def _probe_session(self) -> bool:
        self._enter(AuthState.SESSION_PROBE)
        await self._extractor.goto_login()

        cookies = await self._store.load()
        if not cookies:
            return False

        logger.info("Attempting login with saved session...")
        await self._extractor.apply_cookies(cookies)
        await self._extractor.reload()
        if await self._extractor.is_logged_in():
            logger.info("Session restored successfully")
            return True

        logger.info("Saved session rejected, credential login required")
        await self._store.clear()
        return False

    async def _credential_login(self) -> bool:
        """Submit credentials. Returns True if a second factor is requested"""
        self._enter(AuthState.CREDENTIAL_LOGIN)
        missing = self._credentials.missing()
        if missing:
            raise ConfigurationError(missing)

        await self._extractor.submit_credentials(
            self._credentials.email, self._credentials.password
        )

        if await self._extractor.challenge_detected():
            logger.info("Two-factor authentication required")
            return True

        if not await self._extractor.is_logged_in():
            raise AuthenticationFailed()
        return False

    async def _two_factor_challenge(self) -> None:
        # Single attempt: a wrong code fails the run, no re-prompt
        self._enter(AuthState.TWO_FACTOR_CHALLENGE)
        if self._code_provider is None:
            raise TwoFactorUnavailable()

        code = (await self._code_provider(None) or "").strip()
        if not code:
            raise TwoFactorRejected("No 2FA code received before the deadline")

        await self._extractor.submit_code(code)
        if not await self._extractor.is_logged_in():
            raise TwoFactorRejected("2FA verification failed")
        logger.info("2FA code accepted")

    async def _authenticated(self) -> None:
        self._enter(AuthState.AUTHENTICATED)
        try:
            cookies = await self._extractor.export_cookies()
        except Exception as e:
            logger.warning(f"Could not read session cookies: {e}")
            return
        await self._store.save(cookies)
