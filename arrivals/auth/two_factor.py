"""Bridge between a login waiting for a one-time code and the out-of-band reply"""

import asyncio
import logging
import time
from typing import Callable

from ..core.types import TwoFactorChallenge

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5 * 60


class TwoFactorBridge:
    """Single-slot mailbox for a 2FA code, resolved by submit or by deadline.

    The acquisition side awaits ``request_code()``; an unrelated caller (the
    HTTP facade) delivers the code with ``submit_code()``. If nothing arrives
    before the deadline the waiter is resolved with an empty string, which the
    login flow treats as a rejected challenge.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        on_change: Callable[[bool], None] | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.timeout = timeout
        self.on_change = on_change
        self._clock = clock
        self._waiter: asyncio.Future[str] | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._deadline: float | None = None

    @property
    def pending(self) -> bool:
        return self._waiter is not None and not self._waiter.done()

    @property
    def challenge(self) -> TwoFactorChallenge:
        if not self.pending:
            return TwoFactorChallenge()
        return TwoFactorChallenge(pending=True, deadline=self._deadline)

    async def request_code(self, message: str | None = None) -> str:
        """Wait for a submitted code; returns "" on deadline"""
        if self.pending:
            raise RuntimeError("A 2FA challenge is already waiting for a code")

        loop = asyncio.get_running_loop()
        waiter: asyncio.Future[str] = loop.create_future()
        self._waiter = waiter

        # One deadline per challenge; a re-prompt keeps the armed timer
        if self._timer is None:
            self._timer = loop.call_later(self.timeout, self._expire)
            self._deadline = self._clock() + self.timeout

        if message:
            logger.error(message)
        logger.info("2FA required. Use POST /api/2fa to submit the code.")
        self._notify(True)

        try:
            return await waiter
        finally:
            if self._waiter is waiter:
                self._waiter = None
            self._notify(False)

    def submit_code(self, code: str) -> bool:
        """Deliver a code to the waiting login. False if nothing is pending"""
        code = (code or "").strip()
        if not self.pending or not code:
            return False

        self._waiter.set_result(code)
        self._cancel_timer()
        logger.info("2FA code submitted")
        return True

    def reset(self) -> None:
        """Drop any outstanding challenge and its timer (end of a run)"""
        self._cancel_timer()
        if self.pending:
            self._waiter.cancel()
        self._waiter = None

    def _expire(self) -> None:
        self._timer = None
        self._deadline = None
        if self.pending:
            self._waiter.set_result("")
            logger.error(
                "2FA code submission timeout (%d seconds). Please retry with /api/refresh",
                self.timeout,
            )

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._deadline = None

    def _notify(self, pending: bool) -> None:
        if self.on_change is None:
            return
        try:
            self.on_change(pending)
        except Exception as e:
            logger.warning(f"2FA change listener failed: {e}")
