"""Refresh scheduling and single-flight acquisition state machine"""

import asyncio
import logging
import math
import time
from typing import Callable

from .auth.base import CodeProvider
from .auth.session import AuthSession
from .auth.two_factor import TwoFactorBridge
from .cache import GUESTS_KEY, ROOMS_KEY, ResultCache, group_by_room
from .core.exceptions import ArrivalsError, ExtractionFailure
from .core.types import (
    AcquisitionRun,
    Credentials,
    Guest,
    RunError,
    RunOutcome,
    RunTrigger,
    ServiceStatus,
    TriggerOutcome,
)
from .extractor.base import Extractor
from .retention import RetentionSweeper
from .storage.base import SessionStore

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 10 * 60


class RefreshCoordinator:
    """Owns acquisition runs, the auto-refresh flag and the last error.

    Idle -> Running -> Idle. At most one run exists at a time: admission and
    the running flag are decided synchronously on the event loop, so a second
    trigger arriving while a run is in flight is rejected (BUSY), never queued.
    Any failure disables auto-refresh until a run succeeds again.
    """

    def __init__(
        self,
        extractor_factory: Callable[[], Extractor],
        session_store: SessionStore,
        bridge: TwoFactorBridge,
        cache: ResultCache,
        credentials: Credentials,
        sweeper: RetentionSweeper | None = None,
        exporter: Callable[[list[Guest]], object] | None = None,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
        on_change: Callable[[ServiceStatus], None] | None = None,
        code_provider: CodeProvider | None = None,
    ):
        self._extractor_factory = extractor_factory
        self._session_store = session_store
        self._bridge = bridge
        self._code_provider = code_provider or bridge.request_code
        self._cache = cache
        self._credentials = credentials
        self._sweeper = sweeper
        self._exporter = exporter
        self.interval = interval
        self._clock = clock
        self.on_change = on_change

        self._current_run: AcquisitionRun | None = None
        self._last_run: AcquisitionRun | None = None
        self._last_error: RunError | None = None
        self._last_refresh_at: float | None = None
        self._auto_refresh_enabled = True
        self._task: asyncio.Task | None = None

    # ------------------------------------------------------------------ #
    # State accessors
    # ------------------------------------------------------------------ #
    @property
    def running(self) -> bool:
        return self._current_run is not None

    @property
    def auto_refresh_enabled(self) -> bool:
        return self._auto_refresh_enabled

    @property
    def last_error(self) -> RunError | None:
        return self._last_error

    @property
    def last_refresh_at(self) -> float | None:
        return self._last_refresh_at

    @property
    def current_run(self) -> AcquisitionRun | None:
        return self._current_run

    @property
    def last_run(self) -> AcquisitionRun | None:
        return self._last_run

    @property
    def bridge(self) -> TwoFactorBridge:
        return self._bridge

    @property
    def task(self) -> asyncio.Task | None:
        """Background task of the run started by fire(), if any"""
        return self._task

    def guests(self) -> list[Guest] | None:
        return self._cache.get(GUESTS_KEY)

    def rooms(self) -> dict[str, list[dict]] | None:
        return self._cache.get(ROOMS_KEY)

    def seconds_until_next_refresh(self) -> int | None:
        if not self._auto_refresh_enabled:
            return None
        if self._last_refresh_at is None:
            return math.ceil(self.interval)
        remaining = self.interval - (self._clock() - self._last_refresh_at)
        return max(0, math.ceil(remaining))

    def status(self) -> ServiceStatus:
        guests = self.guests()
        return ServiceStatus(
            running=self.running,
            two_factor_pending=self._bridge.pending,
            auto_refresh_enabled=self._auto_refresh_enabled,
            last_refresh_at=self._last_refresh_at,
            last_error=self._last_error,
            seconds_until_next_refresh=self.seconds_until_next_refresh(),
            cache_ready=guests is not None,
            guest_count=len(guests) if guests else 0,
            current_run=self._current_run,
        )

    # ------------------------------------------------------------------ #
    # Triggers
    # ------------------------------------------------------------------ #
    def _admit(self, trigger: RunTrigger) -> TriggerOutcome | None:
        """Reason to refuse a trigger, or None to run it"""
        if self._current_run is not None:
            logger.info("Refresh already in progress, skipping %s trigger", trigger.value)
            return TriggerOutcome.BUSY
        if trigger is RunTrigger.SCHEDULED and not self._auto_refresh_enabled:
            logger.info(
                "Auto-refresh is disabled. Use POST /api/refresh to trigger a refresh manually."
            )
            return TriggerOutcome.SKIPPED
        return None

    def _begin(self, trigger: RunTrigger) -> AcquisitionRun:
        run = AcquisitionRun(trigger=trigger, started_at=self._clock())
        self._current_run = run
        logger.info("Starting data refresh (%s)...", trigger.value)
        self._notify()
        return run

    async def trigger(self, trigger: RunTrigger) -> TriggerOutcome:
        """Run an acquisition to completion, unless refused"""
        refused = self._admit(trigger)
        if refused is not None:
            return refused
        run = self._begin(trigger)
        await self._execute(run)
        if run.outcome is RunOutcome.SUCCESS:
            return TriggerOutcome.SUCCEEDED
        return TriggerOutcome.FAILED

    def fire(self, trigger: RunTrigger) -> TriggerOutcome:
        """Start an acquisition in the background; must be called on the loop"""
        refused = self._admit(trigger)
        if refused is not None:
            return refused
        run = self._begin(trigger)
        self._task = asyncio.get_running_loop().create_task(self._execute(run))
        return TriggerOutcome.STARTED

    async def run_schedule(self) -> None:
        """Initial refresh, then one scheduled trigger per interval.

        Ticks do not wait for the run they start, so the period is fixed;
        a tick that lands on a running acquisition is simply refused.
        """
        logger.info("Auto-refresh interval: %d seconds", self.interval)
        await self.trigger(RunTrigger.SCHEDULED)
        while True:
            await asyncio.sleep(self.interval)
            self.fire(RunTrigger.SCHEDULED)

    # ------------------------------------------------------------------ #
    # Acquisition
    # ------------------------------------------------------------------ #
    async def _execute(self, run: AcquisitionRun) -> None:
        extractor: Extractor | None = None
        try:
            extractor = self._extractor_factory()
            await extractor.open()

            auth = AuthSession(
                extractor,
                self._session_store,
                self._credentials,
                code_provider=self._code_provider,
            )
            await auth.login()

            guests = await self._fetch(extractor)
            self._export(guests)
            if self._sweeper is not None:
                self._sweeper.sweep()
        except Exception as e:
            await self._fail(run, e, extractor)
        else:
            self._succeed(run, guests)
        finally:
            await self._release(extractor)
            if run.outcome is RunOutcome.PENDING:
                self._cancelled(run)
            self._last_run = run
            self._current_run = None
            self._notify()

    async def _fetch(self, extractor: Extractor) -> list[Guest]:
        try:
            return await extractor.fetch_records()
        except ArrivalsError:
            raise
        except Exception as e:
            raise ExtractionFailure(str(e) or type(e).__name__) from e

    def _export(self, guests: list[Guest]) -> None:
        if self._exporter is None:
            return
        try:
            self._exporter(guests)
        except (ArrivalsError, OSError) as e:
            logger.warning(f"Export failed, continuing: {e}")

    def _succeed(self, run: AcquisitionRun, guests: list[Guest]) -> None:
        now = self._clock()
        self._cache.set(GUESTS_KEY, guests)
        self._cache.set(ROOMS_KEY, group_by_room(guests))

        was_disabled = not self._auto_refresh_enabled
        self._last_refresh_at = now
        self._last_error = None
        self._auto_refresh_enabled = True
        self._bridge.reset()

        run.outcome = RunOutcome.SUCCESS
        run.finished_at = now
        logger.info("Data refreshed successfully: %d guests found", len(guests))
        if was_disabled:
            logger.info("Auto-refresh has been re-enabled")

    async def _fail(
        self, run: AcquisitionRun, error: Exception, extractor: Extractor | None
    ) -> None:
        now = self._clock()
        self._last_error = RunError.from_exception(error, now)
        self._auto_refresh_enabled = False
        self._bridge.reset()

        run.outcome = RunOutcome.FAILURE
        run.error = self._last_error
        run.finished_at = now

        if isinstance(error, ArrivalsError):
            logger.error(f"Refresh failed: {error}")
        else:
            logger.error(f"Refresh failed: {error}", exc_info=True)
        logger.error(
            "Auto-refresh disabled due to failure. Use POST /api/refresh to retry manually."
        )

        if extractor is not None:
            try:
                await extractor.screenshot("error.png")
            except Exception as e:
                logger.debug(f"Error screenshot failed: {e}")

    def _cancelled(self, run: AcquisitionRun) -> None:
        """Record a run interrupted before it finished (service shutdown)"""
        now = self._clock()
        self._last_error = RunError(
            kind="Cancelled", message="Refresh cancelled before completion", timestamp=now
        )
        self._auto_refresh_enabled = False
        self._bridge.reset()

        run.outcome = RunOutcome.FAILURE
        run.error = self._last_error
        run.finished_at = now
        logger.warning("Refresh cancelled, auto-refresh disabled")

    async def _release(self, extractor: Extractor | None) -> None:
        if extractor is None:
            return
        try:
            await extractor.close()
        except Exception as e:
            logger.warning(f"Failed to close browser: {e}")

    def _notify(self) -> None:
        if self.on_change is None:
            return
        try:
            self.on_change(self.status())
        except Exception as e:
            logger.warning(f"Status listener failed: {e}")
