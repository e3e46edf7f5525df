"""Service wiring and the background event loop shared with the web facade"""

import asyncio
import logging
import threading
from typing import Any, Callable

from .auth.two_factor import TwoFactorBridge
from .cache import ResultCache
from .config import ServiceConfig
from .coordinator import RefreshCoordinator
from .core.types import RunTrigger, ServiceStatus, TriggerOutcome
from .export import GuestExporter
from .extractor.base import Extractor
from .retention import RetentionSweeper
from .storage.json_file import JsonFileSessionStore

logger = logging.getLogger(__name__)

CALL_TIMEOUT_SECONDS = 10.0


def build_coordinator(
    config: ServiceConfig,
    extractor_factory: Callable[[], Extractor] | None = None,
) -> RefreshCoordinator:
    """Create a coordinator and its collaborators from configuration"""
    storage = config.storage
    for directory in (storage.data_dir, storage.session_dir):
        directory.mkdir(parents=True, exist_ok=True)

    if extractor_factory is None:
        from .extractor.amenitiz import AmenitizExtractor

        def extractor_factory() -> Extractor:
            return AmenitizExtractor(config.amenitiz, screenshot_dir=storage.screenshot_dir)

    exporter = None
    if storage.export_formats:
        exporter = GuestExporter(storage.data_dir, storage.export_formats)

    return RefreshCoordinator(
        extractor_factory=extractor_factory,
        session_store=JsonFileSessionStore(storage.session_dir),
        bridge=TwoFactorBridge(timeout=config.refresh.two_factor_timeout_seconds),
        cache=ResultCache(default_ttl=config.refresh.cache_ttl_seconds),
        credentials=config.amenitiz.credentials,
        sweeper=RetentionSweeper(
            [storage.data_dir, storage.screenshot_dir], storage.retention_days
        ),
        exporter=exporter,
        interval=config.refresh.interval_seconds,
    )


class ServiceRunner:
    """Runs the coordinator's event loop on a daemon thread.

    Flask handlers run on their own threads; every call into the coordinator
    goes through ``call()`` so state is only touched on the loop thread.
    """

    def __init__(self, coordinator: RefreshCoordinator):
        self.coordinator = coordinator
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._schedule_task: asyncio.Task | None = None
        self._ready = threading.Event()

    @property
    def started(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, schedule: bool = True) -> None:
        if self.started:
            return

        self._ready.clear()
        self._thread = threading.Thread(
            target=self._run_loop, name="arrivals-loop", daemon=True
        )
        self._thread.start()
        self._ready.wait()

        if schedule:
            self.call(self._start_schedule)
            logger.info("Auto-refresh scheduled")

    def _run_loop(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        self._ready.set()
        try:
            loop.run_forever()
        finally:
            loop.close()

    def _start_schedule(self) -> None:
        self._schedule_task = asyncio.get_running_loop().create_task(
            self.coordinator.run_schedule()
        )

    def stop(self) -> None:
        if not self.started or self._loop is None:
            return

        async def _shutdown():
            tasks = [t for t in (self._schedule_task, self.coordinator.task) if t and not t.done()]
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        asyncio.run_coroutine_threadsafe(_shutdown(), self._loop).result(CALL_TIMEOUT_SECONDS)
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(CALL_TIMEOUT_SECONDS)
        self._thread = None
        self._loop = None
        logger.info("Service stopped")

    def call(self, func: Callable[..., Any], *args: Any) -> Any:
        """Run a synchronous function on the loop thread and return its result"""
        if self._loop is None:
            raise RuntimeError("ServiceRunner is not started")

        async def _invoke():
            return func(*args)

        future = asyncio.run_coroutine_threadsafe(_invoke(), self._loop)
        return future.result(CALL_TIMEOUT_SECONDS)

    # ------------------------------------------------------------------ #
    # Facade helpers
    # ------------------------------------------------------------------ #
    def status(self) -> ServiceStatus:
        return self.call(self.coordinator.status)

    def guests(self):
        return self.call(self.coordinator.guests)

    def rooms(self):
        return self.call(self.coordinator.rooms)

    def submit_code(self, code: str) -> bool:
        return self.call(self.coordinator.bridge.submit_code, code)

    def request_refresh(self) -> TriggerOutcome:
        return self.call(self.coordinator.fire, RunTrigger.FORCED)
