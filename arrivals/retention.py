"""Age-based cleanup of exported data and screenshots"""

import logging
import time
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


def sweep(
    locations: Iterable[str | Path], max_age_days: float, now: float | None = None
) -> int:
    """Delete files older than max_age_days. Returns the number removed.

    Errors on individual entries are logged and skipped.
    """
    if not max_age_days or max_age_days <= 0:
        return 0

    now = time.time() if now is None else now
    cutoff = now - max_age_days * SECONDS_PER_DAY
    deleted = 0

    for location in locations:
        directory = Path(location)
        if not directory.is_dir():
            continue

        try:
            entries = list(directory.iterdir())
        except OSError as e:
            logger.warning(f"Cleanup skipped for {directory}: {e}")
            continue

        for entry in entries:
            try:
                if entry.is_file() and entry.stat().st_mtime < cutoff:
                    entry.unlink()
                    deleted += 1
                    logger.debug(f"Deleted old file: {entry}")
            except OSError as e:
                logger.warning(f"Cleanup skipped for {entry}: {e}")

    if deleted:
        logger.info(
            f"Cleanup: removed {deleted} file(s) older than {max_age_days} day(s)"
        )
    return deleted


class RetentionSweeper:
    """Applies one retention policy to a fixed set of directories"""

    def __init__(self, locations: Iterable[str | Path], max_age_days: float = 7):
        self.locations = [Path(p) for p in locations]
        self.max_age_days = max_age_days

    @property
    def enabled(self) -> bool:
        return self.max_age_days > 0

    def sweep(self, now: float | None = None) -> int:
        return sweep(self.locations, self.max_age_days, now=now)
