"""Write fetched arrivals to timestamped files"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable

from .core.exceptions import StorageFailure
from .core.types import Guest

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("json", "txt")


def format_guest_line(guest: Guest) -> str:
    return (
        f"Name: {guest.name} | Room: {guest.room_type} | Persons: {guest.persons} "
        f"| Amount: {guest.amount_due} | Dates: {guest.dates}"
    )


def export_guests(
    guests: list[Guest],
    data_dir: str | Path,
    formats: Iterable[str] = SUPPORTED_FORMATS,
    now: datetime | None = None,
) -> list[Path]:
    """Export guests as guests-<timestamp>.<ext>; raises StorageFailure on I/O errors"""
    data_dir = Path(data_dir)
    timestamp = (now or datetime.now()).strftime("%Y-%m-%dT%H-%M-%S-%f")
    written: list[Path] = []

    for fmt in formats:
        if fmt not in SUPPORTED_FORMATS:
            raise ValueError(f"Unsupported export format: {fmt}")

        path = data_dir / f"guests-{timestamp}.{fmt}"
        try:
            data_dir.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                if fmt == "json":
                    json.dump(
                        [g.to_dict() for g in guests], f, ensure_ascii=False, indent=2
                    )
                else:
                    f.write("\n".join(format_guest_line(g) for g in guests))
        except OSError as e:
            raise StorageFailure(str(path), str(e)) from e

        logger.info(f"Data exported to: {path}")
        written.append(path)

    return written


class GuestExporter:
    """Exporter bound to a data directory, called after each successful fetch"""

    def __init__(self, data_dir: str | Path, formats: Iterable[str] = SUPPORTED_FORMATS):
        self.data_dir = Path(data_dir)
        self.formats = tuple(formats)

    def __call__(self, guests: list[Guest]) -> list[Path]:
        return export_guests(guests, self.data_dir, self.formats)
