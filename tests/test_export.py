"""Tests for guest export files."""

import json
from datetime import datetime

import pytest

from arrivals.core.exceptions import StorageFailure
from arrivals.core.types import Guest
from arrivals.export import GuestExporter, export_guests, format_guest_line

from conftest import SAMPLE_GUESTS

WHEN = datetime(2026, 6, 12, 8, 30, 15, 123456)


def test_export_writes_json_and_txt(tmp_path):
    paths = export_guests(SAMPLE_GUESTS, tmp_path / "data", now=WHEN)

    assert [p.name for p in paths] == [
        "guests-2026-06-12T08-30-15-123456.json",
        "guests-2026-06-12T08-30-15-123456.txt",
    ]
    records = json.loads(paths[0].read_text(encoding="utf-8"))
    assert records[0] == {
        "name": "Alice Martin",
        "room_type": "Chambre Marocaine",
        "persons": "2",
        "amount_due": "120,00 €",
        "dates": "12 - 14 juin",
    }
    lines = paths[1].read_text(encoding="utf-8").splitlines()
    assert len(lines) == 3
    assert lines[1] == format_guest_line(SAMPLE_GUESTS[1])


def test_format_guest_line():
    line = format_guest_line(Guest(name="Eve", room_type="Suite", persons="2"))
    assert line.startswith("Name: Eve | Room: Suite | Persons: 2")


def test_unknown_format(tmp_path):
    with pytest.raises(ValueError):
        export_guests(SAMPLE_GUESTS, tmp_path, formats=["csv"])


def test_unwritable_directory(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("file")
    with pytest.raises(StorageFailure):
        export_guests(SAMPLE_GUESTS, blocker / "data", formats=["json"])


def test_exporter_uses_configured_formats(tmp_path):
    exporter = GuestExporter(tmp_path, formats=["txt"])
    paths = exporter(SAMPLE_GUESTS)
    assert len(paths) == 1
    assert paths[0].suffix == ".txt"
