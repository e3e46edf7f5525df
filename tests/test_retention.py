"""Tests for the retention sweep."""

import os
from pathlib import Path

from arrivals.retention import SECONDS_PER_DAY, RetentionSweeper, sweep

NOW = 1_700_000_000.0


def _touch(path: Path, age_days: float) -> Path:
    path.write_text("x")
    mtime = NOW - age_days * SECONDS_PER_DAY
    os.utime(path, (mtime, mtime))
    return path


class TestSweep:
    def test_only_old_files_are_removed(self, tmp_path):
        old = _touch(tmp_path / "guests-old.json", age_days=8)
        fresh = _touch(tmp_path / "guests-new.json", age_days=1)

        assert sweep([tmp_path], max_age_days=7, now=NOW) == 1
        assert not old.exists()
        assert fresh.exists()

    def test_directories_are_left_alone(self, tmp_path):
        nested = tmp_path / "nested"
        nested.mkdir()
        os.utime(nested, (NOW - 30 * SECONDS_PER_DAY,) * 2)

        assert sweep([tmp_path], max_age_days=7, now=NOW) == 0
        assert nested.is_dir()

    def test_missing_location_is_skipped(self, tmp_path):
        data = tmp_path / "data"
        data.mkdir()
        _touch(data / "a.txt", age_days=10)

        removed = sweep([tmp_path / "does-not-exist", data], max_age_days=7, now=NOW)
        assert removed == 1

    def test_non_positive_age_disables_sweep(self, tmp_path):
        old = _touch(tmp_path / "a.txt", age_days=100)
        assert sweep([tmp_path], max_age_days=0, now=NOW) == 0
        assert old.exists()

    def test_entry_error_does_not_stop_the_sweep(self, tmp_path, monkeypatch):
        stuck = _touch(tmp_path / "stuck.png", age_days=10)
        other = _touch(tmp_path / "other.png", age_days=10)
        real_unlink = Path.unlink

        def flaky_unlink(self, *args, **kwargs):
            if self.name == "stuck.png":
                raise PermissionError("locked")
            return real_unlink(self, *args, **kwargs)

        monkeypatch.setattr(Path, "unlink", flaky_unlink)

        assert sweep([tmp_path], max_age_days=7, now=NOW) == 1
        assert stuck.exists()
        assert not other.exists()


class TestRetentionSweeper:
    def test_sweeps_all_locations(self, tmp_path):
        data = tmp_path / "data"
        shots = tmp_path / "screenshots"
        data.mkdir()
        shots.mkdir()
        _touch(data / "guests.json", age_days=9)
        _touch(shots / "error.png", age_days=9)

        sweeper = RetentionSweeper([data, shots], max_age_days=7)
        assert sweeper.enabled
        assert sweeper.sweep(now=NOW) == 2

    def test_disabled(self, tmp_path):
        assert not RetentionSweeper([tmp_path], max_age_days=0).enabled
