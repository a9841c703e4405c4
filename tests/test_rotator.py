"""Tests for rotated-file discovery and the aging sweep."""

import gzip
import os
import re
from datetime import datetime, timedelta, timezone

import pytest

from logkeeper.models import Severity
from logkeeper.rotator import (
    AgingPolicy,
    get_rotated_files,
    rotated_filename,
    sweep_aged_files,
)

LOG_FILENAME = "application.log"
NOW = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def _make(directory, name, age: timedelta, content=b"some log line\n"):
    path = directory / name
    path.write_bytes(content)
    mtime = (NOW - age).timestamp()
    os.utime(path, (mtime, mtime))
    return path


@pytest.fixture
def recorded():
    return []


class TestRotatedFilename:
    def test_appends_timestamp_suffix(self):
        now = datetime(2025, 1, 15, 12, 0, 0, 7000)
        assert rotated_filename("/var/log/app.log", now) == "/var/log/app.log.20250115120000007"

    def test_matches_naming_pattern(self):
        name = os.path.basename(rotated_filename("/tmp/app.log", NOW))
        assert re.fullmatch(r"app\.log\.\d{17}", name)


class TestGetRotatedFiles:
    def test_returns_only_rotated_files_sorted(self, tmp_path):
        for name in (
            LOG_FILENAME,
            f"{LOG_FILENAME}.20250115130000000.gz",
            f"{LOG_FILENAME}.20250115120000000",
            f"{LOG_FILENAME}.20250114120000000",
            f"{LOG_FILENAME}.not_a_timestamp",
            f"{LOG_FILENAME}.2025011512",
            "other.log.20250115120000000",
            "unrelated.txt",
        ):
            (tmp_path / name).write_bytes(b"")

        assert get_rotated_files(str(tmp_path), LOG_FILENAME) == [
            f"{LOG_FILENAME}.20250114120000000",
            f"{LOG_FILENAME}.20250115120000000",
            f"{LOG_FILENAME}.20250115130000000.gz",
        ]

    def test_skips_directories(self, tmp_path):
        (tmp_path / f"{LOG_FILENAME}.20250115120000000").mkdir()
        assert get_rotated_files(str(tmp_path), LOG_FILENAME) == []

    def test_empty_directory(self, tmp_path):
        assert get_rotated_files(str(tmp_path), LOG_FILENAME) == []


class TestSweepRetention:
    def test_purges_file_past_retention_without_compressing(self, tmp_path, recorded):
        old = _make(tmp_path, f"{LOG_FILENAME}.20250113120000000", timedelta(days=2))
        policy = AgingPolicy(compress_at=timedelta(hours=1), retention=timedelta(days=1))

        result = sweep_aged_files(str(tmp_path), LOG_FILENAME, policy, NOW, recorded.append)

        assert not old.exists()
        assert not os.path.exists(str(old) + ".gz")
        assert result.purged == [str(old)]
        assert result.compressed == []
        assert len(recorded) == 1
        assert recorded[0].severity == Severity.INFO
        assert recorded[0].message == f"Purge aged log file: {old}"
        assert recorded[0].source == "logkeeper"

    def test_purges_compressed_files_too(self, tmp_path, recorded):
        gz = _make(tmp_path, f"{LOG_FILENAME}.20250101120000000.gz", timedelta(days=14))
        policy = AgingPolicy(compress_at=timedelta(days=7), retention=timedelta(days=10))

        sweep_aged_files(str(tmp_path), LOG_FILENAME, policy, NOW, recorded.append)

        assert not gz.exists()

    def test_no_retention_keeps_everything(self, tmp_path, recorded):
        gz = _make(tmp_path, f"{LOG_FILENAME}.20200101120000000.gz", timedelta(days=5 * 365))
        policy = AgingPolicy(compress_at=timedelta(days=7), retention=None)

        result = sweep_aged_files(str(tmp_path), LOG_FILENAME, policy, NOW, recorded.append)

        assert gz.exists()
        assert result.purged == []
        assert recorded == []

    def test_delete_failure_is_recorded_and_sweep_continues(self, tmp_path, recorded, monkeypatch):
        stuck = _make(tmp_path, f"{LOG_FILENAME}.20250110120000000", timedelta(days=5))
        other = _make(tmp_path, f"{LOG_FILENAME}.20250111120000000", timedelta(days=4))
        real_remove = os.remove

        def flaky_remove(path):
            if path == str(stuck):
                raise PermissionError(13, "Permission denied", path)
            real_remove(path)

        monkeypatch.setattr(os, "remove", flaky_remove)
        policy = AgingPolicy(retention=timedelta(days=1))

        result = sweep_aged_files(str(tmp_path), LOG_FILENAME, policy, NOW, recorded.append)

        assert stuck.exists()
        assert not other.exists()
        assert result.failed == [str(stuck)]
        assert result.purged == [str(other)]
        errors = [e for e in recorded if e.severity == Severity.ERROR]
        assert len(errors) == 1
        assert str(stuck) in errors[0].message
        assert isinstance(errors[0].exception, PermissionError)


class TestSweepCompression:
    def test_compresses_file_past_threshold(self, tmp_path, recorded):
        content = b"first entry\nsecond entry\n" * 50
        source = _make(tmp_path, f"{LOG_FILENAME}.20250115100000000", timedelta(hours=2), content)
        source_mtime = os.stat(source).st_mtime
        policy = AgingPolicy(compress_at=timedelta(hours=1), retention=None)

        result = sweep_aged_files(str(tmp_path), LOG_FILENAME, policy, NOW, recorded.append)

        target = str(source) + ".gz"
        assert not source.exists()
        assert result.compressed == [target]
        with gzip.open(target, "rb") as f:
            assert f.read() == content
        assert os.stat(target).st_mtime == pytest.approx(source_mtime, abs=1e-3)
        assert recorded[0].severity == Severity.INFO
        assert recorded[0].message == f"Compress aged log file: {source} --> {target}"

    def test_young_files_untouched(self, tmp_path, recorded):
        young = _make(tmp_path, f"{LOG_FILENAME}.20250115113000000", timedelta(minutes=30))
        policy = AgingPolicy(compress_at=timedelta(hours=1), retention=timedelta(days=1))

        result = sweep_aged_files(str(tmp_path), LOG_FILENAME, policy, NOW, recorded.append)

        assert young.exists()
        assert result.compressed == [] and result.purged == [] and result.failed == []
        assert recorded == []

    def test_active_file_never_touched(self, tmp_path, recorded):
        active = _make(tmp_path, LOG_FILENAME, timedelta(days=30))
        policy = AgingPolicy(compress_at=timedelta(hours=1), retention=timedelta(days=1))

        sweep_aged_files(str(tmp_path), LOG_FILENAME, policy, NOW, recorded.append)

        assert active.exists()

    def test_idempotent_when_compressed_copy_exists(self, tmp_path, recorded):
        source = _make(tmp_path, f"{LOG_FILENAME}.20250115090000000", timedelta(hours=3), b"original\n")
        gz = _make(tmp_path, f"{LOG_FILENAME}.20250115090000000.gz", timedelta(hours=3),
                   gzip.compress(b"earlier pass\n"))
        gz_before = gz.read_bytes()
        gz_mtime = os.stat(gz).st_mtime
        policy = AgingPolicy(compress_at=timedelta(hours=1), retention=None)

        for _ in range(2):
            result = sweep_aged_files(str(tmp_path), LOG_FILENAME, policy, NOW, recorded.append)
            assert result.compressed == []

        assert source.read_bytes() == b"original\n"
        assert gz.read_bytes() == gz_before
        assert os.stat(gz).st_mtime == gz_mtime
        assert recorded == []

    def test_compression_failure_is_recorded(self, tmp_path, recorded, monkeypatch):
        source = _make(tmp_path, f"{LOG_FILENAME}.20250115090000000", timedelta(hours=3))

        def boom(f_in, f_out):
            raise OSError("no space left on device")

        monkeypatch.setattr("logkeeper.compression.shutil.copyfileobj", boom)
        policy = AgingPolicy(compress_at=timedelta(hours=1))

        result = sweep_aged_files(str(tmp_path), LOG_FILENAME, policy, NOW, recorded.append)

        assert source.exists()
        assert not os.path.exists(str(source) + ".gz")
        assert result.failed == [str(source)]
        assert recorded[0].severity == Severity.ERROR
        assert recorded[0].message.startswith("Compress aged log file:")


class TestSweepErrors:
    def test_missing_directory_is_recorded_not_raised(self, tmp_path, recorded):
        missing = tmp_path / "nope"
        result = sweep_aged_files(str(missing), LOG_FILENAME, AgingPolicy(), NOW, recorded.append)

        assert result.failed == [str(missing)]
        assert recorded[0].severity == Severity.ERROR

    def test_failing_record_does_not_abort_sweep(self, tmp_path):
        old = _make(tmp_path, f"{LOG_FILENAME}.20250113120000000", timedelta(days=2))
        older = _make(tmp_path, f"{LOG_FILENAME}.20250112120000000", timedelta(days=3))
        stale = _make(tmp_path, f"{LOG_FILENAME}.20250115100000000", timedelta(hours=2))
        attempts = []

        def disk_full(entry):
            attempts.append(entry)
            raise OSError(28, "No space left on device")

        policy = AgingPolicy(compress_at=timedelta(hours=1), retention=timedelta(days=1))
        result = sweep_aged_files(str(tmp_path), LOG_FILENAME, policy, NOW, disk_full)

        assert not old.exists()
        assert not older.exists()
        assert not stale.exists()
        assert sorted(result.purged) == sorted([str(old), str(older)])
        assert result.compressed == [str(stale) + ".gz"]
        assert len(attempts) == 3

    def test_failing_record_on_scan_error_is_not_raised(self, tmp_path):
        def disk_full(entry):
            raise OSError(28, "No space left on device")

        missing = tmp_path / "nope"
        result = sweep_aged_files(str(missing), LOG_FILENAME, AgingPolicy(), NOW, disk_full)
        assert result.failed == [str(missing)]
