"""File backend: append-only log file with time-based rotation and aging."""

import errno
import logging
import os
import threading
from datetime import datetime, timedelta

from logkeeper.config import Config
from logkeeper.formatters import Formatter, ShortFormat, get_formatter
from logkeeper.metrics import BackendMetrics
from logkeeper.models import LogEntry, Severity, local_now
from logkeeper.rotator import (
    AgingPolicy,
    SweepResult,
    housekeeping_entry,
    rotated_filename,
    sweep_aged_files,
)
from logkeeper.scheduler import next_rotation
from logkeeper.tasks import SweepRunner

logger = logging.getLogger(__name__)

DEFAULT_ROTATE_AT = timedelta(days=1)
DEFAULT_COMPRESS_AT = timedelta(days=7)


class FileBackend:
    """Writes entries to one active log file, rotating it on a schedule.

    After each rotation an aging sweep is handed to a background
    ``SweepRunner``; the sweep compresses rotated files older than
    ``compress_at`` and deletes any rotated file older than ``retention``.
    Rotation and sweep outcomes are written into the log itself as
    housekeeping entries.

    A single lock serializes the rotation check, the rotation, the entry
    emission and the sweep, so entries from concurrent writers never
    interleave.
    """

    def __init__(
        self,
        filepath: str,
        formatter: Formatter | None = None,
        rotate_at: timedelta = DEFAULT_ROTATE_AT,
        compress_at: timedelta = DEFAULT_COMPRESS_AT,
        retention: timedelta | None = None,
        time_func=None,
    ):
        if rotate_at <= timedelta(0):
            raise ValueError(f"rotate_at must be positive, got {rotate_at}")
        self._formatter = formatter or ShortFormat()
        self._time_func = time_func or local_now
        self._lock = threading.Lock()
        self._filepath = os.path.abspath(filepath)
        self._log_dir, self._log_filename = os.path.split(self._filepath)
        self._rotate_at = rotate_at
        self._policy = AgingPolicy(compress_at=compress_at, retention=retention)
        self._metrics = BackendMetrics()
        self._runner = SweepRunner()
        self._closing = False
        self._closed = False

        os.makedirs(self._log_dir, exist_ok=True)

        now = self._time_func()
        startup_target = None
        if os.path.exists(self._filepath) and os.path.getsize(self._filepath) > 0:
            startup_target = rotated_filename(self._filepath, now)
            if os.path.exists(startup_target):
                raise FileExistsError(errno.EEXIST, "Rotated log file already exists", startup_target)
            os.rename(self._filepath, startup_target)

        self._file = open(self._filepath, "ab")
        self._next_rotation_at = next_rotation(now, self._rotate_at)
        self._runner.start()

        if startup_target is not None:
            logger.info("Rotated existing log file %s --> %s", self._filepath, startup_target)
            message = f"Rotate log file: {self._filepath} --> {startup_target}"
            self._raw_write(housekeeping_entry(Severity.INFO, message, now))
            self._metrics.record_rotation(True)
            self._runner.submit(self.sweep)

    @classmethod
    def from_config(cls, config: Config, time_func=None) -> "FileBackend":
        return cls(
            config.resolved_log_path,
            formatter=get_formatter(config.log_format),
            rotate_at=config.rotate_at,
            compress_at=config.compress_at,
            retention=config.retention,
            time_func=time_func,
        )

    @property
    def filepath(self) -> str:
        return self._filepath

    @property
    def formatter(self) -> Formatter:
        return self._formatter

    @property
    def metrics(self) -> BackendMetrics:
        return self._metrics

    @property
    def next_rotation_at(self) -> datetime:
        with self._lock:
            return self._next_rotation_at

    @property
    def rotate_at(self) -> timedelta:
        return self._rotate_at

    @rotate_at.setter
    def rotate_at(self, value: timedelta):
        if value <= timedelta(0):
            raise ValueError(f"rotate_at must be positive, got {value}")
        with self._lock:
            self._rotate_at = value
            self._next_rotation_at = next_rotation(self._time_func(), value)

    @property
    def compress_at(self) -> timedelta:
        return self._policy.compress_at

    @compress_at.setter
    def compress_at(self, value: timedelta):
        with self._lock:
            self._policy = AgingPolicy(compress_at=value, retention=self._policy.retention)

    @property
    def retention(self) -> timedelta | None:
        return self._policy.retention

    @retention.setter
    def retention(self, value: timedelta | None):
        with self._lock:
            self._policy = AgingPolicy(compress_at=self._policy.compress_at, retention=value)

    def write(self, entry: LogEntry) -> str | None:
        """Append an entry, rotating first if the deadline has passed.

        Returns the rotated file path if a rotation occurred.
        """
        with self._lock:
            if self._closing:
                raise RuntimeError("FileBackend is closed")
            rotated_path = self._rotate_if_required()
            self._raw_write(entry)
            return rotated_path

    def _raw_write(self, entry: LogEntry, file=None) -> None:
        """Emit one entry without any rotation check. Caller holds the lock."""
        file = file or self._file
        data = self._formatter.render(entry) + b"\n"
        file.write(data)
        file.flush()
        os.fsync(file.fileno())
        self._metrics.record_write(len(data))

    def _rotate_if_required(self) -> str | None:
        now = self._time_func()
        if now < self._next_rotation_at:
            return None
        rotated_path = self._rotate(now)
        self._next_rotation_at = next_rotation(now, self._rotate_at)
        self._runner.submit(self.sweep)
        return rotated_path

    def _rotate(self, now: datetime) -> str | None:
        """Rename the active file aside and open a fresh one at the same path.

        On failure the current handle stays active and an error entry is
        written to it; the rotation is retried at the next deadline.
        """
        source = self._filepath
        target = rotated_filename(source, now)
        message = f"Rotate log file: {source} --> {target}"
        old_file = self._file

        try:
            if os.path.exists(target):
                raise FileExistsError(errno.EEXIST, "Rotated log file already exists", target)
            os.rename(source, target)
        except OSError as e:
            return self._rotation_failed(message, now, e)

        try:
            new_file = open(source, "ab")
        except OSError as e:
            # the old handle now points at the renamed file; put it back
            try:
                os.rename(target, source)
            except OSError as undo_error:
                logger.error("Cannot restore %s from %s: %s", source, target, undo_error)
            return self._rotation_failed(message, now, e)

        entry = housekeeping_entry(Severity.INFO, message, now)
        self._raw_write(entry, old_file)
        old_file.close()
        self._file = new_file
        self._raw_write(entry)
        self._metrics.record_rotation(True)
        logger.info("Rotated %s --> %s", source, target)
        return target

    def _rotation_failed(self, message: str, now: datetime, error: OSError) -> None:
        logger.warning("%s failed: %s", message, error)
        self._raw_write(housekeeping_entry(Severity.ERROR, message, now, error))
        self._metrics.record_rotation(False)
        return None

    def sweep(self) -> SweepResult | None:
        """Run one aging sweep now, under the backend lock."""
        with self._lock:
            if self._closed:
                return None
            result = sweep_aged_files(
                self._log_dir,
                self._log_filename,
                self._policy,
                self._time_func(),
                self._raw_write,
            )
            self._metrics.record_sweep(result)
            return result

    def join(self) -> None:
        """Block until every scheduled aging sweep has finished."""
        self._runner.join_pending()

    def close(self) -> None:
        """Refuse further writes, wait for scheduled sweeps, then close the active file."""
        with self._lock:
            if self._closing:
                return
            self._closing = True
        self._runner.stop()
        with self._lock:
            self._closed = True
            self._file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
