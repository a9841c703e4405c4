"""Post-rotation aging: compression and retention of rotated log files."""

import logging
import os
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable

from logkeeper.compression import GZIP_EXTENSION, compress_file
from logkeeper.models import LogEntry, Severity
from logkeeper.scheduler import rotation_timestamp

logger = logging.getLogger(__name__)

HOUSEKEEPING_SOURCE = "logkeeper"


@dataclass(frozen=True)
class AgingPolicy:
    compress_at: timedelta = timedelta(days=7)
    retention: timedelta | None = None


@dataclass
class SweepResult:
    purged: list[str] = field(default_factory=list)
    compressed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


def housekeeping_entry(severity: Severity, message: str, now: datetime,
                       exception: BaseException | None = None) -> LogEntry:
    return LogEntry(severity, HOUSEKEEPING_SOURCE, message, exception=exception, timestamp=now)


def rotated_filename(filepath: str, now: datetime) -> str:
    """Return the path the active file is renamed to when rotated at ``now``."""
    return f"{filepath}.{rotation_timestamp(now)}"


def _record_safely(record: Callable[[LogEntry], None], entry: LogEntry) -> None:
    try:
        record(entry)
    except OSError as e:
        logger.warning("Cannot write housekeeping entry '%s': %s", entry.message, e)


def _rotated_pattern(log_filename: str) -> re.Pattern:
    return re.compile(rf"^{re.escape(log_filename)}\.\d{{17}}(?:{re.escape(GZIP_EXTENSION)})?$")


def get_rotated_files(log_dir: str, log_filename: str) -> list[str]:
    """List rotated (and compressed) files, oldest first, skipping directories."""
    pattern = _rotated_pattern(log_filename)
    rotated = []
    for name in os.listdir(log_dir):
        if pattern.match(name) and not os.path.isdir(os.path.join(log_dir, name)):
            rotated.append(name)
    rotated.sort()
    return rotated


def sweep_aged_files(
    log_dir: str,
    log_filename: str,
    policy: AgingPolicy,
    now: datetime,
    record: Callable[[LogEntry], None],
) -> SweepResult:
    """Purge rotated files past retention and compress those past ``compress_at``.

    Every outcome is reported through ``record`` as a housekeeping entry.
    Failures on one file do not stop the rest of the sweep, and nothing is
    raised to the caller.
    """
    result = SweepResult()
    try:
        names = get_rotated_files(log_dir, log_filename)
    except OSError as e:
        logger.warning("Cannot scan %s for aged log files: %s", log_dir, e)
        _record_safely(record, housekeeping_entry(Severity.ERROR, f"Scan log directory: {log_dir}", now, e))
        result.failed.append(log_dir)
        return result

    now_ts = now.timestamp()
    for name in names:
        path = os.path.join(log_dir, name)
        try:
            mtime = os.stat(path).st_mtime
        except FileNotFoundError:
            continue
        age = timedelta(seconds=now_ts - mtime)

        if policy.retention is not None and age >= policy.retention:
            message = f"Purge aged log file: {path}"
            try:
                os.remove(path)
            except OSError as e:
                logger.warning("Purge failed for %s: %s", path, e)
                _record_safely(record, housekeeping_entry(Severity.ERROR, message, now, e))
                result.failed.append(path)
            else:
                _record_safely(record, housekeeping_entry(Severity.INFO, message, now))
                result.purged.append(path)
        elif age >= policy.compress_at and not name.endswith(GZIP_EXTENSION):
            target = path + GZIP_EXTENSION
            message = f"Compress aged log file: {path} --> {target}"
            try:
                done = compress_file(path, target)
            except Exception as e:
                logger.warning("Compression failed for %s: %s", path, e)
                _record_safely(record, housekeeping_entry(Severity.ERROR, message, now, e))
                result.failed.append(path)
            else:
                if done:
                    _record_safely(record, housekeeping_entry(Severity.INFO, message, now))
                    result.compressed.append(target)

    logger.debug("Sweep of %s: %d purged, %d compressed, %d failed",
                 log_dir, len(result.purged), len(result.compressed), len(result.failed))
    return result
