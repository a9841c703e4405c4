"""Thread-safe counters for a file backend."""

import threading
import time

from logkeeper.rotator import SweepResult


class BackendMetrics:
    """Tracks writes, rotations and aging-sweep outcomes."""

    def __init__(self):
        self._lock = threading.Lock()
        self._entries_written = 0
        self._bytes_written = 0
        self._rotations = 0
        self._rotation_failures = 0
        self._sweeps = 0
        self._files_compressed = 0
        self._files_purged = 0
        self._housekeeping_failures = 0
        self._start_time = time.monotonic()

    def record_write(self, size: int):
        with self._lock:
            self._entries_written += 1
            self._bytes_written += size

    def record_rotation(self, ok: bool):
        with self._lock:
            if ok:
                self._rotations += 1
            else:
                self._rotation_failures += 1

    def record_sweep(self, result: SweepResult):
        with self._lock:
            self._sweeps += 1
            self._files_compressed += len(result.compressed)
            self._files_purged += len(result.purged)
            self._housekeeping_failures += len(result.failed)

    def snapshot(self) -> dict:
        with self._lock:
            elapsed = time.monotonic() - self._start_time
            return {
                "entries_written": self._entries_written,
                "bytes_written": self._bytes_written,
                "rotations": self._rotations,
                "rotation_failures": self._rotation_failures,
                "sweeps": self._sweeps,
                "files_compressed": self._files_compressed,
                "files_purged": self._files_purged,
                "housekeeping_failures": self._housekeeping_failures,
                "elapsed_seconds": round(elapsed, 1),
            }
