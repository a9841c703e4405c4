"""Entry formatters: render one LogEntry into the bytes written to a log file."""

import json
import traceback
from abc import ABC, abstractmethod

from logkeeper.models import LogEntry


class Formatter(ABC):
    """Renders a single entry. The backend appends the record separator."""

    @abstractmethod
    def render(self, entry: LogEntry) -> bytes:
        ...


def _format_exception(exc: BaseException) -> str:
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)).rstrip("\n")


class ShortFormat(Formatter):
    """Compact human-readable line.

    ``2025-01-15T12:00:00.123456+00:00   INFO - app: message -- user=42``
    followed by the formatted traceback, if the entry carries an exception.
    """

    def render(self, entry: LogEntry) -> bytes:
        line = (
            f"{entry.timestamp.isoformat(timespec='microseconds')} "
            f"{entry.severity.label:>6} - {entry.source}: {entry.message}"
        )
        if entry.data:
            line += " -- " + ", ".join(f"{k}={v}" for k, v in entry.data.items())
        if entry.exception is not None:
            line += "\n" + _format_exception(entry.exception)
        return line.encode("utf-8")


class JsonFormat(Formatter):
    """One compact JSON object per entry (NDJSON)."""

    def render(self, entry: LogEntry) -> bytes:
        doc = {
            "timestamp": entry.timestamp.isoformat(timespec="microseconds"),
            "severity": entry.severity.label,
            "source": entry.source,
            "message": entry.message,
        }
        if entry.data:
            doc["data"] = entry.data
        if entry.exception is not None:
            doc["exception"] = _format_exception(entry.exception)
        return json.dumps(doc, separators=(",", ":"), default=str).encode("utf-8")


def get_formatter(fmt: str) -> Formatter:
    """Return a formatter instance for the given format name."""
    formatters = {
        "short": ShortFormat,
        "json": JsonFormat,
    }
    try:
        return formatters[fmt.strip().lower()]()
    except KeyError:
        raise ValueError(f"Unsupported log format: {fmt!r}") from None
