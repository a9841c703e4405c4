"""Structured log entry model consumed by the file backend."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum


class Severity(IntEnum):
    TRACE = 0
    DEBUG = 1
    INFO = 2
    NOTICE = 3
    WARN = 4
    ERROR = 5
    FATAL = 6

    @property
    def label(self) -> str:
        return self.name

    @classmethod
    def from_level(cls, levelno: int) -> "Severity":
        """Map a stdlib ``logging`` level number onto the closest severity."""
        if levelno >= logging.CRITICAL:
            return cls.FATAL
        if levelno >= logging.ERROR:
            return cls.ERROR
        if levelno >= logging.WARNING:
            return cls.WARN
        if levelno > logging.INFO:
            return cls.NOTICE
        if levelno >= logging.INFO:
            return cls.INFO
        if levelno >= logging.DEBUG:
            return cls.DEBUG
        return cls.TRACE


def local_now() -> datetime:
    return datetime.now().astimezone()


@dataclass
class LogEntry:
    severity: Severity
    source: str
    message: str
    data: dict = field(default_factory=dict)
    exception: BaseException | None = None
    timestamp: datetime = field(default_factory=local_now)
