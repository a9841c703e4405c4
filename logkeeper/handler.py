"""logging.Handler adapter that feeds stdlib log records into a FileBackend."""

import logging
from datetime import datetime

from logkeeper.models import LogEntry, Severity
from logkeeper.writer import FileBackend

# Standard LogRecord attributes; anything else was passed via ``extra=``.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


def entry_from_record(record: logging.LogRecord) -> LogEntry:
    data = {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS}
    exception = record.exc_info[1] if record.exc_info else None
    return LogEntry(
        severity=Severity.from_level(record.levelno),
        source=record.name,
        message=record.getMessage(),
        data=data,
        exception=exception,
        timestamp=datetime.fromtimestamp(record.created).astimezone(),
    )


class FileBackendHandler(logging.Handler):
    """Delivers records to a FileBackend; never raises into the caller.

    Records from the ``logkeeper`` loggers are dropped, since the backend's
    own diagnostics must not be written back through the backend.
    """

    def __init__(self, backend: FileBackend, level=logging.NOTSET):
        super().__init__(level)
        self.backend = backend

    def filter(self, record):
        if record.name == "logkeeper" or record.name.startswith("logkeeper."):
            return False
        return super().filter(record)

    def emit(self, record):
        try:
            self.backend.write(entry_from_record(record))
        except Exception:
            self.handleError(record)

    def close(self):
        try:
            self.backend.close()
        finally:
            super().close()
