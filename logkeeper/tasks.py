"""SweepRunner: worker thread that runs aging sweeps off the writer's path."""

import logging
import queue
from threading import Thread
from typing import Callable

logger = logging.getLogger(__name__)

_STOP = object()


class SweepRunner(Thread):
    """Drains a queue of zero-argument tasks one at a time.

    ``join_pending()`` blocks until every submitted task has finished;
    ``stop()`` lets queued tasks complete and then ends the thread.
    """

    def __init__(self, name: str = "logkeeper-sweeper"):
        super().__init__(name=name, daemon=True)
        self._queue: queue.Queue = queue.Queue()
        self._stopping = False
        self._tasks_run = 0

    @property
    def tasks_run(self) -> int:
        return self._tasks_run

    def submit(self, task: Callable[[], object]) -> bool:
        """Queue a task. Returns False once the runner is stopping."""
        if self._stopping:
            return False
        self._queue.put(task)
        return True

    def run(self):
        while True:
            task = self._queue.get()
            try:
                if task is _STOP:
                    return
                task()
                self._tasks_run += 1
            except Exception:
                logger.exception("Background task failed")
            finally:
                self._queue.task_done()

    def join_pending(self) -> None:
        self._queue.join()

    def stop(self, timeout: float | None = None) -> None:
        """Signal shutdown after the queued tasks and wait for the thread."""
        if self._stopping:
            return
        self._stopping = True
        self._queue.put(_STOP)
        if self.is_alive():
            self.join(timeout)
