"""
Thread-safe FIFO of pending file jobs.
"""

import threading
from collections import deque
from pathlib import Path
from typing import Deque, Optional


class WorkQueue:
    """
    Blocking job queue shared by the scanner and the worker pool.

    Producers call ``push`` and finally ``mark_finished``. Consumers call
    ``pop`` until it returns ``None``.
    """

    def __init__(self):
        self._items: Deque[Path] = deque()
        self._finished = False
        self._cond = threading.Condition()

    def push(self, job: Path) -> None:
        with self._cond:
            self._items.append(job)
            self._cond.notify()

    def pop(self) -> Optional[Path]:
        """
        Take the next job, blocking while the queue is empty.

        Returns:
            The next job, or None once the queue is finished and drained
        """
        with self._cond:
            self._cond.wait_for(lambda: self._items or self._finished)
            if not self._items:
                return None
            return self._items.popleft()

    def mark_finished(self) -> None:
        with self._cond:
            self._finished = True
            self._cond.notify_all()

    @property
    def finished(self) -> bool:
        with self._cond:
            return self._finished

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)
