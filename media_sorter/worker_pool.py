"""
Fixed-size pool of worker threads draining a WorkQueue.
"""

import logging
import threading
from pathlib import Path
from typing import Callable, Iterable, List

from .context import CancellationToken
from .work_queue import WorkQueue


class WorkerPool:
    """
    Runs a job handler on a fixed number of threads.

    Each worker pops jobs until the queue is drained or the cancellation
    token is set. A job already started always runs to completion; the
    token is only checked between jobs.
    """

    def __init__(self, handler: Callable[[Path], None], size: int,
                 token: CancellationToken, queue: WorkQueue = None):
        """
        Initialize the pool.

        Args:
            handler: Per-job function; exceptions it raises are logged
            size: Number of worker threads
            token: Cancellation flag
            queue: Job queue, a new one when omitted
        """
        self.logger = logging.getLogger(__name__)
        self.handler = handler
        self.size = max(1, size)
        self.token = token
        self.queue = queue if queue is not None else WorkQueue()
        self._threads: List[threading.Thread] = []

    def start(self) -> None:
        for index in range(self.size):
            thread = threading.Thread(target=self._work, name=f"media-sorter-worker-{index}", daemon=True)
            thread.start()
            self._threads.append(thread)
        self.logger.debug(f"Started {self.size} workers")

    def join(self) -> None:
        for thread in self._threads:
            thread.join()
        self._threads.clear()

    def run(self, jobs: Iterable[Path]) -> None:
        """
        Process ``jobs`` and block until every worker has exited.

        Args:
            jobs: Files to process
        """
        self.start()
        try:
            for job in jobs:
                if self.token.is_cancelled:
                    break
                self.queue.push(job)
        finally:
            self.queue.mark_finished()
            self.join()

    def _work(self) -> None:
        while True:
            job = self.queue.pop()
            if job is None:
                return
            if self.token.is_cancelled:
                return
            try:
                self.handler(job)
            except Exception as e:
                self.logger.error(f"Unhandled error processing {job}: {e}")
