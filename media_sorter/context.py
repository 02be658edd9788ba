"""
Shared state of a sort run.

Everything the workers share (cancellation flag, counters, geocoder cache,
collaborators) is bundled in a ``SortContext`` and passed explicitly, so
several runs can coexist and tests can swap in fakes.
"""

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional

from .config import SorterConfig

if TYPE_CHECKING:
    from .archive import ArchiveExpander
    from .file_organizer import FileOrganizer
    from .metadata_extractor import MetadataExtractor

ProgressCallback = Callable[[int, int, str], None]


class CancellationToken:
    """Cooperative stop flag checked before each new job and inside walks."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(frozen=True)
class Summary:
    """Counters reported to the shell at the end of a run."""

    total_files: int = 0
    processed: int = 0
    succeeded: int = 0
    skipped: int = 0


class StatsAggregator:
    """
    Run counters.

    ``processed`` is only ever incremented together with ``succeeded`` or
    ``skipped``, under the same lock, so ``processed == succeeded + skipped``
    holds for every snapshot.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._total = 0
        self._processed = 0
        self._succeeded = 0
        self._skipped = 0

    def set_total(self, total: int) -> None:
        with self._lock:
            self._total = total

    def record_success(self) -> int:
        with self._lock:
            self._succeeded += 1
            self._processed += 1
            return self._processed

    def record_skip(self) -> int:
        with self._lock:
            self._skipped += 1
            self._processed += 1
            return self._processed

    def snapshot(self) -> Summary:
        with self._lock:
            return Summary(
                total_files=self._total,
                processed=self._processed,
                succeeded=self._succeeded,
                skipped=self._skipped,
            )


@dataclass
class SortContext:
    """
    Dependencies of one run, shared by the pool and all workers.

    Attributes:
        source_root: Root of the tree being sorted
        target_root: Root of the date-partitioned output tree
        config: Run configuration
        token: Cancellation flag
        stats: Run counters
        extractor: Metadata extractor (owns the geocoder)
        organizer: Destination resolution and copying
        archives: Archive expansion
        on_progress: Optional progress callback
    """

    source_root: Path
    target_root: Path
    config: SorterConfig
    token: CancellationToken
    stats: StatsAggregator
    extractor: "MetadataExtractor"
    organizer: "FileOrganizer"
    archives: "ArchiveExpander"
    on_progress: Optional[ProgressCallback] = None

    def report(self, processed: int, status: str) -> None:
        if self.on_progress is None:
            return
        total = self.stats.snapshot().total_files
        self.on_progress(processed, total, status)
