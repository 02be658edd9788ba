"""
Sort orchestration.

``MediaSorter.start_sort`` validates the roots, scans the source tree and
hands the files to a worker pool on a background thread. The returned
``SortHandle`` lets the shell request a stop and wait for the summary.
"""

import logging
import os
import threading
from pathlib import Path
from typing import Callable, Iterator, List, Optional

from .archive import ArchiveExpander, Extractor, default_extractor
from .config import SorterConfig
from .context import CancellationToken, ProgressCallback, SortContext, StatsAggregator, Summary
from .errors import InvalidRootError
from .file_organizer import FileOrganizer
from .geocoder import GeocodeResolver
from .metadata_extractor import MetadataExtractor
from .path_resolver import Outcome, PathResolver
from .scanner import scan
from .worker_pool import WorkerPool

CompletionCallback = Callable[[Summary], None]


def process_file(ctx: SortContext, file_path: Path, depth: int = 0) -> None:
    """
    Run the per-file pipeline for one job.

    Archives are expanded and their members processed inline. Any other
    file goes through metadata extraction, destination resolution and copy.
    Failures are counted as skipped and never propagate.

    Args:
        ctx: Context of the run
        file_path: File to sort
        depth: Archive nesting level of the file
    """
    log = logging.getLogger(__name__)
    file_path = Path(file_path)

    if ctx.config.is_archive(file_path.name) and depth < ctx.config.max_archive_depth:
        ctx.report(ctx.stats.snapshot().processed, f"Extracting: {file_path.name}")
        try:
            extracted = ctx.archives.expand(
                file_path, lambda member: process_file(ctx, member, depth + 1))
        except Exception as e:
            log.warning(f"Archive processing error for {file_path}: {e}")
            extracted = False
        if not extracted:
            ctx.report(ctx.stats.record_skip(), f"Failed to extract: {file_path.name}")
        return

    try:
        metadata = ctx.extractor.extract(file_path)
        resolution = ctx.organizer.organize_file(file_path, metadata)
    except Exception as e:
        log.warning(f"Error processing {file_path}: {e}")
        ctx.report(ctx.stats.record_skip(), f"Error: {file_path.name}")
        return

    if resolution.outcome is Outcome.SKIP_DUPLICATE:
        processed = ctx.stats.record_skip()
    else:
        processed = ctx.stats.record_success()
    ctx.report(processed, f"Processing: {file_path.name}")


class SortHandle:
    """Handle of a running sort, returned by ``MediaSorter.start_sort``."""

    def __init__(self, ctx: SortContext):
        self._ctx = ctx
        self._done = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.summary: Optional[Summary] = None
        self.error: Optional[BaseException] = None

    def request_stop(self) -> None:
        """Stop taking new jobs; files already in flight still finish."""
        if not self._ctx.token.is_cancelled:
            logging.getLogger(__name__).info("Stopping...")
        self._ctx.token.cancel()

    @property
    def stop_requested(self) -> bool:
        return self._ctx.token.is_cancelled

    @property
    def is_running(self) -> bool:
        return not self._done.is_set()

    @property
    def stats(self) -> Summary:
        return self._ctx.stats.snapshot()

    @property
    def context(self) -> SortContext:
        return self._ctx

    def wait(self, timeout: Optional[float] = None) -> Optional[Summary]:
        """
        Block until the run has finished.

        Args:
            timeout: Seconds to wait, None to wait indefinitely

        Returns:
            The final summary, or None if the timeout expired first
        """
        if not self._done.wait(timeout):
            return None
        return self.summary


class MediaSorter:
    """
    Entry point of the sorting core.

    Collaborators are created per run from the configuration unless they
    are injected, which is how tests substitute the geocoder and the
    archive extractor.
    """

    def __init__(self, config: Optional[SorterConfig] = None,
                 geocoder: Optional[GeocodeResolver] = None,
                 archive_extractor: Optional[Extractor] = None):
        self.logger = logging.getLogger(__name__)
        self.config = config or SorterConfig()
        self.geocoder = geocoder
        if self.geocoder is None and self.config.geocode_enabled:
            self.geocoder = GeocodeResolver(self.config)
        self.archive_extractor = archive_extractor or default_extractor(self.config.extract_command)

    def start_sort(self, source_root, target_root,
                   on_progress: Optional[ProgressCallback] = None,
                   on_complete: Optional[CompletionCallback] = None) -> SortHandle:
        """
        Start sorting ``source_root`` into ``target_root``.

        The source root is checked before this returns. Enumeration and
        processing run on a background thread, so ``request_stop`` also
        interrupts a long scan.

        Args:
            source_root: Directory to sort
            target_root: Root of the date-partitioned output tree
            on_progress: Called with (processed, total, status text)
            on_complete: Called once with the final summary

        Returns:
            Handle to stop or wait for the run

        Raises:
            InvalidRootError: If a root is not a directory or both are the same
            SourceUnreadableError: If the source cannot be enumerated
        """
        source, target = self._validate_roots(source_root, target_root)
        ctx = self._build_context(source, target, on_progress)

        files = scan(source, ctx.token)

        handle = SortHandle(ctx)
        thread = threading.Thread(target=self._run, args=(handle, files, on_complete),
                                  name="media-sorter-coordinator", daemon=True)
        handle._thread = thread
        thread.start()
        return handle

    def sort(self, source_root, target_root,
             on_progress: Optional[ProgressCallback] = None) -> Summary:
        """Blocking variant of ``start_sort``; returns the final summary."""
        handle = self.start_sort(source_root, target_root, on_progress=on_progress)
        summary = handle.wait()
        if handle.error is not None:
            raise handle.error
        return summary

    def _validate_roots(self, source_root, target_root):
        source = Path(source_root).expanduser().absolute()
        target = Path(target_root).expanduser().absolute()

        if not source.is_dir():
            raise InvalidRootError(f"Source folder is invalid or does not exist: {source}")
        if not target.is_dir():
            raise InvalidRootError(f"Target folder is invalid or does not exist: {target}")
        if os.path.samefile(source, target):
            raise InvalidRootError("Source and target folders must not be identical.")
        return source, target

    def _build_context(self, source: Path, target: Path,
                       on_progress: Optional[ProgressCallback]) -> SortContext:
        token = CancellationToken()
        return SortContext(
            source_root=source,
            target_root=target,
            config=self.config,
            token=token,
            stats=StatsAggregator(),
            extractor=MetadataExtractor(self.geocoder if self.config.geocode_enabled else None),
            organizer=FileOrganizer(target, PathResolver(self.config.unknown_folder)),
            archives=ArchiveExpander(target, self.archive_extractor, token),
            on_progress=on_progress,
        )

    def _run(self, handle: SortHandle, files: Iterator[Path],
             on_complete: Optional[CompletionCallback]) -> None:
        ctx = handle.context
        try:
            self.logger.info(f"Scanning directory: {ctx.source_root}")
            if ctx.on_progress:
                ctx.on_progress(0, 0, "Counting files...")
            jobs: List[Path] = list(files)
            ctx.stats.set_total(len(jobs))
            if ctx.token.is_cancelled:
                self.logger.info(f"Scan stopped after {len(jobs)} files")
                jobs = []
            else:
                self.logger.info(f"Found {len(jobs)} files in {ctx.source_root}")

            if jobs:
                size = self.config.worker_count()
                self.logger.info(f"Processing in parallel with {size} workers...")
                pool = WorkerPool(lambda job: process_file(ctx, job), size, ctx.token)
                pool.run(jobs)
            elif not ctx.token.is_cancelled:
                self.logger.info("No files found.")
        except Exception as e:
            self.logger.error(f"Sort run failed: {e}")
            handle.error = e
        finally:
            handle.summary = ctx.stats.snapshot()
            if ctx.on_progress:
                ctx.on_progress(handle.summary.processed, handle.summary.total_files, "Finished.")
            try:
                if on_complete:
                    on_complete(handle.summary)
            finally:
                handle._done.set()
