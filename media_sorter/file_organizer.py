"""
File organization module for media files.

This module places files into the date-partitioned target tree: it resolves
the destination name, creates the directory and copies the file.
"""

import logging
import shutil
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List

from .metadata_extractor import FileMetadata
from .path_resolver import Outcome, PathResolver, Resolution


class FileOrganizer:
    """
    Copies files into the target tree.

    Resolution and copy of one derived name happen under a lock keyed by
    that name, so two workers sorting equally named files cannot both
    claim the same destination.
    """

    def __init__(self, destination_root, resolver: PathResolver = None):
        """
        Initialize the file organizer.

        Args:
            destination_root: Root directory for organized files
            resolver: Path resolver, a default one when omitted
        """
        self.logger = logging.getLogger(__name__)
        self.destination_root = Path(destination_root)
        self.resolver = resolver or PathResolver()

        # Cache for created directories to avoid repeated mkdir calls
        self._directory_cache = set()
        # name -> [lock, number of workers holding or waiting for it]
        self._name_locks: Dict[str, List] = {}
        self._locks_guard = threading.Lock()

    def organize_file(self, source_path, metadata: FileMetadata) -> Resolution:
        """
        Sort one file into the target tree.

        Args:
            source_path: Source file path
            metadata: Metadata extracted for the file

        Returns:
            The resolution; on ``Outcome.COPY`` the file has been copied

        Raises:
            OSError: If the directory cannot be created or the copy fails
        """
        source_path = Path(source_path)
        directory = self.resolver.target_directory(self.destination_root, metadata)
        name_key = str(directory / self.resolver.base_name(metadata, source_path))

        with self._name_lock(name_key):
            resolution = self.resolver.resolve(self.destination_root, metadata, source_path)
            if resolution.outcome is Outcome.SKIP_DUPLICATE:
                self.logger.info(f"Skipped (duplicate): {source_path} -> {resolution.destination}")
                return resolution

            self._ensure_directory(resolution.destination.parent)
            try:
                shutil.copy2(source_path, resolution.destination)
            except OSError:
                # Never leave a truncated file at the destination
                resolution.destination.unlink(missing_ok=True)
                raise

        self.logger.info(f"Copied: {source_path} -> {resolution.destination}")
        return resolution

    @contextmanager
    def _name_lock(self, name_key: str) -> Iterator[None]:
        with self._locks_guard:
            entry = self._name_locks.setdefault(name_key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._name_locks[name_key]

    def _ensure_directory(self, directory: Path) -> None:
        key = str(directory)
        if key in self._directory_cache:
            return
        directory.mkdir(parents=True, exist_ok=True)
        self.logger.debug(f"Created directory: {directory}")
        self._directory_cache.add(key)

    def get_directory_cache_stats(self) -> Dict[str, int]:
        """
        Get directory cache statistics.

        Returns:
            Dictionary with cache statistics
        """
        return {
            'cached_directories': len(self._directory_cache),
        }
