"""
Destination path derivation.

Files land in ``<target>/<YYYY>/<YYYY>-<MM>/`` under the name
``<YYYY>-<MM>-<DD> <HH>-<mm>-<ss>[ <Location>]<ext>``. Name collisions are
resolved with ``_1``, ``_2``, ... suffixes; an existing file of the same
byte size is taken to be the same file.
"""

import enum
import logging
import re
from dataclasses import dataclass
from pathlib import Path

from .metadata_extractor import FileMetadata

_INVALID_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


class Outcome(enum.Enum):
    COPY = "copy"
    SKIP_DUPLICATE = "skip_duplicate"


@dataclass(frozen=True)
class Resolution:
    destination: Path
    outcome: Outcome


def sanitize_location(location: str) -> str:
    """
    Make a place name safe to embed in a file name.

    Args:
        location: Place name as returned by the geocoder

    Returns:
        Name with path separators and reserved characters replaced by ``_``
    """
    cleaned = _INVALID_CHARS.sub('_', location)
    cleaned = re.sub(r'\s+', ' ', cleaned)
    return cleaned.strip('. ')


class PathResolver:
    """Derives destination paths and classifies name collisions."""

    def __init__(self, unknown_folder: str = "Unknown"):
        self.logger = logging.getLogger(__name__)
        self.unknown_folder = unknown_folder

    def target_directory(self, target_root: Path, metadata: FileMetadata) -> Path:
        ts = metadata.timestamp
        if ts is None:
            return Path(target_root) / self.unknown_folder
        return Path(target_root) / f"{ts.year:04d}" / f"{ts.year:04d}-{ts.month:02d}"

    def base_name(self, metadata: FileMetadata, source_path: Path) -> str:
        ts = metadata.timestamp
        if ts is None:
            return Path(source_path).stem

        name = (f"{ts.year:04d}-{ts.month:02d}-{ts.day:02d} "
                f"{ts.hour:02d}-{ts.minute:02d}-{ts.second:02d}")
        location = sanitize_location(metadata.location) if metadata.location else ""
        if location:
            name = f"{name} {location}"
        return name

    def resolve(self, target_root, metadata: FileMetadata, source_path) -> Resolution:
        """
        Pick the destination of a file.

        Probes ``base.ext``, ``base_1.ext``, ``base_2.ext`` ... and stops at
        the first name that is free (copy there) or that holds a file of the
        same size as the source (skip as duplicate).

        Args:
            target_root: Root of the output tree
            metadata: Metadata of the source file
            source_path: File being sorted

        Returns:
            Resolution with the destination path and the outcome
        """
        source_path = Path(source_path)
        directory = self.target_directory(Path(target_root), metadata)
        base = self.base_name(metadata, source_path)
        ext = source_path.suffix
        source_size = source_path.stat().st_size

        candidate = directory / f"{base}{ext}"
        counter = 0
        while candidate.exists():
            if candidate.stat().st_size == source_size:
                self.logger.debug(f"Duplicate of {candidate}: {source_path}")
                return Resolution(candidate, Outcome.SKIP_DUPLICATE)
            counter += 1
            candidate = directory / f"{base}_{counter}{ext}"

        return Resolution(candidate, Outcome.COPY)
