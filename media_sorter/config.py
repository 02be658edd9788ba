"""
Configuration for a sort run.

All tunables of the pipeline live in one dataclass so that a shell (CLI or
GUI) can build it once and hand it to ``MediaSorter``.
"""

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

MIN_WORKERS = 2
MAX_WORKERS = 8

NOMINATIM_REVERSE_URL = "https://nominatim.openstreetmap.org/reverse"
DEFAULT_USER_AGENT = "MediaSorter/1.0"

# Nominatim usage policy allows one request per second
RATE_LIMIT_DELAY = 1.1

ARCHIVE_EXTENSIONS = (".zip", ".tar", ".tar.gz", ".tgz")


def default_worker_count() -> int:
    """
    Number of workers for the current host.

    Returns:
        ``os.cpu_count()`` clamped to the range [2, 8]
    """
    available = os.cpu_count() or MIN_WORKERS
    return max(MIN_WORKERS, min(available, MAX_WORKERS))


@dataclass
class SorterConfig:
    """
    Settings that shape one sort run.

    Attributes:
        max_workers: Worker thread count, ``None`` for the host default
        geocode_enabled: Resolve GPS coordinates to place names
        geocode_url: Reverse geocoding endpoint
        geocode_zoom: Nominatim zoom level (10 is city level)
        user_agent: User agent sent with geocoding requests
        request_timeout: Seconds before a geocoding request is abandoned
        rate_limit_delay: Seconds to hold the network lock after a request
        archive_extensions: File name endings treated as archives
        max_archive_depth: How deep archives inside archives are expanded
        extract_command: External tool used to unpack archives
        unknown_folder: Folder for files whose date cannot be determined
    """

    max_workers: Optional[int] = None
    geocode_enabled: bool = True
    geocode_url: str = NOMINATIM_REVERSE_URL
    geocode_zoom: int = 10
    user_agent: str = DEFAULT_USER_AGENT
    request_timeout: float = 10.0
    rate_limit_delay: float = RATE_LIMIT_DELAY
    archive_extensions: Tuple[str, ...] = field(default=ARCHIVE_EXTENSIONS)
    max_archive_depth: int = 3
    extract_command: str = "tar"
    unknown_folder: str = "Unknown"

    def worker_count(self) -> int:
        if self.max_workers is None:
            return default_worker_count()
        return max(1, self.max_workers)

    def is_archive(self, file_name: str) -> bool:
        name = file_name.lower()
        return any(name.endswith(ext) for ext in self.archive_extensions)
