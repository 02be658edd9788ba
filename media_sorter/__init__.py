"""
Media Sorter Package

A Python package for sorting media files into a date-based folder tree.
Reads capture dates and GPS positions from photos and videos, reverse
geocodes positions to place names, and copies each file to
Target/YYYY/YYYY-MM/ under a deterministic, collision-safe name.
"""

__version__ = "1.0.0"
__author__ = "Media Sorter Team"

from .config import SorterConfig
from .context import CancellationToken, StatsAggregator, Summary
from .errors import ExtractionError, InvalidRootError, MediaSorterError, SourceUnreadableError
from .file_organizer import FileOrganizer
from .geocoder import GeocodeResolver
from .logger import Logger
from .metadata_extractor import FileMetadata, MetadataExtractor
from .path_resolver import Outcome, PathResolver
from .sorter import MediaSorter, SortHandle

__all__ = [
    "SorterConfig",
    "CancellationToken",
    "StatsAggregator",
    "Summary",
    "MediaSorterError",
    "InvalidRootError",
    "SourceUnreadableError",
    "ExtractionError",
    "FileOrganizer",
    "GeocodeResolver",
    "Logger",
    "FileMetadata",
    "MetadataExtractor",
    "Outcome",
    "PathResolver",
    "MediaSorter",
    "SortHandle",
]
