"""
Exception types raised by the media sorter.

Only failures that abort a whole run are raised to callers. Per-file
problems are caught inside the pipeline and counted as skipped.
"""


class MediaSorterError(Exception):
    """Base exception for the application."""


class InvalidRootError(MediaSorterError):
    """Raised when the source or target root fails validation."""


class SourceUnreadableError(MediaSorterError):
    """Raised when the source root cannot be enumerated at all."""


class ExtractionError(MediaSorterError):
    """Raised by an archive extractor when unpacking fails."""
