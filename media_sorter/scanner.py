"""
Directory scanning for the sort pipeline.

Walks a source tree and yields every regular file. Folders that cannot be
opened are skipped so one restricted directory does not halt a sort.
"""

import logging
import os
from pathlib import Path
from typing import Iterator, Optional

from .context import CancellationToken
from .errors import SourceUnreadableError

logger = logging.getLogger(__name__)


def scan(root, cancel_token: Optional[CancellationToken] = None) -> Iterator[Path]:
    """
    Enumerate regular files below ``root``.

    The root itself is checked before this function returns, so an
    unreadable source fails fast instead of on first iteration.

    Args:
        root: Directory to scan
        cancel_token: Optional token; the walk stops once it is cancelled

    Returns:
        Iterator of absolute file paths in directory-enumeration order

    Raises:
        SourceUnreadableError: If the root is missing or cannot be listed
    """
    root_path = Path(root).absolute()
    try:
        with os.scandir(root_path):
            pass
    except OSError as e:
        raise SourceUnreadableError(f"Cannot read source directory {root_path}: {e}") from e

    return _walk(root_path, cancel_token)


def _walk(root_path: Path, cancel_token: Optional[CancellationToken]) -> Iterator[Path]:
    def on_error(error: OSError):
        logger.debug(f"Skipping unreadable directory {error.filename}: {error}")

    for dirpath, _dirnames, filenames in os.walk(root_path, onerror=on_error):
        if cancel_token is not None and cancel_token.is_cancelled:
            return
        for name in filenames:
            if cancel_token is not None and cancel_token.is_cancelled:
                return
            file_path = Path(dirpath) / name
            if file_path.is_file():
                yield file_path
