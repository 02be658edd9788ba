"""
Archive handling.

Archives found in the source tree are unpacked into a scratch folder under
the target root. Their members are sorted inline by the worker that found
the archive, and the scratch folder is removed afterwards.
"""

import logging
import random
import shutil
import string
import subprocess
import tarfile
import zipfile
from pathlib import Path
from typing import Callable, Iterable, Optional

from .context import CancellationToken
from .errors import ExtractionError
from .scanner import scan

logger = logging.getLogger(__name__)

_SCRATCH_ALPHABET = string.digits + string.ascii_uppercase


class Extractor:
    """Unpacks an archive into a directory."""

    def extract(self, archive_path: Path, dest_dir: Path) -> bool:
        raise NotImplementedError


class CommandExtractor(Extractor):
    """
    Unpacks with an external tool, ``tar -xf <archive> -C <dest>`` by default.

    ``tar`` ships with Windows 10+ (bsdtar, reads zip) and every Unix.
    """

    def __init__(self, command: str = "tar", timeout: Optional[float] = None):
        self.command = command
        self.timeout = timeout

    def extract(self, archive_path: Path, dest_dir: Path) -> bool:
        cmd = [self.command, "-xf", str(archive_path), "-C", str(dest_dir)]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except (FileNotFoundError, subprocess.TimeoutExpired) as e:
            logger.debug(f"{self.command} could not extract {archive_path}: {e}")
            return False

        if result.returncode != 0:
            logger.debug(f"{self.command} exited with {result.returncode} for {archive_path}: "
                         f"{result.stderr.strip()}")
            return False
        return True


def _inside(dest_dir: Path, name: str) -> bool:
    target = (dest_dir / name).resolve()
    return target == dest_dir or dest_dir in target.parents


def check_members(archive_path: Path, dest_dir: Path) -> None:
    """
    Refuse archives whose members would land outside ``dest_dir``.

    Member names with ``..`` segments or absolute paths, and tar links
    pointing out of the destination, make the whole archive invalid.

    Raises:
        ExtractionError: If a member escapes the destination
    """
    dest_dir = Path(dest_dir).resolve()
    name = Path(archive_path).name.lower()

    if name.endswith(".zip"):
        with zipfile.ZipFile(archive_path) as zf:
            names = zf.namelist()
        links = []
    else:
        with tarfile.open(archive_path) as tf:
            members = tf.getmembers()
        names = [m.name for m in members]
        links = [(m.name, m.linkname, m.issym()) for m in members if m.issym() or m.islnk()]

    for member in names:
        if not _inside(dest_dir, member):
            raise ExtractionError(f"Member {member!r} of {archive_path} escapes the extraction folder")
    for member, link, symbolic in links:
        base = (dest_dir / member).parent if symbolic else dest_dir
        if not _inside(dest_dir, str(base / link)):
            raise ExtractionError(f"Link {member!r} -> {link!r} in {archive_path} escapes the extraction folder")


class LibraryExtractor(Extractor):
    """Unpacks with ``shutil.unpack_archive`` (zip and tar family)."""

    def extract(self, archive_path: Path, dest_dir: Path) -> bool:
        try:
            self._unpack(archive_path, dest_dir)
        except ExtractionError as e:
            logger.debug(str(e))
            return False
        return True

    def _unpack(self, archive_path: Path, dest_dir: Path) -> None:
        try:
            check_members(archive_path, dest_dir)
            shutil.unpack_archive(str(archive_path), str(dest_dir))
        except (shutil.ReadError, tarfile.TarError, zipfile.BadZipFile, ValueError, OSError) as e:
            raise ExtractionError(f"Cannot unpack {archive_path}: {e}") from e


class FallbackExtractor(Extractor):
    """Tries several extractors in order until one succeeds."""

    def __init__(self, extractors: Iterable[Extractor]):
        self.extractors = list(extractors)

    def extract(self, archive_path: Path, dest_dir: Path) -> bool:
        for extractor in self.extractors:
            if extractor.extract(archive_path, dest_dir):
                return True
            # Drop partial output before the next attempt
            for child in dest_dir.iterdir():
                if child.is_dir() and not child.is_symlink():
                    shutil.rmtree(child, ignore_errors=True)
                else:
                    child.unlink(missing_ok=True)
        return False


def default_extractor(command: str = "tar") -> Extractor:
    return FallbackExtractor([CommandExtractor(command), LibraryExtractor()])


def scratch_name() -> str:
    return "_temp_" + "".join(random.choices(_SCRATCH_ALPHABET, k=8))


class ArchiveExpander:
    """
    Expands archives and feeds their members back through the pipeline.

    Args:
        target_root: Root of the output tree; scratch folders live here
        extractor: How archives are unpacked
        token: Cancellation flag checked while walking extracted members
    """

    def __init__(self, target_root, extractor: Optional[Extractor] = None,
                 token: Optional[CancellationToken] = None):
        self.logger = logging.getLogger(__name__)
        self.target_root = Path(target_root)
        self.extractor = extractor or default_extractor()
        self.token = token

    def make_scratch_dir(self) -> Path:
        while True:
            scratch = self.target_root / scratch_name()
            try:
                scratch.mkdir(parents=True)
                return scratch
            except FileExistsError:
                continue

    def expand(self, archive_path, process_member: Callable[[Path], None]) -> bool:
        """
        Unpack an archive and process every extracted file.

        Args:
            archive_path: Archive to expand
            process_member: Called with each extracted file, on this thread

        Returns:
            True if the archive was extracted, False if extraction failed
        """
        archive_path = Path(archive_path)
        scratch = self.make_scratch_dir()
        self.logger.info(f"Extracting archive: {archive_path.name}")
        try:
            if not self.extractor.extract(archive_path, scratch):
                self.logger.warning(f"Failed to extract archive: {archive_path}")
                return False

            for member in scan(scratch, self.token):
                process_member(member)
            return True
        finally:
            shutil.rmtree(scratch, ignore_errors=True)
