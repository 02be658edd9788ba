"""
Main entry point for the Media Sorter application.

This module handles user interaction and drives a sort run: it collects the
source and target folders, starts the sorter, renders progress and prints
the final summary.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from .config import SorterConfig
from .context import Summary
from .errors import MediaSorterError
from .logger import Logger
from .settings import Settings
from .sorter import MediaSorter


class MediaSorterApp:
    """
    Command line shell around ``MediaSorter``.

    Handles user interaction, remembers the last used folders and
    reports progress while the worker pool runs.
    """

    def __init__(self, config: Optional[SorterConfig] = None,
                 log_level: str = "INFO", log_file: Optional[str] = None,
                 settings_path: Optional[Path] = None):
        """
        Initialize the application.

        Args:
            config: Sorter configuration
            log_level: Logging level name
            log_file: Optional log file path
            settings_path: INI file with the last used folders
        """
        self.logger = Logger(log_level, log_file)
        self.log = self.logger.get_logger(__name__)
        self.config = config or SorterConfig()
        self.settings_path = settings_path
        self.settings = Settings.load(settings_path)
        self.sorter = MediaSorter(self.config)

    def get_user_input(self, source: Optional[str], target: Optional[str]) -> Tuple[str, str]:
        """
        Ask for whichever folder was not given on the command line.

        Returns:
            Tuple of (source_dir, target_dir)
        """
        print("\n" + "=" * 60)
        print("MEDIA SORTER")
        print("=" * 60)
        print("Files are copied into Target/YYYY/YYYY-MM/ and renamed to")
        print("'YYYY-MM-DD HH-mm-ss [Location].ext'.")
        print("Exact duplicates (same name and size) are skipped.")
        print("=" * 60)

        while not source:
            source = self._prompt("Enter source directory path", self.settings.source)
            if not Path(source).is_dir():
                print(f"Error: Directory '{source}' does not exist. Please try again.")
                source = None

        while not target:
            target = self._prompt("Enter target directory path", self.settings.target)
            if not target:
                print("Error: Target directory cannot be empty. Please try again.")
                continue
            try:
                Path(target).mkdir(parents=True, exist_ok=True)
            except OSError as e:
                print(f"Error creating target directory: {e}. Please try again.")
                target = None

        return source, target

    @staticmethod
    def _prompt(message: str, default: str) -> str:
        suffix = f" [{default}]" if default else ""
        value = input(f"\n{message}{suffix}: ").strip()
        return value or default

    def run(self, source: Optional[str] = None, target: Optional[str] = None) -> bool:
        """
        Run one sort.

        Returns:
            True if the run completed, False on fatal error or interruption
        """
        try:
            source, target = self.get_user_input(source, target)
        except (KeyboardInterrupt, EOFError):
            print("\nOperation cancelled.")
            return False

        self.settings.source, self.settings.target = source, target
        try:
            self.settings.save(self.settings_path)
        except OSError as e:
            self.log.warning(f"Could not save settings: {e}")

        progress = {"bar": None}

        def on_progress(processed: int, total: int, status: str):
            bar = progress["bar"]
            if bar is None and total > 0:
                bar = progress["bar"] = self.logger.create_progress_bar(total, "Sorting")
            if bar is not None:
                bar.n = min(processed, bar.total)
                bar.set_postfix_str(status[:40], refresh=True)

        try:
            handle = self.sorter.start_sort(source, target, on_progress=on_progress)
        except MediaSorterError as e:
            self.log.error(str(e))
            print(f"\nError: {e}")
            return False

        try:
            summary = self._wait(handle)
        finally:
            if progress["bar"] is not None:
                progress["bar"].close()

        self.logger.log_operation_summary(summary)
        if self.sorter.geocoder is not None:
            cache_stats = self.sorter.geocoder.get_cache_stats()
            self.log.info(f"Geocoding cache: {cache_stats['cache_hits']} hits, "
                          f"{cache_stats['network_calls']} lookups")
        dir_stats = handle.context.organizer.get_directory_cache_stats()
        self.log.info(f"Directories created: {dir_stats['cached_directories']}")

        if handle.error is not None:
            print("\nSorting stopped with an error. Check the log for details.")
            return False
        if handle.stop_requested:
            print("\nSorting stopped by user.")
            return False
        print("\nYour media is now organized and ready.")
        return True

    def _wait(self, handle) -> Summary:
        while True:
            try:
                summary = handle.wait(timeout=0.5)
                if summary is not None:
                    return summary
            except KeyboardInterrupt:
                print("\nStopping... waiting for files in progress.")
                handle.request_stop()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="media-sorter",
        description="Sort photos and videos into a date-based folder tree.",
    )
    parser.add_argument("source", nargs="?", help="folder to sort")
    parser.add_argument("target", nargs="?", help="root of the sorted tree")
    parser.add_argument("--workers", type=int, default=None,
                        help="number of worker threads (default: CPU count, 2-8)")
    parser.add_argument("--no-geocode", action="store_true",
                        help="do not look up place names for GPS positions")
    parser.add_argument("--log-level", default="INFO", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--log-file", default=None, help="also write the log to this file")
    return parser


def main(argv: Optional[List[str]] = None):
    """Main entry point for the application."""
    args = build_parser().parse_args(argv)
    config = SorterConfig(max_workers=args.workers, geocode_enabled=not args.no_geocode)
    try:
        app = MediaSorterApp(config, log_level=args.log_level, log_file=args.log_file)
        success = app.run(args.source, args.target)
        sys.exit(0 if success else 1)
    except Exception as e:
        print(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
