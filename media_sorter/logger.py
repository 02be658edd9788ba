"""
Logging module for the media sorter application.

This module provides centralized logging functionality with configurable
log levels and output formats, plus the progress bar used by the CLI.
"""

import logging
import sys
from typing import Optional

from tqdm import tqdm

from .context import Summary


class Logger:
    """
    Centralized logging configuration for the media sorter application.

    Provides consistent logging across all modules with configurable
    log levels and output formats.
    """

    def __init__(self, log_level: str = "INFO", log_file: Optional[str] = None):
        """
        Initialize the logger.

        Args:
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_file: Optional log file path
        """
        self.log_level = getattr(logging, log_level.upper(), logging.INFO)
        self.log_file = log_file
        self._setup_logging()

    def _setup_logging(self):
        """Set up logging configuration."""
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        root_logger = logging.getLogger()
        root_logger.setLevel(self.log_level)
        root_logger.handlers.clear()

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(self.log_level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

        if self.log_file:
            try:
                file_handler = logging.FileHandler(self.log_file, mode='w', encoding='utf-8')
                file_handler.setLevel(self.log_level)
                file_handler.setFormatter(formatter)
                root_logger.addHandler(file_handler)
                logging.info(f"Logging to file: {self.log_file}")
            except OSError as e:
                logging.error(f"Failed to set up file logging: {e}")

        # Per-request chatter from the HTTP stack
        logging.getLogger('urllib3').setLevel(logging.WARNING)
        logging.getLogger('requests').setLevel(logging.WARNING)

        logging.debug("Logging system initialized")

    def get_logger(self, name: str) -> logging.Logger:
        """
        Get a logger instance for a specific module.

        Args:
            name: Logger name (usually __name__)

        Returns:
            Configured logger instance
        """
        return logging.getLogger(name)

    def log_operation_summary(self, summary: Summary):
        """
        Log the summary of a finished sort.

        Args:
            summary: Final counters of the run
        """
        logger = logging.getLogger(__name__)

        logger.info("=" * 50)
        logger.info("SORTING SUMMARY")
        logger.info("=" * 50)
        logger.info(f"Total files found: {summary.total_files}")
        logger.info(f"Successfully copied: {summary.succeeded}")
        logger.info(f"Skipped (duplicates/errors): {summary.skipped}")
        logger.info(f"Processed total: {summary.processed}")

        if summary.processed > 0:
            success_rate = (summary.succeeded / summary.processed) * 100
            logger.info(f"Success rate: {success_rate:.1f}%")

        logger.info("=" * 50)

    def create_progress_bar(self, total: int, desc: str = "Processing") -> Optional[tqdm]:
        """
        Create a progress bar for tracking operations.

        Args:
            total: Total number of items to process
            desc: Description for the progress bar

        Returns:
            tqdm progress bar instance, or None when there is nothing to track
        """
        if total > 0:
            return tqdm(total=total, desc=desc, unit="files", ncols=80)
        return None
