"""
Logging utilities for the gallery build
Provides console/file logging setup and run statistics
"""

import logging
import sys
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
HANDLER_MARKER = '_photogallery_handler'


class RunStats:
    """Tracks statistics for one gallery build"""

    def __init__(self):
        """Initialize run statistics"""
        self.start_time = datetime.now()
        self.total_files = 0
        self.processed_files = 0
        self.skipped_files = 0
        self.normalized_files = 0
        self.thumbnails_generated = 0
        self.thumbnails_fresh = 0
        self.thumbnails_failed = 0
        self.metadata_failures = 0
        self.added_records = 0
        self.updated_records = 0
        self.retained_records = 0
        self.pruned_records = 0
        self.manifest_records = 0
        self.warnings: List[Dict[str, Any]] = []
        # Worker threads report concurrently
        self._lock = threading.Lock()

    def set_total(self, total: int):
        """Set total number of files to process"""
        self.total_files = total

    def increment(self, counter: str, amount: int = 1):
        """Add to one of the integer counters"""
        with self._lock:
            setattr(self, counter, getattr(self, counter) + amount)

    def add_warning(self, file_path: str, message: str):
        """Record a per-file problem that did not stop the run"""
        with self._lock:
            self.warnings.append({
                'file': file_path,
                'warning': message,
                'time': datetime.now(),
            })

    def get_elapsed_time(self) -> float:
        """Get elapsed time in seconds"""
        return (datetime.now() - self.start_time).total_seconds()

    def get_summary(self) -> Dict[str, Any]:
        """Get run summary"""
        elapsed = self.get_elapsed_time()

        return {
            'total_files': self.total_files,
            'processed_files': self.processed_files,
            'skipped_files': self.skipped_files,
            'normalized_files': self.normalized_files,
            'thumbnails_generated': self.thumbnails_generated,
            'thumbnails_fresh': self.thumbnails_fresh,
            'thumbnails_failed': self.thumbnails_failed,
            'metadata_failures': self.metadata_failures,
            'added_records': self.added_records,
            'updated_records': self.updated_records,
            'retained_records': self.retained_records,
            'pruned_records': self.pruned_records,
            'manifest_records': self.manifest_records,
            'warnings': len(self.warnings),
            'elapsed_time': elapsed,
            'files_per_second': self.processed_files / elapsed if elapsed > 0 else 0,
        }

    def format_summary(self) -> str:
        """Human readable multi-line summary"""
        summary = self.get_summary()
        lines = [
            "=" * 60,
            "GALLERY BUILD SUMMARY",
            "=" * 60,
            f"Files found:      {summary['total_files']}",
            f"Processed:        {summary['processed_files']}",
            f"Skipped:          {summary['skipped_files']}",
            f"Normalized:       {summary['normalized_files']}",
            f"Thumbnails:       {summary['thumbnails_generated']} generated, "
            f"{summary['thumbnails_fresh']} up to date, {summary['thumbnails_failed']} failed",
            f"Manifest entries: {summary['manifest_records']} "
            f"({summary['added_records']} new, {summary['updated_records']} updated, "
            f"{summary['retained_records']} kept, {summary['pruned_records']} pruned)",
            f"Warnings:         {summary['warnings']}",
            f"Elapsed time:     {summary['elapsed_time']:.1f}s",
            "=" * 60,
        ]
        for warning in self.warnings[:10]:
            lines.append(f"  - {warning['file']}: {warning['warning']}")
        if len(self.warnings) > 10:
            lines.append(f"  ... and {len(self.warnings) - 10} more warnings")
        return "\n".join(lines)


def setup_console_logging(level: str = "INFO", color: bool = True,
                          log_file: Optional[Path] = None):
    """
    Setup console logging with optional color support

    Args:
        level: Logging level
        color: Whether to use colored output
        log_file: Also write plain log lines to this file
    """
    console_handler = logging.StreamHandler(sys.stdout)

    if color and sys.stdout.isatty():
        # Use colored formatter if supported
        try:
            import colorlog
            formatter = colorlog.ColoredFormatter(
                '%(log_color)s%(asctime)s - %(name)s - %(levelname)s%(reset)s - %(message)s',
                log_colors={
                    'DEBUG': 'cyan',
                    'INFO': 'green',
                    'WARNING': 'yellow',
                    'ERROR': 'red',
                    'CRITICAL': 'red,bg_white',
                }
            )
        except ImportError:
            formatter = logging.Formatter(LOG_FORMAT)
    else:
        formatter = logging.Formatter(LOG_FORMAT)

    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    # Re-running setup replaces our handlers instead of stacking them
    for handler in list(root_logger.handlers):
        if getattr(handler, HANDLER_MARKER, False):
            root_logger.removeHandler(handler)
            handler.close()

    setattr(console_handler, HANDLER_MARKER, True)
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        setattr(file_handler, HANDLER_MARKER, True)
        root_logger.addHandler(file_handler)
        logger.debug(f"Logging to {log_file}")
