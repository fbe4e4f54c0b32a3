"""
Utilities for the gallery build.

Provides logging setup, run statistics and atomic file writes.
"""

from .files import atomic_write
from .logging import RunStats, setup_console_logging

__all__ = [
    'RunStats',
    'atomic_write',
    'setup_console_logging',
]
