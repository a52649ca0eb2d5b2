"""Utility functions for grove.

This package provides utility modules:
- logging: Logging configuration and logger creation
- paths: Path containment checks and branch-to-directory naming
- process: Process liveness checks for stale lock detection
- dates: Duration parsing and age formatting for stale worktrees
"""

from .logging import setup_logging, get_logger, ColoredFormatter
from .paths import is_within, normalize_path, sanitize_branch_name
from .process import is_process_running
from .dates import format_age, parse_duration

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "ColoredFormatter",
    # Paths
    "is_within",
    "normalize_path",
    "sanitize_branch_name",
    # Processes
    "is_process_running",
    # Dates
    "parse_duration",
    "format_age",
]
