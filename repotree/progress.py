"""
Progress reporting utilities for repotree.

Provides consistent progress reporting that respects piping and redirection.
Progress and errors go to stderr; stdout stays clean for data.
"""

import sys
import os
from typing import Optional
from enum import Enum


class LogLevel(Enum):
    """Log levels for progress messages."""
    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3
    SUCCESS = 4


class ProgressReporter:
    """Handles progress reporting to stderr while keeping stdout clean for data."""

    def __init__(self, enabled: Optional[bool] = None, force_tty: bool = False,
                 use_colors: Optional[bool] = None):
        """
        Initialize progress reporter.

        Args:
            enabled: Explicitly enable/disable progress. None = auto-detect
            force_tty: Treat stderr as TTY even if it's not (for testing)
            use_colors: Use ANSI colors in output
        """
        if enabled is None:
            # Auto-detect: show progress if stderr is a terminal
            self.enabled = sys.stderr.isatty() or force_tty
        else:
            self.enabled = enabled

        # Auto-detect color support
        if use_colors is None:
            self.use_colors = sys.stderr.isatty() and os.environ.get('NO_COLOR') is None
        else:
            self.use_colors = use_colors

        # Color codes
        self.colors = {
            'reset': '\033[0m',
            'dim': '\033[2m',
            'red': '\033[31m',
            'green': '\033[32m',
            'yellow': '\033[33m',
        }

    def _colorize(self, text: str, color: str) -> str:
        """Add color to text if colors are enabled."""
        if self.use_colors and color in self.colors:
            return f"{self.colors[color]}{text}{self.colors['reset']}"
        return text

    def __call__(self, message: str, force: bool = False, level: LogLevel = LogLevel.INFO):
        """
        Output progress message to stderr if enabled.

        Args:
            message: Progress message to display
            force: Force output even if disabled
            level: Log level for the message
        """
        if force or self.enabled:
            if level == LogLevel.ERROR:
                message = self._colorize(f"✗ {message}", 'red')
            elif level == LogLevel.WARNING:
                message = self._colorize(f"⚠ {message}", 'yellow')
            elif level == LogLevel.SUCCESS:
                message = self._colorize(f"✓ {message}", 'green')
            elif level == LogLevel.DEBUG:
                message = self._colorize(f"  {message}", 'dim')

            print(message, file=sys.stderr, flush=True)

    def error(self, message: str):
        """Always output errors to stderr."""
        error_msg = self._colorize(f"ERROR: {message}", 'red')
        print(error_msg, file=sys.stderr, flush=True)

    def warning(self, message: str):
        """Output warnings to stderr if enabled."""
        if self.enabled:
            warning_msg = self._colorize(f"WARNING: {message}", 'yellow')
            print(warning_msg, file=sys.stderr, flush=True)

    def success(self, message: str):
        """Output success message if enabled."""
        if self.enabled:
            self(message, level=LogLevel.SUCCESS)


# Global progress reporter instance
_progress = None


def get_progress(enabled: Optional[bool] = None) -> ProgressReporter:
    """
    Get the global progress reporter.

    Args:
        enabled: Override auto-detection of progress display

    Returns:
        ProgressReporter instance
    """
    global _progress
    if _progress is None or enabled is not None:
        _progress = ProgressReporter(enabled)
    return _progress


# Environment variable override
if os.environ.get('REPOTREE_PROGRESS') == '0':
    _progress = ProgressReporter(enabled=False)
elif os.environ.get('REPOTREE_PROGRESS') == '1':
    _progress = ProgressReporter(enabled=True)
