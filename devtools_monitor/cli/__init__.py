"""CLI module for DevTools Monitor.

This package provides the command-line interface for watching a page's
protocol traffic and validating monitor configuration files.
"""

from .main import ExitCode, app, cli_main

__all__ = [
    'ExitCode',
    'app',
    'cli_main',
]
