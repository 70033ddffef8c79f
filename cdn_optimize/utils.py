"""Utility functions for the CDN image optimizer.

Provides logging setup, console output helpers, and size formatting.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler


console = Console()

PACKAGE_LOGGER = "cdn_optimize"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Configure the package logger to write through Rich.

    Calling it again only updates the level.

    Args:
        level: Logging level name (DEBUG, INFO, ...)

    Returns:
        The package logger
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level.upper())

    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(console=console, show_path=False, rich_tracebacks=True)
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        logger.addHandler(handler)
        logger.propagate = False

    return logger


def format_file_size(size_bytes: float) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted string (e.g., "1.5 MB")
    """
    for unit in ['B', 'KB', 'MB', 'GB']:
        if size_bytes < 1024:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024
    return f"{size_bytes:.1f} TB"


def format_savings(original: int, optimized: int) -> str:
    """Format the size reduction as a percentage, e.g. "-42.0%"."""
    if original <= 0:
        return "0.0%"
    change = (optimized - original) / original * 100
    return f"{change:+.1f}%"


def print_success(message: str) -> None:
    """Print a success message with checkmark."""
    console.print(f"[green]✓[/green] {message}")


def print_error(message: str) -> None:
    """Print an error message with X mark."""
    console.print(f"[red]✗[/red] {message}")


def print_warning(message: str) -> None:
    """Print a warning message with exclamation mark."""
    console.print(f"[yellow]![/yellow] {message}")
