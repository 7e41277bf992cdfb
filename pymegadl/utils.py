"""Utility functions for pymegadl."""

from pathlib import Path

# =============================================================================
# Constants for transfers
# =============================================================================

# Retry configuration for transient errors
DEFAULT_MAX_ATTEMPTS: int = 5
DEFAULT_RETRY_DELAY: float = 2.0  # seconds
DEFAULT_BACKOFF_MULTIPLIER: int = 2

# Suffix of the file content is written to before it is moved into place
TEMP_FILE_SUFFIX: str = ".megatmp"


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"


def format_percent(done: int, total: int) -> str:
    """Format transfer completion as a percentage.

    Examples:
        >>> format_percent(50, 200)
        '25.00%'
        >>> format_percent(0, 0)
        '0.00%'
    """
    if total <= 0:
        return "0.00%"
    return f"{min(done, total) * 100.0 / total:.2f}%"


# =============================================================================
# Path utilities
# =============================================================================


def join_remote_path(parent: str, name: str) -> str:
    """Join a remote path and a child name with a forward slash.

    Examples:
        >>> join_remote_path("/Photos", "a.jpg")
        '/Photos/a.jpg'
    """
    return f"{parent}/{name}"


def temp_path_for(target: Path) -> Path:
    """Return the temporary path content is written to before renaming."""
    return target.with_name(target.name + TEMP_FILE_SUFFIX)
