"""
Common Utility Functions

Provides utility helpers shared across IconRestore:
- Directory creation
- Duration formatting
- Loose value parsing for settings typed on the command line
"""

from pathlib import Path
from typing import Any, Union


def ensure_directory(path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists, creating it if necessary

    Args:
        path: Directory path

    Returns:
        Path object for the directory
    """
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def format_duration(seconds: float) -> str:
    """
    Format duration in human-readable format

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted duration string (e.g., "2m 15s")
    """
    if seconds < 0:
        return "0s"

    parts = []

    if seconds >= 3600:
        hours = int(seconds // 3600)
        parts.append(f"{hours}h")
        seconds %= 3600

    if seconds >= 60:
        minutes = int(seconds // 60)
        parts.append(f"{minutes}m")
        seconds %= 60

    if seconds >= 1:
        parts.append(f"{int(seconds)}s")
    elif not parts:
        parts.append(f"{seconds:.1f}s")

    return " ".join(parts)


def parse_bool(value: Any) -> bool:
    """
    Parse a boolean from a string such as 'true', 'yes', '1' or 'off'

    Raises:
        ValueError: If the value is not a recognised boolean
    """
    if isinstance(value, bool):
        return value

    text = str(value).strip().lower()
    if text in ('1', 'true', 'yes', 'y', 'on'):
        return True
    if text in ('0', 'false', 'no', 'n', 'off'):
        return False
    raise ValueError(f"Not a boolean value: {value!r}")
