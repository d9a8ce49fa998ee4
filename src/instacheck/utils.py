import logging
import os
import re
import time
from typing import Optional

logger = logging.getLogger(__name__)


def normalize_key(value) -> str:
    """
    Turn a raw cell value into a lookup key.

    Args:
        value: Cell value (any type, None allowed)

    Returns:
        str: Trimmed string, empty for a missing cell
    """
    if value is None:
        return ""
    return str(value).strip()


def cell_to_text(value) -> str:
    """Render a cell for the verbatim payload; missing cells become ''."""
    if value is None:
        return ""
    return str(value)


def format_duration(seconds: int) -> str:
    """
    Format duration in human-readable format.

    Args:
        seconds: Duration in seconds

    Returns:
        str: Formatted duration string
    """
    if seconds < 60:
        return f"{seconds}s"
    elif seconds < 3600:
        minutes = seconds // 60
        remaining_seconds = seconds % 60
        return f"{minutes}m {remaining_seconds}s"
    else:
        hours = seconds // 3600
        remaining_minutes = (seconds % 3600) // 60
        return f"{hours}h {remaining_minutes}m"


def truncate_string(text: str, max_length: int = 50) -> str:
    """
    Truncate string if it's too long.

    Args:
        text: Text to truncate
        max_length: Maximum length

    Returns:
        str: Truncated string with ellipsis if needed
    """
    if len(text) <= max_length:
        return text
    return text[:max_length - 3] + "..."


def timestamp_slug(ts: Optional[float] = None) -> str:
    """Compact local timestamp usable in file names, e.g. 20260119T101502."""
    return time.strftime('%Y%m%dT%H%M%S', time.localtime(ts if ts is not None else time.time()))


def source_name(path: Optional[str]) -> str:
    """Base name of an input file without extension, safe for file names."""
    if not path:
        return "input"
    base = os.path.splitext(os.path.basename(path))[0]
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "_", base).strip("._")
    return cleaned or "input"
