"""Display formatting used by the Jinja2 templates."""

from typing import Any

from utils.schedule import parse_timestamp


def format_datetime(value: Any, with_time: bool = True) -> str:
    """Format a stored timestamp for display.

    Examples:
        format_datetime("2025-01-15T10:30:00Z") -> "Jan 15, 2025 10:30"
        format_datetime("2025-01-15", with_time=False) -> "Jan 15, 2025"
        format_datetime("not a date") -> "Invalid date"
        format_datetime(None) -> "-"
    """
    if value is None or value == "":
        return "-"
    dt = parse_timestamp(value)
    if dt is None:
        return "Invalid date"
    if with_time:
        return dt.strftime("%b %d, %Y %H:%M")
    return dt.strftime("%b %d, %Y")


def format_status(status: str | None) -> str:
    """Title-case a status slug: "in_progress" -> "In Progress"."""
    if not status:
        return "-"
    return status.replace("_", " ").title()


def truncate(text: str | None, length: int = 120) -> str:
    """Shorten *text* to at most *length* characters, adding an ellipsis."""
    if not text:
        return ""
    if len(text) <= length:
        return text
    return text[: length - 1].rstrip() + "…"


def format_size(num_bytes: int) -> str:
    """Human-readable byte count: 5242880 -> "5MB", 1536 -> "1.5KB"."""
    size = float(num_bytes)
    for unit in ("B", "KB", "MB"):
        if size < 1024 or unit == "MB":
            break
        size /= 1024
    return f"{size:.1f}".rstrip("0").rstrip(".") + unit
