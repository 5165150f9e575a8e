"""Date-window helpers for scheduled main page configurations.

Provides:
  - parse_timestamp(): lenient ISO-8601 parsing, always returning aware UTC
  - select_active_configuration(): pick the configuration to display now
  - configuration_status(): derived scheduled / active / expired label
  - validate_window(): start/end checks applied when a window is saved
  - find_overlaps(): scheduled configurations whose windows intersect

Configurations are duck-typed: anything with ``start_date``, ``end_date``
and ``is_default`` attributes (pydantic models in the API, simple namespaces
in tests).  Naive timestamps are interpreted as UTC.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Iterable, Sequence

STATUS_DEFAULT = "default"
STATUS_SCHEDULED = "scheduled"
STATUS_ACTIVE = "active"
STATUS_EXPIRED = "expired"
STATUS_INVALID = "invalid"


def utc_now() -> datetime:
    """Wall-clock now as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse *value* into an aware UTC datetime, or ``None`` if unparseable.

    Accepts datetime/date objects and ISO-8601 strings, including date-only
    strings ("2025-01-15"), HTML datetime-local values ("2025-01-15T10:30")
    and a trailing "Z".
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    try:
        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)
    except (OverflowError, ValueError):
        # offsets that push the value past year 1 or 9999
        return None


def _window(config: Any) -> tuple[datetime, datetime] | None:
    start = parse_timestamp(getattr(config, "start_date", None))
    end = parse_timestamp(getattr(config, "end_date", None))
    if start is None or end is None:
        return None
    return start, end


def is_active(config: Any, now: datetime) -> bool:
    """True when ``start <= now <= end``; malformed windows never match."""
    window = _window(config)
    if window is None:
        return False
    now_utc = parse_timestamp(now)
    if now_utc is None:
        return False
    start, end = window
    return start <= now_utc <= end


def select_active_configuration(now: datetime, default: Any,
                                scheduled: Iterable[Any]) -> Any:
    """Return the configuration to display at *now*.

    The first scheduled configuration (in the order supplied) whose window
    contains *now* wins; otherwise *default* is returned.  Callers supply the
    list in fetch order, newest first, so the most recently created of several
    overlapping configurations is the one displayed.
    """
    for config in scheduled:
        if is_active(config, now):
            return config
    return default


def configuration_status(config: Any, now: datetime) -> str:
    if getattr(config, "is_default", False):
        return STATUS_DEFAULT
    window = _window(config)
    now_utc = parse_timestamp(now)
    if window is None or now_utc is None:
        return STATUS_INVALID
    start, end = window
    if now_utc < start:
        return STATUS_SCHEDULED
    if now_utc <= end:
        return STATUS_ACTIVE
    return STATUS_EXPIRED


def validate_window(start_date: Any, end_date: Any, now: datetime,
                    require_future_end: bool = True) -> tuple[datetime, datetime]:
    """Check a window before it is saved.

    Raises:
        ValueError: if either bound is missing or malformed, if the start is
            not strictly before the end, or (when *require_future_end*) if the
            end has already passed.
    """
    start = parse_timestamp(start_date)
    end = parse_timestamp(end_date)
    if start is None or end is None:
        raise ValueError("Start and end dates are required and must be valid ISO-8601 dates.")
    if start >= end:
        raise ValueError("End date must be after start date.")
    if require_future_end and end <= parse_timestamp(now):
        raise ValueError("End date must be in the future.")
    return start, end


def find_overlaps(config_id: str | None, start_date: Any, end_date: Any,
                  scheduled: Sequence[Any]) -> list[str]:
    """Ids of scheduled configurations (other than *config_id*) whose windows
    intersect ``[start_date, end_date]``."""
    start = parse_timestamp(start_date)
    end = parse_timestamp(end_date)
    if start is None or end is None:
        return []
    overlaps: list[str] = []
    for other in scheduled:
        if getattr(other, "id", None) == config_id:
            continue
        window = _window(other)
        if window is None:
            continue
        other_start, other_end = window
        if other_start <= end and start <= other_end:
            overlaps.append(other.id)
    return overlaps
