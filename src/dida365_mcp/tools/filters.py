# Task filtering and sorting for list_tasks.
# Created: 2026-10-19

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any

PRESETS = ("today", "tomorrow", "thisWeek", "overdue")
SORT_FIELDS = ("dueDate", "priority", "createdTime")

_FALLBACK_FORMATS = (
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%d",
)


def parse_datetime(value: str) -> datetime:
    """Parse an ISO 8601 timestamp (Dida365 uses ``2025-11-25T17:00:00.000+0000``).

    Naive values are taken as local time. The result is timezone-aware.
    """
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        for fmt in _FALLBACK_FORMATS:
            try:
                parsed = datetime.strptime(value, fmt)
                break
            except ValueError:
                continue
        else:
            raise ValueError(f"Invalid date: {value!r}") from None
    return parsed.astimezone() if parsed.tzinfo is None else parsed


def _due(task: dict[str, Any]) -> datetime | None:
    raw = task.get("dueDate")
    if not raw:
        return None
    try:
        return parse_datetime(raw)
    except ValueError:
        return None


def _local_date(dt: datetime) -> date:
    return dt.astimezone().date()


def preset_range(preset: str, today: date | None = None) -> tuple[date, date]:
    """Inclusive local-date range for a preset. Weeks start on Sunday."""
    today = today or date.today()
    if preset == "today":
        return today, today
    if preset == "tomorrow":
        tomorrow = today + timedelta(days=1)
        return tomorrow, tomorrow
    if preset == "thisWeek":
        start = today - timedelta(days=(today.weekday() + 1) % 7)
        return start, start + timedelta(days=6)
    if preset == "overdue":
        return date.min, today - timedelta(days=1)
    raise ValueError(f"Unknown preset: {preset}")


def filter_tasks(
    tasks: list[dict[str, Any]],
    due_from: str | None = None,
    due_to: str | None = None,
    priority: list[int] | None = None,
    preset: str | None = None,
    today: date | None = None,
) -> list[dict[str, Any]]:
    """Apply preset, custom due-date range and priority filters.

    Any date filter drops tasks without a due date.
    """
    filtered = list(tasks)

    if preset:
        start, end = preset_range(preset, today)
        kept = []
        for task in filtered:
            due = _due(task)
            if due is not None and start <= _local_date(due) <= end:
                kept.append(task)
        filtered = kept

    if due_from:
        lower = parse_datetime(due_from)
        filtered = [t for t in filtered if (d := _due(t)) is not None and d >= lower]

    if due_to:
        upper = parse_datetime(due_to)
        filtered = [t for t in filtered if (d := _due(t)) is not None and d <= upper]

    if priority:
        wanted = set(priority)
        filtered = [t for t in filtered if (t.get("priority") or 0) in wanted]

    return filtered


def sort_tasks(
    tasks: list[dict[str, Any]],
    sort_by: str = "dueDate",
    sort_order: str = "asc",
) -> list[dict[str, Any]]:
    """Sort tasks; tasks without a due date sort after dated ones in ascending order."""
    if sort_by not in SORT_FIELDS:
        raise ValueError(f"Unknown sort field: {sort_by}")

    def key(task: dict[str, Any]) -> tuple:
        if sort_by == "dueDate":
            due = _due(task)
            return (due is None, due.timestamp() if due else 0.0)
        if sort_by == "priority":
            return (task.get("priority") or 0,)
        # sortOrder stands in for creation time
        return (task.get("sortOrder") or 0,)

    return sorted(tasks, key=key, reverse=sort_order == "desc")
