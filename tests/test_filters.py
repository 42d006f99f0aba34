# Tests for tools/filters.py
# Created: 2026-10-19

from datetime import date

import pytest

from dida365_mcp.tools.filters import filter_tasks, parse_datetime, preset_range, sort_tasks

# Wednesday
TODAY = date(2025, 11, 26)

TASKS = [
    {"id": "yesterday", "dueDate": "2025-11-25T09:00:00", "priority": 5, "sortOrder": 3},
    {"id": "today", "dueDate": "2025-11-26T18:00:00", "priority": 1, "sortOrder": 1},
    {"id": "tomorrow", "dueDate": "2025-11-27T08:00:00", "priority": 3, "sortOrder": 2},
    {"id": "next-week", "dueDate": "2025-12-03T08:00:00", "priority": 0, "sortOrder": 5},
    {"id": "undated", "priority": 5, "sortOrder": 4},
]


def ids(tasks):
    return [t["id"] for t in tasks]


class TestParseDatetime:
    def test_dida_format(self):
        parsed = parse_datetime("2025-11-25T17:00:00.000+0000")
        assert parsed.tzinfo is not None
        assert parsed.hour == 17

    def test_naive_is_local_and_aware(self):
        assert parse_datetime("2025-11-25T17:00:00").tzinfo is not None

    def test_date_only(self):
        assert parse_datetime("2025-11-25").day == 25

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_datetime("next tuesday")


class TestPresetRange:
    def test_today_and_tomorrow(self):
        assert preset_range("today", TODAY) == (TODAY, TODAY)
        assert preset_range("tomorrow", TODAY) == (date(2025, 11, 27), date(2025, 11, 27))

    def test_week_starts_on_sunday(self):
        assert preset_range("thisWeek", TODAY) == (date(2025, 11, 23), date(2025, 11, 29))
        sunday = date(2025, 11, 23)
        assert preset_range("thisWeek", sunday) == (sunday, date(2025, 11, 29))

    def test_overdue_ends_yesterday(self):
        start, end = preset_range("overdue", TODAY)
        assert start == date.min
        assert end == date(2025, 11, 25)

    def test_unknown(self):
        with pytest.raises(ValueError):
            preset_range("someday", TODAY)


class TestFilterTasks:
    def test_presets(self):
        assert ids(filter_tasks(TASKS, preset="today", today=TODAY)) == ["today"]
        assert ids(filter_tasks(TASKS, preset="tomorrow", today=TODAY)) == ["tomorrow"]
        assert ids(filter_tasks(TASKS, preset="overdue", today=TODAY)) == ["yesterday"]
        assert ids(filter_tasks(TASKS, preset="thisWeek", today=TODAY)) == [
            "yesterday",
            "today",
            "tomorrow",
        ]

    def test_custom_range_excludes_undated(self):
        result = filter_tasks(TASKS, due_from="2025-11-26T00:00:00", due_to="2025-11-30T00:00:00")
        assert ids(result) == ["today", "tomorrow"]

    def test_priority(self):
        assert ids(filter_tasks(TASKS, priority=[5])) == ["yesterday", "undated"]
        assert ids(filter_tasks(TASKS, priority=[0])) == ["next-week"]

    def test_no_filters_keeps_everything(self):
        assert len(filter_tasks(TASKS)) == len(TASKS)


class TestSortTasks:
    def test_due_date_ascending_puts_undated_last(self):
        assert ids(sort_tasks(TASKS)) == ["yesterday", "today", "tomorrow", "next-week", "undated"]

    def test_due_date_descending(self):
        assert ids(sort_tasks(TASKS, sort_order="desc"))[1:] == [
            "next-week",
            "tomorrow",
            "today",
            "yesterday",
        ]

    def test_priority_descending(self):
        assert [t["priority"] for t in sort_tasks(TASKS, "priority", "desc")] == [5, 5, 3, 1, 0]

    def test_created_time_uses_sort_order(self):
        assert ids(sort_tasks(TASKS, "createdTime")) == [
            "today",
            "tomorrow",
            "yesterday",
            "undated",
            "next-week",
        ]

    def test_unknown_field(self):
        with pytest.raises(ValueError):
            sort_tasks(TASKS, "title")
