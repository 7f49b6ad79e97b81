from datetime import datetime, timezone

import pytest

from taskforge.models import TaskStatus
from taskforge.schemas import TaskQuery
from taskforge.services.filters import (
    build_task_filter,
    build_task_order,
    normalize_sort_field,
    parse_due_date_filter,
)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class TestDueDateFilter:
    def test_single_day(self):
        assert parse_due_date_filter("2025-01-31") == (utc(2025, 1, 31), utc(2025, 2, 1))

    def test_datetime_is_truncated_to_its_day(self):
        assert parse_due_date_filter("2025-01-31T18:30:00Z") == (
            utc(2025, 1, 31),
            utc(2025, 2, 1),
        )

    def test_full_range_is_inclusive_of_both_days(self):
        assert parse_due_date_filter("2025-01-01..2025-01-31") == (
            utc(2025, 1, 1),
            utc(2025, 2, 1),
        )

    def test_open_ended_ranges(self):
        assert parse_due_date_filter("2025-01-01..") == (utc(2025, 1, 1), None)
        assert parse_due_date_filter("..2025-01-31") == (None, utc(2025, 2, 1))

    def test_whitespace_around_range_parts(self):
        assert parse_due_date_filter(" 2025-01-01 .. 2025-01-02 ") == (
            utc(2025, 1, 1),
            utc(2025, 1, 3),
        )

    @pytest.mark.parametrize(
        "raw", [None, "", "   ", "..", "tomorrow", "2025-13-01", "2025-01-01..soon", "x..2025-01-01"]
    )
    def test_blank_or_unparseable_input_means_no_filter(self, raw):
        assert parse_due_date_filter(raw) is None


class TestSortField:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("id", "id"),
            ("title", "title"),
            ("status", "status"),
            ("dueDate", "due_date"),
            ("createdAt", "created_at"),
            ("updatedAt", "updated_at"),
            ("created_at", "created_at"),
        ],
    )
    def test_allowed_fields(self, raw, expected):
        assert normalize_sort_field(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "description", "password", "__class__"])
    def test_anything_else_defaults_to_due_date(self, raw):
        assert normalize_sort_field(raw) == "due_date"

    def test_direction_is_ascending_unless_desc(self):
        assert build_task_order(TaskQuery()).direction == "asc"
        assert build_task_order(TaskQuery(sort="asc")).direction == "asc"
        assert build_task_order(TaskQuery(sort="desc")).descending is True


class TestBuildFilter:
    def test_search_wins_over_title(self):
        task_filter = build_task_filter(TaskQuery(search="milk", title="bread"))

        assert task_filter.search == "milk"
        assert task_filter.title is None

    def test_title_alone(self):
        task_filter = build_task_filter(TaskQuery(title="bread"))

        assert task_filter.search is None
        assert task_filter.title == "bread"

    def test_status_and_due_range(self):
        task_filter = build_task_filter(
            TaskQuery.model_validate({"status": "done", "dueDate": "2025-03-01.."})
        )

        assert task_filter.status is TaskStatus.done
        assert task_filter.due_from == utc(2025, 3, 1)
        assert task_filter.due_before is None

    def test_bad_due_date_is_dropped_not_rejected(self):
        task_filter = build_task_filter(TaskQuery.model_validate({"dueDate": "someday"}))

        assert task_filter.due_from is None
        assert task_filter.due_before is None

    def test_status_all_means_any(self):
        assert build_task_filter(TaskQuery.model_validate({"status": "all"})).status is None
