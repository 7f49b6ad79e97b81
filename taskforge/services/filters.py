"""Translation of list query parameters into a repository filter and order."""

from datetime import datetime
from typing import Optional, Tuple

from taskforge.dates import add_days, parse_datetime_input, start_of_day
from taskforge.repositories import SORTABLE_FIELDS, TaskFilter, TaskOrder
from taskforge.schemas import TaskQuery

DEFAULT_SORT_FIELD = "due_date"

# Wire names accepted for sortField, mapped to model attributes
_SORT_FIELD_NAMES = {
    "id": "id",
    "title": "title",
    "status": "status",
    "dueDate": "due_date",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}

DueRange = Tuple[Optional[datetime], Optional[datetime]]


def parse_due_date_filter(raw: Optional[str]) -> Optional[DueRange]:
    """
    Parse a dueDate filter into a [from, before) pair of UTC day boundaries.

    Accepted forms:
      2025-01-31              that whole day
      2025-01-01..2025-01-31  both days inclusive
      2025-01-01..            from that day on
      ..2025-01-31            up to and including that day

    Returns None (no filter) for blank or unparseable input.
    """
    if raw is None or not raw.strip():
        return None

    try:
        if ".." not in raw:
            day = start_of_day(parse_datetime_input(raw))
            return day, add_days(day, 1)

        from_raw, to_raw = (part.strip() for part in raw.split("..", 1))
        due_from = start_of_day(parse_datetime_input(from_raw)) if from_raw else None
        due_before = (
            add_days(start_of_day(parse_datetime_input(to_raw)), 1) if to_raw else None
        )
    except ValueError:
        return None

    if due_from is None and due_before is None:
        return None
    return due_from, due_before


def normalize_sort_field(sort_field: Optional[str]) -> str:
    """Map a sortField to a sortable attribute, defaulting to due_date."""
    if not sort_field:
        return DEFAULT_SORT_FIELD
    if sort_field in _SORT_FIELD_NAMES:
        return _SORT_FIELD_NAMES[sort_field]
    if sort_field in SORTABLE_FIELDS:
        return sort_field
    return DEFAULT_SORT_FIELD


def build_task_filter(query: TaskQuery) -> TaskFilter:
    due_range = parse_due_date_filter(query.due_date)
    due_from, due_before = due_range if due_range else (None, None)

    search = query.search if query.search and query.search.strip() else None
    title = query.title if query.title and query.title.strip() else None

    return TaskFilter(
        status=query.status,
        due_from=due_from,
        due_before=due_before,
        search=search,
        title=None if search else title,
    )


def build_task_order(query: TaskQuery) -> TaskOrder:
    direction = "desc" if query.sort == "desc" else "asc"
    return TaskOrder(field=normalize_sort_field(query.sort_field), direction=direction)
