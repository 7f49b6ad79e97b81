from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from taskforge.dates import parse_datetime_input, to_utc
from taskforge.models import TaskStatus

# OFFSET and LIMIT are signed 64-bit in SQLite and PostgreSQL
MAX_ROW_OFFSET = 2**63 - 1
MAX_PAGE_SIZE = 100

api_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _coerce_due_date(value: Any) -> Any:
    """Accept `yyyy-mm-dd` or ISO datetimes; blank means no due date."""
    value = _blank_to_none(value)
    if isinstance(value, str):
        return parse_datetime_input(value)
    if isinstance(value, datetime):
        return to_utc(value)
    return value


class TaskCreate(BaseModel):
    """Schema for creating a task"""

    model_config = api_config

    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    status: TaskStatus = TaskStatus.todo
    due_date: datetime | None = None

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, value):
        return _coerce_due_date(value)


class TaskUpdate(BaseModel):
    """
    Schema for updating a task - all fields optional.

    Only fields present in the payload are applied. An explicit
    `dueDate: null` (or "") clears the due date; omitting it leaves it alone.
    """

    model_config = api_config

    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    status: TaskStatus | None = None
    due_date: datetime | None = None

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, value):
        return _coerce_due_date(value)

    def changes(self) -> dict[str, Any]:
        data = self.model_dump(exclude_unset=True)
        # title and status are not nullable
        for field in ("title", "status"):
            if field in data and data[field] is None:
                del data[field]
        return data


class TaskRead(BaseModel):
    """Snapshot of a task as returned by the API and stored in the cache."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )

    id: int
    title: str
    description: str | None = None
    status: TaskStatus
    due_date: datetime | None = None
    created_at: datetime
    updated_at: datetime

    @field_validator("due_date", "created_at", "updated_at", mode="after")
    @classmethod
    def ensure_utc(cls, value):
        # SQLite hands back naive datetimes
        return to_utc(value) if value is not None else None


class PaginatedTasks(BaseModel):
    model_config = api_config

    tasks: list[TaskRead]
    total: int
    page: int
    limit: int
    total_pages: int


class TaskQuery(BaseModel):
    """
    Query parameters for listing tasks.

    Unknown parameters are kept: every supplied field is part of the list
    cache key.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )

    status: TaskStatus | None = None
    sort: Literal["asc", "desc"] | None = None
    sort_field: str | None = None
    search: str | None = None
    title: str | None = None
    due_date: str | None = None
    page: int | None = Field(
        default=None, ge=1, le=MAX_ROW_OFFSET // MAX_PAGE_SIZE + 1
    )
    limit: int | None = Field(default=None, ge=1, le=MAX_PAGE_SIZE)
    skip: int | None = Field(default=None, ge=0, le=MAX_ROW_OFFSET)
    take: int | None = Field(default=None, ge=1, le=MAX_ROW_OFFSET)

    @field_validator(
        "sort", "sort_field", "search", "title", "due_date",
        "page", "limit", "skip", "take",
        mode="before",
    )
    @classmethod
    def blank_is_absent(cls, value):
        return _blank_to_none(value)

    @field_validator("status", mode="before")
    @classmethod
    def all_statuses(cls, value):
        value = _blank_to_none(value)
        if value == "all":
            return None
        return value

    def cache_params(self) -> dict[str, Any]:
        """The supplied parameters, as they appear on the wire."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class DeleteResult(BaseModel):
    message: str
