from typing import Any


class TaskForgeError(Exception):
    """Base class for application errors."""


class TaskNotFoundError(TaskForgeError):
    """Raised when a task id is invalid or has no matching row."""

    def __init__(self, task_id: Any, message: str | None = None):
        self.task_id = task_id
        super().__init__(message or f"Task with ID {task_id} not found")

    @classmethod
    def invalid_id(cls, raw: Any) -> "TaskNotFoundError":
        return cls(raw, f"Invalid task ID: {raw}")


class CacheUnavailableError(TaskForgeError):
    """Connection-level cache failure. Never raised for a plain miss."""
