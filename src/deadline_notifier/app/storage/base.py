"""Storage interface shared by the JSON file and PostgreSQL backends."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Protocol

from deadline_notifier.app.errors import TaskValidationError
from deadline_notifier.app.models import Task, normalize_instant

Clock = Callable[[], datetime]


class TaskStorage(Protocol):
    def migrate(self) -> None: ...

    def list_tasks(self) -> list[Task]: ...

    def create_task(self, name: str, due_at: datetime) -> Task: ...

    def delete_task(self, task_id: str) -> None: ...

    def delete_past(self, now: datetime) -> int: ...

    def mark_notified(self, task_id: str) -> Task: ...


def validate_new_task(name: str, due_at: datetime, *, now: datetime) -> tuple[str, datetime]:
    """Return the cleaned `(name, due_at)` pair or raise TaskValidationError."""
    clean_name = (name or "").strip()
    if not clean_name:
        raise TaskValidationError("name must not be empty")
    clean_due_at = normalize_instant(due_at)
    if clean_due_at <= normalize_instant(now):
        raise TaskValidationError("datetime must be in the future")
    return clean_name, clean_due_at


def sort_tasks(tasks: list[Task]) -> list[Task]:
    """Ascending by due time; ties broken by numeric id so the order is stable."""
    return sorted(tasks, key=lambda task: (task.due_at, _id_sort_key(task.id)))


def _id_sort_key(task_id: str) -> tuple[int, str]:
    return (int(task_id), "") if task_id.isdigit() else (0, task_id)
