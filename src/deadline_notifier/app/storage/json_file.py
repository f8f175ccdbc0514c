"""JSON file backend.

Beginner terms:
- Snapshot: the full list of tasks written to disk as one JSON array.
- Atomic replace: write to a temp file first, then rename over the real file,
  so readers never see a half-written snapshot.
- Sequence file: `<snapshot>.seq` next to the snapshot, holding the next id to
  issue so ids of deleted tasks are not handed out again after a restart.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from deadline_notifier.app.errors import StorageError, TaskNotFoundError
from deadline_notifier.app.models import Task, normalize_instant, utc_now
from deadline_notifier.app.storage.base import Clock, sort_tasks, validate_new_task

logger = logging.getLogger(__name__)


class JsonFileTaskStorage:
    """In-process task list persisted as a whole-file JSON snapshot.

    The file is read once by `migrate()`. Every mutation rewrites the entire
    file before the in-memory list is replaced, so a failed write changes
    nothing.
    """

    def __init__(self, path: Path | str, *, clock: Clock = utc_now) -> None:
        self.path = Path(path)
        self.seq_path = self.path.with_name(f"{self.path.name}.seq")
        self._clock = clock
        # Sync route handlers run in a threadpool; guard the snapshot.
        self._lock = threading.Lock()
        self._tasks: list[Task] = []
        self._next_id = 1

    def migrate(self) -> None:
        """Load the snapshot from disk. Missing file means an empty store."""
        with self._lock:
            self._tasks = self._load()
            highest = max((int(t.id) for t in self._tasks if t.id.isdigit()), default=0)
            self._next_id = max(highest + 1, self._load_sequence())
        logger.info("storage_load backend=json_file path=%s tasks=%d", self.path, len(self._tasks))

    def list_tasks(self) -> list[Task]:
        with self._lock:
            return [task.model_copy() for task in sort_tasks(self._tasks)]

    def create_task(self, name: str, due_at: datetime) -> Task:
        clean_name, clean_due_at = validate_new_task(name, due_at, now=self._clock())
        with self._lock:
            task = Task(id=str(self._next_id), name=clean_name, due_at=clean_due_at)
            # Reserve the id first: a crash after this leaves a gap, never a reuse.
            self._write_atomic(self.seq_path, str(self._next_id + 1))
            self._commit([*self._tasks, task])
            self._next_id += 1
        return task.model_copy()

    def delete_task(self, task_id: str) -> None:
        with self._lock:
            remaining = [task for task in self._tasks if task.id != task_id]
            if len(remaining) == len(self._tasks):
                raise TaskNotFoundError(task_id)
            self._commit(remaining)

    def delete_past(self, now: datetime) -> int:
        cutoff = normalize_instant(now)
        with self._lock:
            remaining = [task for task in self._tasks if task.due_at >= cutoff]
            removed = len(self._tasks) - len(remaining)
            if removed:
                self._commit(remaining)
        return removed

    def mark_notified(self, task_id: str) -> Task:
        with self._lock:
            current = next((task for task in self._tasks if task.id == task_id), None)
            if current is None:
                raise TaskNotFoundError(task_id)
            if current.notified:
                return current.model_copy()
            updated = current.model_copy(update={"notified": True})
            self._commit([updated if task.id == task_id else task for task in self._tasks])
        return updated.model_copy()

    def _load(self) -> list[Task]:
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(raw, list):
                raise ValueError("snapshot is not a JSON array")
            return [Task.model_validate(item) for item in raw]
        except (OSError, ValueError, ValidationError):
            # Same recovery as a fresh install; the next write replaces the file.
            logger.exception("storage_load event=failed path=%s", self.path)
            return []

    def _load_sequence(self) -> int:
        if not self.seq_path.exists():
            return 1
        try:
            return int(self.seq_path.read_text(encoding="utf-8").strip())
        except (OSError, ValueError):
            logger.exception("storage_load event=sequence_failed path=%s", self.seq_path)
            return 1

    def _commit(self, tasks: list[Task]) -> None:
        """Write `tasks` as the new snapshot, then adopt it in memory."""
        payload = json.dumps(
            [task.model_dump(mode="json", by_alias=True) for task in tasks],
            indent=2,
        )
        self._write_atomic(self.path, payload)
        self._tasks = tasks

    @staticmethod
    def _write_atomic(path: Path, payload: str) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise StorageError(f"failed to write {path}: {exc}") from exc
