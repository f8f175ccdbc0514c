"""PostgreSQL-backed storage with automatic table migration.

Beginner terms:
- Migration: creating the table before normal reads/writes.
- Row factory: returns query rows as dict-like objects instead of tuples.
- RETURNING: lets one INSERT/UPDATE/DELETE statement hand back the affected rows.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any

from deadline_notifier.app.errors import StorageError, TaskNotFoundError
from deadline_notifier.app.models import Task, normalize_instant, utc_now
from deadline_notifier.app.storage.base import Clock, validate_new_task

logger = logging.getLogger(__name__)

_MAX_SERIAL = 2**31 - 1


class PostgresTaskStorage:
    """Persist tasks in a single `tasks` table; one statement per operation."""

    def __init__(self, database_url: str, *, clock: Clock = utc_now) -> None:
        if not database_url:
            raise ValueError("DEADLINES_DATABASE_URL is required")
        self.database_url = database_url
        self._clock = clock
        self._lock = threading.Lock()
        self._psycopg, self._dict_row = self._load_psycopg()

    def migrate(self) -> None:
        """Create the table if it does not already exist."""
        self._execute("""
            CREATE TABLE IF NOT EXISTS tasks (
                id SERIAL PRIMARY KEY,
                name TEXT NOT NULL,
                datetime TIMESTAMPTZ NOT NULL,
                notified BOOLEAN NOT NULL DEFAULT FALSE
            )
            """)
        self._execute("""
            CREATE INDEX IF NOT EXISTS idx_tasks_datetime
            ON tasks(datetime)
            """)
        logger.info("storage_migrate backend=postgres")

    def list_tasks(self) -> list[Task]:
        rows = self._execute(
            "SELECT id, name, datetime, notified FROM tasks ORDER BY datetime ASC, id ASC",
            fetch="all",
        )
        return [self._row_to_task(row) for row in rows]

    def create_task(self, name: str, due_at: datetime) -> Task:
        clean_name, clean_due_at = validate_new_task(name, due_at, now=self._clock())
        row = self._execute(
            """
            INSERT INTO tasks (name, datetime, notified)
            VALUES (%s, %s, FALSE)
            RETURNING id, name, datetime, notified
            """,
            (clean_name, clean_due_at),
            fetch="one",
        )
        if row is None:
            raise StorageError("failed to persist task")
        return self._row_to_task(row)

    def delete_task(self, task_id: str) -> None:
        numeric_id = self._parse_id(task_id)
        row = None
        if numeric_id is not None:
            row = self._execute(
                "DELETE FROM tasks WHERE id = %s RETURNING id",
                (numeric_id,),
                fetch="one",
            )
        if row is None:
            raise TaskNotFoundError(task_id)

    def delete_past(self, now: datetime) -> int:
        rows = self._execute(
            "DELETE FROM tasks WHERE datetime < %s RETURNING id",
            (normalize_instant(now),),
            fetch="all",
        )
        return len(rows)

    def mark_notified(self, task_id: str) -> Task:
        numeric_id = self._parse_id(task_id)
        row = None
        if numeric_id is not None:
            row = self._execute(
                """
                UPDATE tasks
                SET notified = TRUE
                WHERE id = %s
                RETURNING id, name, datetime, notified
                """,
                (numeric_id,),
                fetch="one",
            )
        if row is None:
            raise TaskNotFoundError(task_id)
        return self._row_to_task(row)

    def _execute(self, query: str, params: tuple[Any, ...] = (), *, fetch: str | None = None) -> Any:
        """Run one statement in its own transaction, wrapping driver errors."""
        try:
            with self._lock, self._connect() as conn:
                cursor = conn.execute(query, params)
                if fetch == "one":
                    result = cursor.fetchone()
                elif fetch == "all":
                    result = cursor.fetchall()
                else:
                    result = None
                conn.commit()
        except self._psycopg.Error as exc:
            raise StorageError(f"database error: {exc}") from exc
        return result

    def _connect(self) -> Any:
        """Open a psycopg connection that yields dict-like rows."""
        return self._psycopg.connect(self.database_url, row_factory=self._dict_row)

    @staticmethod
    def _load_psycopg() -> tuple[Any, Any]:
        """Import psycopg with a friendly install hint on failure."""
        try:
            import psycopg
            from psycopg.rows import dict_row
        except ImportError as exc:  # pragma: no cover - exercised only without dependency
            raise RuntimeError(
                "PostgreSQL storage requires psycopg. "
                'Install with: python -m pip install "psycopg[binary]>=3.2,<4.0"'
            ) from exc
        return psycopg, dict_row

    @staticmethod
    def _parse_id(task_id: str) -> int | None:
        # Ids come from a SERIAL (int4) column; anything else cannot exist.
        if not task_id.isdigit():
            return None
        value = int(task_id)
        return value if value <= _MAX_SERIAL else None

    @staticmethod
    def _parse_datetime(raw: Any) -> datetime:
        """Parse datetime value from database driver output."""
        if isinstance(raw, datetime):
            return normalize_instant(raw)
        if isinstance(raw, str):
            return normalize_instant(datetime.fromisoformat(raw))
        raise TypeError(f"Unsupported datetime value: {type(raw)!r}")

    @classmethod
    def _row_to_task(cls, row: Any) -> Task:
        """Map one DB row to the canonical Task model."""
        return Task(
            id=str(row["id"]),
            name=row["name"],
            due_at=cls._parse_datetime(row["datetime"]),
            notified=bool(row["notified"]),
        )
