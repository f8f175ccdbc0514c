"""Storage backends for deadline tasks."""

from __future__ import annotations

import logging

from deadline_notifier.app.models import utc_now
from deadline_notifier.app.storage.base import Clock, TaskStorage, validate_new_task
from deadline_notifier.app.storage.json_file import JsonFileTaskStorage
from deadline_notifier.app.storage.postgres import PostgresTaskStorage
from deadline_notifier.config.settings import Settings

logger = logging.getLogger(__name__)

__all__ = [
    "JsonFileTaskStorage",
    "PostgresTaskStorage",
    "TaskStorage",
    "build_storage",
    "validate_new_task",
]


def build_storage(settings: Settings, *, clock: Clock = utc_now) -> TaskStorage:
    """Pick the backend once at startup: PostgreSQL when a URL is set, else the JSON file."""
    database_url = settings.resolved_database_url()
    if database_url:
        logger.info("storage_select backend=postgres")
        return PostgresTaskStorage(database_url, clock=clock)
    logger.info("storage_select backend=json_file path=%s", settings.data_file)
    return JsonFileTaskStorage(settings.data_file, clock=clock)
