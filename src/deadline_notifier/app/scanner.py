"""Periodic deadline scan and the recurring jobs that drive it."""

from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from starlette.concurrency import run_in_threadpool

from deadline_notifier.app.broadcaster import EventBroadcaster
from deadline_notifier.app.models import Task, utc_now
from deadline_notifier.app.storage.base import Clock, TaskStorage
from deadline_notifier.config.settings import Settings

logger = logging.getLogger(__name__)

DEADLINE_EVENT = "deadline"


class DeadlineScanner:
    """Marks elapsed tasks as notified and announces each one once.

    Order inside a tick follows `due_at`. Marking happens before the event is
    sent; if the process dies between the two, that event is lost.
    """

    def __init__(
        self,
        storage: TaskStorage,
        broadcaster: EventBroadcaster,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._storage = storage
        self._broadcaster = broadcaster
        self._clock = clock
        # Ids already announced by this process, kept even when the mark failed.
        self._announced: set[str] = set()

    async def tick(self) -> list[Task]:
        """Run one scan and return the tasks announced. Store failures are logged, not raised."""
        now = self._clock()
        try:
            tasks = await run_in_threadpool(self._storage.list_tasks)
        except Exception:  # noqa: BLE001
            logger.exception("deadline_scan event=list_failed")
            return []

        pending_ids = {task.id for task in tasks if not task.notified}
        self._announced &= pending_ids
        due = [
            task
            for task in tasks
            if not task.notified and task.due_at <= now and task.id not in self._announced
        ]

        announced: list[Task] = []
        for task in due:
            try:
                await run_in_threadpool(self._storage.mark_notified, task.id)
            except Exception:  # noqa: BLE001
                logger.exception("deadline_scan event=mark_failed task_id=%s", task.id)
            self._announced.add(task.id)
            delivered = self._broadcaster.broadcast(DEADLINE_EVENT, task.event_payload())
            logger.info(
                "deadline_scan event=notified task_id=%s name=%s delivered=%d",
                task.id,
                task.name,
                delivered,
            )
            announced.append(task.model_copy(update={"notified": True}))
        return announced


class DeadlineScheduler:
    """Owns the two recurring jobs: deadline scan and SSE keep-alive."""

    SCAN_JOB_ID = "deadline-scan"
    HEARTBEAT_JOB_ID = "sse-heartbeat"

    def __init__(
        self,
        scanner: DeadlineScanner,
        broadcaster: EventBroadcaster,
        settings: Settings,
    ) -> None:
        self._scanner = scanner
        self._broadcaster = broadcaster
        self._settings = settings
        self._scheduler = AsyncIOScheduler(timezone="UTC")
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Register both jobs and start; must be called from inside the event loop."""
        self._scheduler.add_job(
            self._scanner.tick,
            IntervalTrigger(seconds=self._settings.scan_interval_s),
            id=self.SCAN_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.add_job(
            self._send_heartbeat,
            IntervalTrigger(seconds=self._settings.heartbeat_interval_s),
            id=self.HEARTBEAT_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        self._running = True
        logger.info(
            "scheduler event=started scan_interval_s=%s heartbeat_interval_s=%s",
            self._settings.scan_interval_s,
            self._settings.heartbeat_interval_s,
        )

    def shutdown(self) -> None:
        if self._running:
            self._scheduler.shutdown(wait=False)
            self._running = False
            logger.info("scheduler event=stopped")

    async def _send_heartbeat(self) -> None:
        self._broadcaster.heartbeat()
