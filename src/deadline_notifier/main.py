"""FastAPI application wiring for the deadline service.

Beginner terms used in this file:
- FastAPI app: the main web application object.
- Lifespan: code that runs once at startup (before the first request) and at shutdown.
- app.state: a place to store shared runtime objects (storage, broadcaster, scheduler).
- SSE: server-sent events, a long-lived text/event-stream response.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, StreamingResponse

from deadline_notifier.app.broadcaster import EventBroadcaster, event_stream
from deadline_notifier.app.errors import DeadlineNotifierError, StorageError, TaskValidationError
from deadline_notifier.app.models import (
    CreateTaskRequest,
    DeletePastResponse,
    OkResponse,
    Task,
    parse_instant,
    utc_now,
)
from deadline_notifier.app.scanner import DeadlineScanner, DeadlineScheduler
from deadline_notifier.app.storage import TaskStorage, build_storage
from deadline_notifier.app.storage.base import Clock
from deadline_notifier.app.ui import render_homepage
from deadline_notifier.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    # Stops nginx-style proxies from buffering the stream.
    "X-Accel-Buffering": "no",
}
SAMPLE_TASK_DELAY = timedelta(seconds=30)


def create_app(
    *,
    storage: TaskStorage | None = None,
    settings_override: Settings | None = None,
    clock: Clock = utc_now,
) -> FastAPI:
    """Application factory.

    Tests pass their own storage/settings/clock; production uses the
    module-level `app` built from environment settings.
    """
    settings = settings_override or get_settings()
    task_storage = storage if storage is not None else build_storage(settings, clock=clock)
    broadcaster = EventBroadcaster(queue_size=settings.subscriber_queue_size)
    scanner = DeadlineScanner(task_storage, broadcaster, clock=clock)
    scheduler = DeadlineScheduler(scanner, broadcaster, settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        task_storage.migrate()
        if settings.seed_sample_task:
            _seed_sample_task(task_storage, clock)
        if settings.scheduler_enabled:
            scheduler.start()
        try:
            yield
        finally:
            scheduler.shutdown()
            broadcaster.close()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    # Shared objects live in app.state so route handlers and tests can reach them.
    app.state.settings = settings
    app.state.storage = task_storage
    app.state.broadcaster = broadcaster
    app.state.scanner = scanner
    app.state.scheduler = scheduler

    @app.exception_handler(DeadlineNotifierError)
    async def handle_service_error(request: Request, exc: DeadlineNotifierError) -> JSONResponse:
        if isinstance(exc, StorageError):
            logger.error("request_failed path=%s error=%s", request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def handle_bad_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": "invalid request body"})

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("request_failed path=%s", request.url.path)
        return JSONResponse(status_code=500, content={"error": "internal server error"})

    @app.get("/", response_class=HTMLResponse)
    def home() -> str:
        return render_homepage(app_name=settings.app_name)

    @app.get("/health", response_model=OkResponse)
    def health() -> OkResponse:
        return OkResponse()

    @app.get("/api/tasks", response_model=list[Task])
    def list_tasks(request: Request) -> list[Task]:
        return request.app.state.storage.list_tasks()

    @app.post("/api/tasks", response_model=Task, status_code=201)
    def create_task(payload: CreateTaskRequest, request: Request) -> Task:
        if not payload.name or not payload.datetime:
            raise TaskValidationError("name and datetime required")
        try:
            due_at = parse_instant(payload.datetime)
        except ValueError:
            raise TaskValidationError("invalid datetime") from None
        task = request.app.state.storage.create_task(payload.name, due_at)
        logger.info("task event=created task_id=%s due_at=%s", task.id, task.due_at.isoformat())
        return task

    # Registered before /api/tasks/{task_id} so "past" is never read as an id.
    @app.delete("/api/tasks/past", response_model=DeletePastResponse)
    def delete_past_tasks(request: Request) -> DeletePastResponse:
        deleted = request.app.state.storage.delete_past(clock())
        logger.info("task event=deleted_past count=%d", deleted)
        return DeletePastResponse(deleted=deleted)

    @app.delete("/api/tasks/{task_id}", response_model=OkResponse)
    def delete_task(task_id: str, request: Request) -> OkResponse:
        request.app.state.storage.delete_task(task_id)
        logger.info("task event=deleted task_id=%s", task_id)
        return OkResponse()

    @app.get("/events")
    async def events(request: Request) -> StreamingResponse:
        events_broadcaster: EventBroadcaster = request.app.state.broadcaster
        subscriber = events_broadcaster.subscribe()
        return StreamingResponse(
            event_stream(events_broadcaster, subscriber),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    return app


def _seed_sample_task(storage: TaskStorage, clock: Clock) -> None:
    """Give an empty store one task due shortly, handy for manual testing."""
    if storage.list_tasks():
        return
    task = storage.create_task("Sample task", clock() + SAMPLE_TASK_DELAY)
    logger.info("task event=seeded task_id=%s due_at=%s", task.id, task.due_at.isoformat())


def run() -> None:
    """Console entry point: configure logging and serve with uvicorn."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


# Module-level app for `uvicorn deadline_notifier.main:app`.
app = create_app()
