from __future__ import annotations

import json
import threading
import time
from collections.abc import Iterator
from datetime import timedelta

import httpx
import pytest
import uvicorn

from deadline_notifier.app.models import format_instant
from deadline_notifier.main import create_app


def _read_until(chunks: Iterator[str], buffer: str, done) -> str:
    """Accumulate streamed text until `done(buffer)` holds."""
    while not done(buffer):
        buffer += next(chunks)
    return buffer


def _wait_for(condition, timeout_s: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout_s
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.02)
    return condition()


@pytest.fixture
def live_server(storage, settings, clock):
    """Serve the app over real HTTP so the endless SSE body can be read incrementally."""
    live_settings = settings.model_copy(
        update={"scheduler_enabled": True, "scan_interval_s": 0.05, "heartbeat_interval_s": 0.2}
    )
    app = create_app(storage=storage, settings_override=live_settings, clock=clock)
    server = uvicorn.Server(
        uvicorn.Config(
            app,
            host="127.0.0.1",
            port=0,
            lifespan="on",
            log_level="warning",
            timeout_graceful_shutdown=1,
        )
    )
    thread = threading.Thread(target=server.run, daemon=True)
    thread.start()
    if not _wait_for(lambda: server.started or not thread.is_alive(), timeout_s=10.0) or not server.started:
        pytest.fail("uvicorn did not start")
    port = server.servers[0].sockets[0].getsockname()[1]
    try:
        yield app, f"http://127.0.0.1:{port}"
    finally:
        server.should_exit = True
        thread.join(timeout=10)


def test_events_stream_delivers_deadline_and_deregisters_on_disconnect(live_server, clock) -> None:
    app, base_url = live_server
    broadcaster = app.state.broadcaster

    with httpx.Client(base_url=base_url, timeout=5.0) as http:
        with http.stream("GET", "/events") as response:
            assert response.status_code == 200
            assert response.headers["content-type"].startswith("text/event-stream")
            assert response.headers["cache-control"] == "no-cache"

            chunks = response.iter_text()
            buffer = _read_until(chunks, "", lambda text: "\n\n" in text)
            assert buffer.startswith(": connected\n\n")
            assert broadcaster.subscriber_count == 1

            created = http.post(
                "/api/tasks",
                json={"name": "Report", "datetime": format_instant(clock.now + timedelta(seconds=2))},
            )
            assert created.status_code == 201
            task_id = created.json()["id"]

            clock.advance(3)
            buffer = _read_until(
                chunks,
                buffer,
                lambda text: "event: deadline\n" in text
                and "\n\n" in text.split("event: deadline\n", 1)[1],
            )

        frame = buffer.split("event: deadline\n", 1)[1].split("\n\n", 1)[0]
        assert frame.startswith("data: ")
        assert json.loads(frame.removeprefix("data: ")) == {
            "id": task_id,
            "name": "Report",
            "datetime": "2026-10-19T12:00:02.000Z",
        }
        assert buffer.count("event: deadline") == 1

        listed = http.get("/api/tasks").json()
        assert [(task["id"], task["notified"]) for task in listed] == [(task_id, True)]

    assert _wait_for(lambda: broadcaster.subscriber_count == 0)
