from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from deadline_notifier.app.broadcaster import EventBroadcaster
from deadline_notifier.app.storage import JsonFileTaskStorage
from deadline_notifier.config.settings import Settings
from deadline_notifier.main import create_app


class FakeClock:
    """Controllable stand-in for `utc_now`."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 10, 19, 12, 0, 0, tzinfo=UTC))


@pytest.fixture
def data_file(tmp_path: Path) -> Path:
    return tmp_path / "tasks.json"


@pytest.fixture
def storage(data_file: Path, clock: FakeClock) -> JsonFileTaskStorage:
    store = JsonFileTaskStorage(data_file, clock=clock)
    store.migrate()
    return store


@pytest.fixture
def broadcaster() -> EventBroadcaster:
    return EventBroadcaster(queue_size=10)


@pytest.fixture
def settings(data_file: Path) -> Settings:
    return Settings(data_file=data_file, database_url="", scheduler_enabled=False)


@pytest.fixture
def client(storage: JsonFileTaskStorage, settings: Settings, clock: FakeClock) -> TestClient:
    app = create_app(storage=storage, settings_override=settings, clock=clock)
    with TestClient(app) as test_client:
        yield test_client
