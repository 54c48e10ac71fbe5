from datetime import datetime, timedelta, timezone

import database
import main
import pytest
from fastapi.testclient import TestClient
from store import ShortlinkStore


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingSink:
    def __init__(self):
        self.events: list[tuple[str, str, str, str]] = []

    async def send(self, stack, level, package, message):
        self.events.append((stack, level, package, message))
        return {"logID": str(len(self.events))}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock) -> ShortlinkStore:
    return ShortlinkStore(clock=clock)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def client(store, sink):
    previous_sink = main.app.state.log_sink
    main.app.dependency_overrides[database.get_store] = lambda: store
    main.app.state.log_sink = sink
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()
    main.app.state.log_sink = previous_sink
