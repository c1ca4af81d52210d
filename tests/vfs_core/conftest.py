from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from vfs_core.fs.consistency import ConsistencyWaiter
from vfs_core.testing.memory_store import InMemoryObjectStore


class StepClock:
    """Returns a strictly increasing UTC timestamp on every call."""

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(seconds=1)) -> None:
        self.current = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.step = step

    def __call__(self) -> datetime:
        self.current += self.step
        return self.current


@pytest.fixture
def store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def clocked_store(clock: StepClock) -> InMemoryObjectStore:
    return InMemoryObjectStore(clock=clock)


@pytest.fixture
def waiter() -> ConsistencyWaiter:
    return ConsistencyWaiter(required_successes=1, poll_interval=0.0, max_wait=0.0)
