from __future__ import annotations

import logging
import time
from collections.abc import Callable

from vfs_core.observability import log_event
from vfs_core.store.object_store import ObjectStore

logger = logging.getLogger(__name__)

DEFAULT_REQUIRED_SUCCESSES = 10
DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_MAX_WAIT = 30.0


class ConsistencyWaiter:
    """Bounded wait for container creation/deletion to become visible.

    Container listings are eventually consistent: a freshly created container can be
    missing from some responses for a while (and a deleted one can linger). The waiter
    polls ``list_containers`` until the expected state is observed
    ``required_successes`` times in a row, or gives up after ``max_wait`` seconds.
    Giving up is not an error; callers carry on.
    """

    def __init__(
        self,
        *,
        required_successes: int = DEFAULT_REQUIRED_SUCCESSES,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_wait: float = DEFAULT_MAX_WAIT,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if required_successes < 1:
            raise ValueError("required_successes must be >= 1")
        self.required_successes = required_successes
        self.poll_interval = poll_interval
        self.max_wait = max_wait
        self._clock = clock
        self._sleep = sleep

    def _observed(self, store: ObjectStore, container: str) -> bool:
        return any(info.name == container for info in store.list_containers())

    def wait_for_container(self, store: ObjectStore, container: str, *, exists: bool) -> bool:
        started = self._clock()
        deadline = started + self.max_wait
        successes = 0
        polls = 0
        while True:
            polls += 1
            if self._observed(store, container) == exists:
                successes += 1
                if successes >= self.required_successes:
                    log_event(
                        logger,
                        "vfs.container.wait",
                        container=container,
                        exists=exists,
                        polls=polls,
                        outcome="consistent",
                    )
                    return True
            else:
                successes = 0

            if self._clock() >= deadline:
                log_event(
                    logger,
                    "vfs.container.wait",
                    level=logging.WARNING,
                    container=container,
                    exists=exists,
                    polls=polls,
                    waited=f"{self._clock() - started:.1f}s",
                    outcome="timeout",
                )
                return False
            self._sleep(self.poll_interval)
