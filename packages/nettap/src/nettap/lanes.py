"""Per-request-id task lanes over a shared worker pool.

Events for one request id run one after another in submit order; events for
different ids run concurrently, so a slow body fetch only holds up its own id.

PUBLIC API:
  - RequestLanes: Serial per key, concurrent across keys
"""

import logging
import threading
from collections import deque
from concurrent.futures import Executor
from typing import Any, Callable

__all__ = ["RequestLanes"]

logger = logging.getLogger(__name__)


class RequestLanes:
    """Runs submitted tasks serially per key on a shared executor.

    Attributes:
        name: Label used in log messages (usually the tab id).
    """

    def __init__(self, executor: Executor, name: str = ""):
        self.name = name
        self._executor = executor
        self._lanes: dict[str, deque] = {}
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)

    def submit(self, key: str, task: Callable[..., Any], *args: Any) -> None:
        """Queue task(*args) behind earlier tasks with the same key."""
        with self._lock:
            lane = self._lanes.get(key)
            if lane is not None:
                lane.append((task, args))
                return
            self._lanes[key] = deque([(task, args)])

        try:
            self._executor.submit(self._drain, key)
        except RuntimeError:
            # pool already shut down
            with self._lock:
                self._lanes.pop(key, None)
                self._idle.notify_all()
            logger.debug(f"Lanes {self.name} closed, dropping task for {key}")

    def _drain(self, key: str) -> None:
        while True:
            with self._lock:
                lane = self._lanes[key]
                if not lane:
                    del self._lanes[key]
                    if not self._lanes:
                        self._idle.notify_all()
                    return
                task, args = lane.popleft()

            try:
                task(*args)
            except Exception as e:
                logger.error(f"Task for {key} on {self.name} failed: {e}")

    @property
    def active(self) -> int:
        """Number of keys with queued or running work."""
        with self._lock:
            return len(self._lanes)

    def join(self, timeout: float | None = None) -> bool:
        """Wait until every lane is empty.

        Returns:
            True if idle, False on timeout
        """
        with self._idle:
            return self._idle.wait_for(lambda: not self._lanes, timeout)
