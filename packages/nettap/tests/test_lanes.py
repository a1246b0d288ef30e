"""Tests for per-request-id lanes (nettap/lanes.py)."""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from nettap.lanes import RequestLanes


@pytest.fixture
def pool():
    executor = ThreadPoolExecutor(max_workers=4)
    yield executor
    executor.shutdown(wait=True)


class TestRequestLanes:
    def test_same_key_runs_in_order(self, pool) -> None:
        lanes = RequestLanes(pool, "tab")
        seen: list[int] = []

        def step(n: int) -> None:
            time.sleep(0.01 * (5 - n))
            seen.append(n)

        for n in range(5):
            lanes.submit("7", step, n)

        assert lanes.join(timeout=5)
        assert seen == [0, 1, 2, 3, 4]

    def test_blocked_key_does_not_hold_others(self, pool) -> None:
        lanes = RequestLanes(pool, "tab")
        release = threading.Event()
        done = threading.Event()

        lanes.submit("1", release.wait, 5)
        lanes.submit("2", done.set)

        assert done.wait(timeout=2)
        assert lanes.active == 1
        release.set()
        assert lanes.join(timeout=5)
        assert lanes.active == 0

    def test_failing_task_keeps_lane_going(self, pool) -> None:
        lanes = RequestLanes(pool, "tab")
        seen: list[str] = []

        def boom() -> None:
            raise ValueError("boom")

        lanes.submit("7", boom)
        lanes.submit("7", seen.append, "after")

        assert lanes.join(timeout=5)
        assert seen == ["after"]

    def test_closed_pool_drops_task(self) -> None:
        executor = ThreadPoolExecutor(max_workers=1)
        executor.shutdown()
        lanes = RequestLanes(executor, "tab")
        seen: list[str] = []

        lanes.submit("7", seen.append, "never")

        assert lanes.join(timeout=1)
        assert seen == []
