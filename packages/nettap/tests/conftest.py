"""Shared test fixtures for nettap tests."""

from __future__ import annotations

from typing import Any

import pytest

from nettap.body import BodyResolver
from nettap.correlator import EventCorrelator
from nettap.dispatch import Dispatcher
from nettap.errors import BodyFetchError
from nettap.models import NetworkEventRecord
from nettap.store import PendingRequestStore

TAB = "9222:abc123"


class FakeFetcher:
    """Body fetcher answering from dicts; missing ids raise BodyFetchError."""

    def __init__(
        self,
        request_bodies: dict[str, Any] | None = None,
        response_bodies: dict[str, tuple[Any, bool]] | None = None,
    ) -> None:
        self.request_bodies = request_bodies or {}
        self.response_bodies = response_bodies or {}
        self.calls: list[tuple[str, str, str]] = []

    def fetch_request_body(self, tab_id: str, identifier: str) -> Any:
        self.calls.append(("request", tab_id, identifier))
        if identifier not in self.request_bodies:
            raise BodyFetchError(identifier, "No post data available for the request")
        return self.request_bodies[identifier]

    def fetch_response_body(self, tab_id: str, identifier: str) -> tuple[Any, bool]:
        self.calls.append(("response", tab_id, identifier))
        if identifier not in self.response_bodies:
            raise BodyFetchError(identifier, "No resource with given identifier found")
        return self.response_bodies[identifier]


class FakeTransport:
    """Transport recording records; accepts unless told otherwise."""

    def __init__(self, accept: bool = True) -> None:
        self.accept = accept
        self.records: list[NetworkEventRecord] = []

    def post_event(self, record: NetworkEventRecord) -> bool:
        self.records.append(record)
        return self.accept


def request_event(
    request_id: str = "7",
    resource_type: str = "Fetch",
    url: str = "https://x/api",
    method: str = "GET",
    post_data: str | None = None,
    has_post_data: bool = False,
    timestamp: float = 1234.5,
) -> dict:
    request: dict[str, Any] = {"url": url, "method": method}
    if post_data is not None:
        request["postData"] = post_data
    if has_post_data:
        request["hasPostData"] = True
    return {"requestId": request_id, "type": resource_type, "timestamp": timestamp, "request": request}


def response_event(request_id: str = "7", status: int = 200, resource_type: str = "Fetch") -> dict:
    return {"requestId": request_id, "type": resource_type, "response": {"status": status}}


@pytest.fixture
def store():
    root = PendingRequestStore(":memory:")
    yield root.for_tab(TAB)
    root.close()


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def correlator(store, fetcher, transport) -> EventCorrelator:
    return EventCorrelator(TAB, store, BodyResolver(fetcher), Dispatcher(transport))
