"""Tests for the DuckDB pending request store (nettap/store.py)."""

from __future__ import annotations

import time
from unittest.mock import patch

import duckdb
import pytest

from nettap.errors import StoreError
from nettap.models import PendingRequest
from nettap.store import PendingRequestStore


def _request(identifier: str = "7", url: str = "https://x/api", post_data=None) -> PendingRequest:
    return PendingRequest(
        identifier=identifier,
        timestamp=1234.5,
        resource_type="XHR",
        url=url,
        method="POST",
        post_data=post_data,
        has_post_data=post_data is not None,
    )


class TestPutGetRemove:
    def test_get_returns_stored_request(self, store) -> None:
        store.put("7", _request(post_data={"a": [1, 2]}))

        loaded = store.get("7")

        assert loaded == _request(post_data={"a": [1, 2]})

    def test_get_missing_returns_none(self, store) -> None:
        assert store.get("missing") is None

    def test_put_overwrites(self, store) -> None:
        store.put("7", _request(url="https://x/one"))
        store.put("7", _request(url="https://x/two"))

        assert store.get("7").url == "https://x/two"
        assert store.count() == 1

    def test_remove_twice_is_safe(self, store) -> None:
        store.put("7", _request())

        store.remove("7")
        store.remove("7")

        assert store.get("7") is None

    def test_remove_missing_is_noop(self, store) -> None:
        store.put("8", _request("8"))

        store.remove("7")

        assert store.count() == 1

    def test_reinsert_after_remove(self, store) -> None:
        store.put("7", _request())
        store.remove("7")
        store.put("7", _request(url="https://x/again"))

        assert store.get("7").url == "https://x/again"

    def test_contains_and_identifiers(self, store) -> None:
        store.put("1", _request("1"))
        store.put("2", _request("2"))

        assert "1" in store
        assert "3" not in store
        assert sorted(store.identifiers()) == ["1", "2"]


class TestScopes:
    def test_tabs_do_not_share_entries(self) -> None:
        root = PendingRequestStore(":memory:")
        tab_a = root.for_tab("9222:aaaaaa")
        tab_b = root.for_tab("9222:bbbbbb")

        tab_a.put("7", _request(url="https://a/api"))
        tab_b.put("7", _request(url="https://b/api"))
        tab_a.remove("7")

        assert tab_a.get("7") is None
        assert tab_b.get("7").url == "https://b/api"
        assert root.count(all_scopes=True) == 1
        root.close()


class TestDurability:
    def test_entries_survive_reopen(self, tmp_path) -> None:
        path = tmp_path / "state" / "pending.duckdb"
        first = PendingRequestStore(path).for_tab("9222:abc123")
        first.put("7", _request())
        first.close()

        second = PendingRequestStore(path).for_tab("9222:abc123")

        assert second.get("7") == _request()
        second.close()


class TestOpen:
    def test_locked_file_raises_store_error(self, tmp_path) -> None:
        lock_error = duckdb.IOException("IO Error: Could not set lock on file: Conflicting lock is held")
        with patch("nettap.store.duckdb.connect", side_effect=lock_error):
            with pytest.raises(StoreError, match="in use by a running watch"):
                PendingRequestStore(tmp_path / "pending.duckdb")


class TestEviction:
    def test_evicts_only_old_entries(self, store) -> None:
        now = time.time()
        with patch("nettap.store.time.time", return_value=now - 600):
            store.put("old", _request("old"))
        store.put("new", _request("new"))

        evicted = store.evict_older_than(300)

        assert evicted == 1
        assert store.identifiers() == ["new"]

    def test_nothing_to_evict(self, store) -> None:
        store.put("7", _request())

        assert store.evict_older_than(300) == 0
        assert "7" in store
