"""Tests for the nettap command line (nettap/cli.py)."""

from __future__ import annotations

import time
from unittest.mock import patch

import duckdb
import pytest

from nettap.cli import main
from nettap.models import PendingRequest
from nettap.store import PendingRequestStore


@pytest.fixture(autouse=True)
def _no_logging_setup():
    with patch("nettap.cli.setup_logging"):
        yield


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "nettap.toml"
    path.write_text('[store]\npath = "pending.duckdb"\n')
    return path


def _seed(path, count: int, age: float = 0) -> None:
    store = PendingRequestStore(path)
    try:
        tab = store.for_tab("9222:abc123")
        for i in range(count):
            tab.put(str(i), PendingRequest(str(i), None, "XHR", f"https://x/{i}", "GET"))
        if age:
            store._db.execute("UPDATE pending_requests SET stored_at = ?", [time.time() - age])
    finally:
        store.close()


class TestUsage:
    def test_no_command(self, capsys) -> None:
        assert main([]) == 2
        assert "nettap pages" in capsys.readouterr().out

    def test_unknown_command(self) -> None:
        assert main(["record"]) == 2

    def test_unknown_option(self) -> None:
        assert main(["--quiet", "pages"]) == 2

    def test_watch_needs_pages(self) -> None:
        assert main(["watch"]) == 2


class TestPending:
    def test_counts_entries(self, config_path, capsys) -> None:
        _seed(config_path.parent / "pending.duckdb", 3)

        assert main(["--config", str(config_path), "pending"]) == 0
        assert capsys.readouterr().out.strip() == "3"


class TestPrune:
    def test_needs_an_age(self, config_path, capsys) -> None:
        assert main(["--config", str(config_path), "prune"]) == 2
        assert "pending_ttl" in capsys.readouterr().out

    def test_evicts_old_entries(self, config_path, capsys) -> None:
        _seed(config_path.parent / "pending.duckdb", 2, age=120)

        assert main(["--config", str(config_path), "prune", "60"]) == 0
        assert "Evicted 2" in capsys.readouterr().out

    def test_uses_configured_ttl(self, tmp_path, capsys) -> None:
        path = tmp_path / "nettap.toml"
        path.write_text('[store]\npath = "pending.duckdb"\npending_ttl = 60\n')
        _seed(tmp_path / "pending.duckdb", 1, age=120)

        assert main(["--config", str(path), "prune"]) == 0
        assert "Evicted 1" in capsys.readouterr().out


class TestErrors:
    def test_bad_config_reported(self, tmp_path, capsys) -> None:
        path = tmp_path / "nettap.toml"
        path.write_text("[store\n")

        assert main(["--config", str(path), "pending"]) == 1
        assert capsys.readouterr().out.startswith("Error:")

    def test_store_locked_by_running_watch(self, config_path, capsys) -> None:
        lock_error = duckdb.IOException("IO Error: Could not set lock on file: Conflicting lock is held")
        with patch("nettap.store.duckdb.connect", side_effect=lock_error):
            assert main(["--config", str(config_path), "pending"]) == 1

        out = capsys.readouterr().out
        assert out.startswith("Error:")
        assert "in use by a running watch" in out

    def test_chrome_unreachable(self, config_path, capsys) -> None:
        with patch("nettap.cli.BrowserSession.list_pages", side_effect=RuntimeError("Failed to list pages")):
            assert main(["--config", str(config_path), "pages"]) == 1
        assert "Failed to list pages" in capsys.readouterr().out

    def test_pages_listing(self, config_path, capsys) -> None:
        pages = [{"id": "8C5F3A2B99", "title": "App", "url": "https://app.example.com"}]
        with patch("nettap.cli.BrowserSession.list_pages", return_value=pages):
            assert main(["--config", str(config_path), "pages"]) == 0
        out = capsys.readouterr().out
        assert "9222:8c5f3a" in out
        assert "https://app.example.com" in out
