"""Tests for tab identifiers (nettap/targets.py)."""

from __future__ import annotations

import pytest

from nettap.targets import make_target, matches_target, parse_target


def test_make_target_shortens_and_lowercases() -> None:
    assert make_target(9222, "8C5F3A2B1D0E") == "9222:8c5f3a"


def test_parse_target() -> None:
    assert parse_target("9333:8c5f3a") == (9333, "8c5f3a")


def test_parse_target_rejects_garbage() -> None:
    with pytest.raises(ValueError):
        parse_target("no-port")


def test_matches_target_ignores_case() -> None:
    page = {"id": "8C5F3A2B1D0E"}

    assert matches_target(9222, page, "9222:8C5F3A")
    assert not matches_target(9223, page, "9222:8c5f3a")
