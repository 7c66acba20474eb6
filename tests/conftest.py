"""Shared test fixtures."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from src.dashboard.client import ListingClient
from src.health.cache import MemoryCache


def make_user(uid: int, created_at: str, /, **overrides: Any) -> dict[str, Any]:
    user = {
        "id": uid,
        "name": f"User {uid}",
        "email": f"user{uid}@example.com",
        "created_at": created_at,
    }
    user.update(overrides)
    return user


@pytest.fixture
def user_factory():
    """Build a valid user record; keyword overrides replace fields."""
    return make_user


@pytest.fixture
def now() -> datetime:
    return datetime(2024, 3, 15, 12, 0, 0)


@pytest.fixture
def scenario_records() -> list[dict[str, Any]]:
    """Newest-first listing: A..G valid, H missing email."""
    return [
        make_user(1, "2024-03-15T11:00:00", name="A"),
        make_user(2, "2024-03-15T09:00:00", name="B"),
        make_user(3, "2024-03-13T08:00:00", name="C"),
        make_user(4, "2024-03-10T08:00:00", name="D"),
        make_user(5, "2024-03-01T08:00:00", name="E"),
        make_user(6, "2024-02-20T08:00:00", name="F"),
        make_user(7, "2024-01-01T08:00:00", name="G"),
        make_user(8, "2024-03-15T10:00:00", name="H", email=""),
    ]


@pytest.fixture
def listing_client() -> MagicMock:
    """A ListingClient stand-in whose fetch_users is scripted per test."""
    return MagicMock(spec=ListingClient)


@pytest.fixture
def memory_cache() -> MemoryCache:
    return MemoryCache()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    path = tmp_path / "app.db"
    conn = sqlite3.connect(str(path))
    conn.execute("CREATE TABLE users (id INTEGER PRIMARY KEY)")
    conn.commit()
    conn.close()
    return path
