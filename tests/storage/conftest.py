"""Fixtures that run the store contract against every backend."""

from collections.abc import Iterator
from pathlib import Path

import pytest

from crosscut.storage import InMemorySessionStore, SessionStore, SQLiteStore


@pytest.fixture(params=["memory", "sqlite"])
def any_store(request: pytest.FixtureRequest, tmp_path: Path) -> Iterator[SessionStore]:
    """Each backend in turn."""
    store: SessionStore
    if request.param == "memory":
        store = InMemorySessionStore()
    else:
        store = SQLiteStore(tmp_path / "sessions.db")
    with store:
        yield store
