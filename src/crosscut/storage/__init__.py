"""Session persistence: store contract plus in-memory and SQLite backends."""

from crosscut.storage.base import SessionStore
from crosscut.storage.memory import InMemorySessionStore
from crosscut.storage.sqlite import SQLiteStore

__all__ = ["InMemorySessionStore", "SQLiteStore", "SessionStore"]
