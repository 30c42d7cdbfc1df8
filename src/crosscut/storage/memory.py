"""In-memory session store, for tests and single-process use."""

from __future__ import annotations

import threading

from crosscut.errors import InputValidationError, SessionNotFoundError
from crosscut.interview.models import (
    InterviewEvent,
    ItemResponse,
    Session,
    SessionMeta,
    TurnCommit,
)
from crosscut.storage.base import SessionStore


class InMemorySessionStore(SessionStore):
    """Dict-backed store. Commits are copy-on-write under a lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sessions: dict[str, Session] = {}
        self._ids: dict[str, str] = {}
        self._responses: dict[str, dict[str, ItemResponse]] = {}
        self._events: dict[str, list[InterviewEvent]] = {}

    def create_session(self, conversation_id: str, meta: SessionMeta | None = None) -> Session:
        with self._lock:
            if conversation_id in self._sessions:
                raise InputValidationError(
                    f"Conversation {conversation_id!r} already has an interview session"
                )
            session = Session(conversation_id=conversation_id, meta=meta or SessionMeta())
            self._sessions[conversation_id] = session
            self._ids[session.id] = conversation_id
            self._responses[session.id] = {}
            self._events[session.id] = []
            return session.model_copy(deep=True)

    def get_session(self, conversation_id: str) -> Session | None:
        with self._lock:
            session = self._sessions.get(conversation_id)
            return session.model_copy(deep=True) if session else None

    def get_session_by_id(self, session_id: str) -> Session | None:
        with self._lock:
            conversation_id = self._ids.get(session_id)
            if conversation_id is None:
                return None
            return self._sessions[conversation_id].model_copy(deep=True)

    def commit_turn(self, conversation_id: str, commit: TurnCommit) -> Session:
        with self._lock:
            current = self._sessions.get(conversation_id)
            if current is None:
                raise SessionNotFoundError(conversation_id)
            self.check_version(current, commit)

            # Build everything first so a failure leaves the store untouched.
            updated = commit.apply(current)
            responses = dict(self._responses[current.id])
            for response in commit.item_responses:
                responses[response.item_id] = response
            events = [*self._events[current.id], *commit.events]

            self._sessions[conversation_id] = updated
            self._responses[current.id] = responses
            self._events[current.id] = events
            return updated.model_copy(deep=True)

    def get_item_responses(self, session_id: str) -> list[ItemResponse]:
        with self._lock:
            return list(self._responses.get(session_id, {}).values())

    def get_events(self, session_id: str) -> list[InterviewEvent]:
        with self._lock:
            return list(self._events.get(session_id, []))
