"""Session store contract.

Every write goes through commit_turn, which applies a TurnCommit atomically and
bumps the session version. The narrower writers (update_session,
append_transcript_entry, upsert_item_response) are thin wrappers around it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from types import TracebackType

from crosscut.errors import ConcurrentModificationError, SessionNotFoundError
from crosscut.interview.models import (
    InterviewEvent,
    ItemResponse,
    Session,
    SessionMeta,
    SessionPatch,
    TranscriptEntry,
    TurnCommit,
)


class SessionStore(ABC):
    """Persistence for interview sessions, item responses and the event log."""

    @abstractmethod
    def create_session(self, conversation_id: str, meta: SessionMeta | None = None) -> Session:
        """Create a fresh session for a conversation.

        Raises:
            InputValidationError: If the conversation already has a session
            PersistenceError: If the backend fails
        """
        ...

    @abstractmethod
    def get_session(self, conversation_id: str) -> Session | None:
        """Session owned by a conversation, or None."""
        ...

    @abstractmethod
    def get_session_by_id(self, session_id: str) -> Session | None:
        """Session by its own id, or None."""
        ...

    @abstractmethod
    def commit_turn(self, conversation_id: str, commit: TurnCommit) -> Session:
        """Apply everything a turn writes, all or nothing.

        Args:
            conversation_id: Conversation owning the session
            commit: Patch, transcript entries, item responses and events

        Returns:
            The updated session (version incremented by one).

        Raises:
            SessionNotFoundError: If the conversation has no session
            ConcurrentModificationError: If commit.expected_version is stale
            PersistenceError: If the backend fails
        """
        ...

    @abstractmethod
    def get_item_responses(self, session_id: str) -> list[ItemResponse]:
        """Latest response per item, in the order items were first scored."""
        ...

    @abstractmethod
    def get_events(self, session_id: str) -> list[InterviewEvent]:
        """The session's event log, oldest first."""
        ...

    def close(self) -> None:  # noqa: B027
        """Release backend resources."""

    def require_session(self, conversation_id: str) -> Session:
        """Like get_session, but raises SessionNotFoundError instead of returning None."""
        session = self.get_session(conversation_id)
        if session is None:
            raise SessionNotFoundError(conversation_id)
        return session

    def update_session(
        self, conversation_id: str, patch: SessionPatch, expected_version: int | None = None
    ) -> Session:
        """Apply a session patch on its own."""
        return self.commit_turn(
            conversation_id, TurnCommit(patch=patch, expected_version=expected_version)
        )

    def append_transcript_entry(self, conversation_id: str, entry: TranscriptEntry) -> Session:
        """Append one transcript entry."""
        return self.commit_turn(conversation_id, TurnCommit(transcript_entries=[entry]))

    def upsert_item_response(self, session_id: str, response: ItemResponse) -> Session:
        """Insert or overwrite the response for one item."""
        session = self.get_session_by_id(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return self.commit_turn(session.conversation_id, TurnCommit(item_responses=[response]))

    @staticmethod
    def check_version(session: Session, commit: TurnCommit) -> None:
        """Raise ConcurrentModificationError if the commit was built from a stale read."""
        if commit.expected_version is not None and commit.expected_version != session.version:
            raise ConcurrentModificationError(
                session.conversation_id, commit.expected_version, session.version
            )

    def __enter__(self) -> SessionStore:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()
