"""Error taxonomy for the interview engine.

InputValidationError: rejected before any mutation (unknown item id, bad input).
PersistenceError: the session store failed; nothing from the turn was committed.
OracleError: the safety classifier or item scorer failed or timed out.
InvariantViolation: a caller bug (e.g. scoring a terminated session).
"""

from __future__ import annotations


class CrosscutError(Exception):
    """Base error for the interview engine."""

    def __init__(self, message: str) -> None:
        """Initialize error with a message."""
        self.message = message
        super().__init__(message)


class InputValidationError(CrosscutError):
    """Malformed input or unknown item id. Raised before any state is touched."""


class SessionNotFoundError(InputValidationError):
    """No interview session exists for the given conversation."""

    def __init__(self, conversation_id: str) -> None:
        self.conversation_id = conversation_id
        super().__init__(f"No interview session found for conversation {conversation_id!r}")


class PersistenceError(CrosscutError):
    """The session store could not complete an operation."""


class ConcurrentModificationError(PersistenceError):
    """The session changed since it was read (stale version token)."""

    def __init__(self, conversation_id: str, expected: int, actual: int) -> None:
        self.conversation_id = conversation_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Session for conversation {conversation_id!r} is at version {actual}, "
            f"expected {expected}"
        )


class OracleError(CrosscutError):
    """An external classifier or scorer failed to produce a result."""


class InvariantViolation(CrosscutError):
    """An operation would break an engine invariant."""
