"""SQLite session store.

Uses WAL mode for concurrent reads and stores nested models as JSON columns.
Each commit_turn runs in one transaction guarded by the session version, so a
writer holding a stale read fails instead of overwriting newer state.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from datetime import datetime
from pathlib import Path

from crosscut.errors import (
    ConcurrentModificationError,
    InputValidationError,
    PersistenceError,
    SessionNotFoundError,
)
from crosscut.interview.models import (
    EventKind,
    InterviewEvent,
    InterviewState,
    ItemResponse,
    QuestionState,
    RiskFlags,
    Session,
    SessionMeta,
    SessionStatus,
    TranscriptEntry,
    TurnCommit,
)
from crosscut.storage.base import SessionStore

_SESSION_COLUMNS = (
    "id, conversation_id, status, transcript, risk_flags, question_state, meta, "
    "created_at, updated_at, completed_at, version"
)


class SQLiteStore(SessionStore):
    """SQLite storage backend for interview sessions."""

    def __init__(self, db_path: Path) -> None:
        """Initialize store and create schema.

        Args:
            db_path: Path to SQLite database file (created if doesn't exist)
        """
        self._db_path = db_path
        self._lock = threading.Lock()
        try:
            db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA synchronous=NORMAL")
            self._create_schema()
        except (OSError, sqlite3.Error) as e:
            raise PersistenceError(f"Cannot open session database {db_path}: {e}") from e

    def _create_schema(self) -> None:
        """Create tables and indexes if they don't exist."""
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS sessions (
                id TEXT PRIMARY KEY,
                conversation_id TEXT NOT NULL UNIQUE,
                status TEXT NOT NULL,
                transcript TEXT NOT NULL DEFAULT '[]',
                risk_flags TEXT NOT NULL,
                question_state TEXT NOT NULL,
                meta TEXT NOT NULL DEFAULT '{}',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                completed_at TEXT,
                version INTEGER NOT NULL DEFAULT 0
            )
        """)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS item_responses (
                session_id TEXT NOT NULL,
                item_id TEXT NOT NULL,
                seq INTEGER NOT NULL,
                data TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                PRIMARY KEY (session_id, item_id)
            )
        """)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS events (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                session_id TEXT NOT NULL,
                kind TEXT NOT NULL,
                phase TEXT NOT NULL,
                item_id TEXT,
                timestamp TEXT NOT NULL,
                detail TEXT NOT NULL DEFAULT '{}'
            )
        """)
        self._conn.execute("CREATE INDEX IF NOT EXISTS idx_events_session_id ON events(session_id)")
        self._conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_item_responses_session_id "
            "ON item_responses(session_id)"
        )
        self._conn.commit()

    def _session_to_row(self, session: Session) -> tuple[object, ...]:
        """Convert Session to a database row tuple."""
        return (
            session.id,
            session.conversation_id,
            session.status.value,
            json.dumps([entry.model_dump(mode="json") for entry in session.transcript]),
            session.risk_flags.model_dump_json(),
            session.question_state.model_dump_json(),
            session.meta.model_dump_json(),
            session.created_at.isoformat(),
            session.updated_at.isoformat(),
            session.completed_at.isoformat() if session.completed_at else None,
            session.version,
        )

    def _row_to_session(self, row: tuple[object, ...]) -> Session:
        """Convert a database row to Session."""
        return Session(
            id=str(row[0]),
            conversation_id=str(row[1]),
            status=SessionStatus(str(row[2])),
            transcript=[TranscriptEntry.model_validate(e) for e in json.loads(str(row[3]))],
            risk_flags=RiskFlags.model_validate_json(str(row[4])),
            question_state=QuestionState.model_validate_json(str(row[5])),
            meta=SessionMeta.model_validate_json(str(row[6])),
            created_at=datetime.fromisoformat(str(row[7])),
            updated_at=datetime.fromisoformat(str(row[8])),
            completed_at=datetime.fromisoformat(str(row[9])) if row[9] is not None else None,
            version=int(str(row[10])),
        )

    def _row_to_event(self, row: tuple[object, ...]) -> InterviewEvent:
        """Convert a database row to InterviewEvent."""
        return InterviewEvent(
            session_id=str(row[0]),
            kind=EventKind(str(row[1])),
            phase=InterviewState(str(row[2])),
            item_id=str(row[3]) if row[3] is not None else None,
            timestamp=datetime.fromisoformat(str(row[4])),
            detail=json.loads(str(row[5])),
        )

    def _fetch_session(self, where: str, value: str) -> Session | None:
        cursor = self._conn.execute(
            f"SELECT {_SESSION_COLUMNS} FROM sessions WHERE {where} = ?", (value,)
        )
        row = cursor.fetchone()
        return self._row_to_session(row) if row else None

    def create_session(self, conversation_id: str, meta: SessionMeta | None = None) -> Session:
        session = Session(conversation_id=conversation_id, meta=meta or SessionMeta())
        with self._lock:
            try:
                with self._conn:
                    self._conn.execute(
                        f"INSERT INTO sessions ({_SESSION_COLUMNS}) "
                        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                        self._session_to_row(session),
                    )
            except sqlite3.IntegrityError as e:
                raise InputValidationError(
                    f"Conversation {conversation_id!r} already has an interview session"
                ) from e
            except sqlite3.Error as e:
                raise PersistenceError(f"Failed to create session: {e}") from e
        return session

    def get_session(self, conversation_id: str) -> Session | None:
        with self._lock:
            try:
                return self._fetch_session("conversation_id", conversation_id)
            except sqlite3.Error as e:
                raise PersistenceError(f"Failed to read session: {e}") from e

    def get_session_by_id(self, session_id: str) -> Session | None:
        with self._lock:
            try:
                return self._fetch_session("id", session_id)
            except sqlite3.Error as e:
                raise PersistenceError(f"Failed to read session: {e}") from e

    def commit_turn(self, conversation_id: str, commit: TurnCommit) -> Session:
        with self._lock:
            try:
                current = self._fetch_session("conversation_id", conversation_id)
                if current is None:
                    raise SessionNotFoundError(conversation_id)
                self.check_version(current, commit)
                updated = commit.apply(current)

                row = self._session_to_row(updated)
                with self._conn:
                    cursor = self._conn.execute(
                        """UPDATE sessions SET
                            status = ?, transcript = ?, risk_flags = ?, question_state = ?,
                            meta = ?, updated_at = ?, completed_at = ?, version = ?
                        WHERE id = ? AND version = ?""",
                        (*row[2:7], *row[8:], current.id, current.version),
                    )
                    if cursor.rowcount != 1:
                        # Another process committed between our read and write.
                        latest = self._fetch_session("id", current.id)
                        raise ConcurrentModificationError(
                            conversation_id,
                            current.version,
                            latest.version if latest else current.version,
                        )
                    self._write_responses(current.id, commit.item_responses)
                    self._conn.executemany(
                        """INSERT INTO events
                        (session_id, kind, phase, item_id, timestamp, detail)
                        VALUES (?, ?, ?, ?, ?, ?)""",
                        [
                            (
                                current.id,
                                event.kind.value,
                                event.phase.value,
                                event.item_id,
                                event.timestamp.isoformat(),
                                json.dumps(event.detail, default=str),
                            )
                            for event in commit.events
                        ],
                    )
            except sqlite3.Error as e:
                raise PersistenceError(f"Failed to commit turn: {e}") from e
        return updated

    def _write_responses(self, session_id: str, responses: list[ItemResponse]) -> None:
        """Upsert responses, keeping each item's original position."""
        for response in responses:
            self._conn.execute(
                """INSERT INTO item_responses (session_id, item_id, seq, data, updated_at)
                VALUES (?, ?, (SELECT COUNT(*) FROM item_responses WHERE session_id = ?), ?, ?)
                ON CONFLICT (session_id, item_id)
                DO UPDATE SET data = excluded.data, updated_at = excluded.updated_at""",
                (
                    session_id,
                    response.item_id,
                    session_id,
                    response.model_dump_json(),
                    response.updated_at.isoformat(),
                ),
            )

    def get_item_responses(self, session_id: str) -> list[ItemResponse]:
        with self._lock:
            try:
                cursor = self._conn.execute(
                    "SELECT data FROM item_responses WHERE session_id = ? ORDER BY seq ASC",
                    (session_id,),
                )
                return [ItemResponse.model_validate_json(str(row[0])) for row in cursor.fetchall()]
            except sqlite3.Error as e:
                raise PersistenceError(f"Failed to read item responses: {e}") from e

    def get_events(self, session_id: str) -> list[InterviewEvent]:
        with self._lock:
            try:
                cursor = self._conn.execute(
                    """SELECT session_id, kind, phase, item_id, timestamp, detail
                    FROM events WHERE session_id = ? ORDER BY id ASC""",
                    (session_id,),
                )
                return [self._row_to_event(row) for row in cursor.fetchall()]
            except sqlite3.Error as e:
                raise PersistenceError(f"Failed to read events: {e}") from e

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
