"""Interview engine: the turn-level entry point.

Each inbound patient message runs through the same pipeline:

1. The safety protocol classifies it and its commit (transcript entry, merged
   flags, possible SAFETY_STOP) is written first.
2. If the session may continue and is mid-interview, the scoring orchestrator
   scores the response and commits progress, flags and the next phase.
3. The caller gets a TurnResult naming what to do next.

Calls for one conversation are serialized with a per-session asyncio.Lock that
is dropped once no call holds or waits on it; the store's version check covers
writers in other processes. Store calls inside a turn run in a worker thread so
SQLite I/O does not block other sessions on the event loop.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import Sequence
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from crosscut.config import EngineConfig
from crosscut.errors import InputValidationError, InvariantViolation
from crosscut.interview.audit import CoverageAudit, audit_session
from crosscut.interview.evidence import (
    IntegrityReport,
    InterviewerTextDetector,
    score_evidence_integrity,
)
from crosscut.interview.models import (
    EventKind,
    InterviewEvent,
    InterviewState,
    ItemResponse,
    Role,
    Session,
    SessionMeta,
    SessionPatch,
    SessionStatus,
    TranscriptEntry,
    TurnCommit,
)
from crosscut.interview.safety import SafetyCheckResult, SafetyProtocol
from crosscut.interview.scoring import (
    SCORABLE_STATES,
    ScoreRequest,
    ScoringOrchestrator,
    ScoringResult,
)
from crosscut.interview.selector import select_next_item
from crosscut.interview.state_machine import (
    EventType,
    StateEvent,
    Transitioned,
    transition,
)
from crosscut.oracles.base import ItemScorer, SafetyClassifier
from crosscut.oracles.prompts import PROMPT_VERSION, SAFETY_ESCALATION_SCRIPT
from crosscut.registry import ALL_ITEM_IDS, get_item, is_known_item
from crosscut.storage.base import SessionStore

logger = logging.getLogger(__name__)


class TurnAction(StrEnum):
    """What the caller should do after a patient turn."""

    ASK_ITEM = "ask_item"
    ASK_FOLLOW_UP = "ask_follow_up"
    GENERATE_REPORT = "generate_report"
    SAFETY_STOP = "safety_stop"
    INTERVIEW_COMPLETE = "interview_complete"


class QuestionPrompt(BaseModel):
    """The item the interviewer should ask next."""

    item_id: str
    domain: str
    text: str
    is_follow_up: bool = False
    item_number: int
    total_items: int = len(ALL_ITEM_IDS)

    model_config = ConfigDict(frozen=True)


class TurnResult(BaseModel):
    """Outcome of one patient turn."""

    action: TurnAction
    state: InterviewState
    question: QuestionPrompt | None = None
    escalation_script: str | None = None
    safety: SafetyCheckResult
    scoring: ScoringResult | None = None


def _prompt_for(session: Session, is_follow_up: bool = False) -> QuestionPrompt | None:
    item_id = session.question_state.current_item_id
    item = get_item(item_id) if item_id else None
    if item is None:
        return None
    completed = len(session.question_state.completed_items)
    return QuestionPrompt(
        item_id=item.item_id,
        domain=item.domain.value,
        text=item.text,
        is_follow_up=is_follow_up,
        item_number=completed if is_follow_up else completed + 1,
    )


class InterviewEngine:
    """Runs interview sessions against a store and two oracles."""

    def __init__(
        self,
        store: SessionStore,
        safety_classifier: SafetyClassifier,
        item_scorer: ItemScorer,
        config: EngineConfig | None = None,
        detector: InterviewerTextDetector | None = None,
    ) -> None:
        self._store = store
        self._config = config or EngineConfig()
        self._scorer = item_scorer
        self._safety = SafetyProtocol(
            safety_classifier, timeout_seconds=self._config.safety_timeout_seconds
        )
        self._orchestrator = ScoringOrchestrator(
            store, item_scorer, config=self._config, detector=detector
        )
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock(self, conversation_id: str) -> asyncio.Lock:
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = self._locks[conversation_id] = asyncio.Lock()
        return lock

    def _event(
        self,
        session: Session,
        kind: EventKind,
        phase: InterviewState,
        item_id: str | None = None,
        **detail: object,
    ) -> InterviewEvent:
        return InterviewEvent(
            kind=kind, session_id=session.id, phase=phase, item_id=item_id, detail=detail
        )

    def _item_scores(self, session: Session) -> dict[str, int]:
        return {r.item_id: r.score for r in self._store.get_item_responses(session.id)}

    async def start_session(
        self, conversation_id: str, meta: SessionMeta | None = None
    ) -> Session:
        """Create the conversation's session, or return the existing one."""
        async with self._lock(conversation_id):
            existing = await asyncio.to_thread(self._store.get_session, conversation_id)
            if existing is not None:
                return existing
            meta = meta or SessionMeta(
                model_version=self._scorer.model_name, prompt_version=PROMPT_VERSION
            )
            session = await asyncio.to_thread(self._store.create_session, conversation_id, meta)
            logger.info("Created session %s for conversation %s", session.id, conversation_id)
            return await asyncio.to_thread(
                self._store.commit_turn,
                conversation_id,
                TurnCommit(
                    events=[self._event(session, EventKind.SESSION_CREATED, session.state)],
                    expected_version=session.version,
                ),
            )

    async def next_question(self, conversation_id: str) -> QuestionPrompt | None:
        """The item to ask now, selecting and committing a new one if needed.

        Returns:
            The current or newly selected item, or None once the interview has
            reached REPORT or a terminal state.
        """
        async with self._lock(conversation_id):
            session = await asyncio.to_thread(self._store.require_session, conversation_id)
            session = await asyncio.to_thread(self._advance, session)
            state = session.state
            if state == InterviewState.FOLLOW_UP:
                return _prompt_for(session, is_follow_up=True)
            if state == InterviewState.ASK_ITEM:
                return _prompt_for(session)
            return None

    def _advance(self, session: Session) -> Session:
        """Make sure an ASK_ITEM session has a pending current item.

        INTRO starts the interview. ASK_ITEM or SCORE_ITEM without a pending
        current item selects the next one, or moves to REPORT when nothing is
        left. Other phases are returned unchanged.
        """
        qs = session.question_state
        state = session.state
        if state not in (InterviewState.INTRO, InterviewState.ASK_ITEM, InterviewState.SCORE_ITEM):
            return session
        if state == InterviewState.ASK_ITEM and qs.current_item_id in qs.pending_items:
            return session

        next_item = select_next_item(
            qs.pending_items, qs.completed_items, self._item_scores(session)
        )
        events: list[InterviewEvent] = []
        status = session.status
        completed_at: datetime | None = None

        if next_item is None:
            event = StateEvent(type=EventType.ALL_ITEMS_COMPLETE)
            status = SessionStatus.COMPLETED
            completed_at = datetime.now(UTC)
        elif state == InterviewState.INTRO:
            event = StateEvent(type=EventType.START_INTERVIEW, item_id=next_item)
            events.append(self._event(session, EventKind.INTERVIEW_STARTED, state))
        else:
            event = StateEvent(type=EventType.MOVE_TO_NEXT_ITEM, item_id=next_item)

        result = transition(qs.context, event)
        if not isinstance(result, Transitioned):
            logger.warning("Session %s: cannot advance: %s", session.id, result.reason)
            raise InvariantViolation(f"Cannot advance session {session.id}: {result.reason}")
        new_state = result.context.current_state

        if next_item is not None:
            events.append(self._event(session, EventKind.ITEM_SELECTED, new_state, next_item))
        events.append(
            self._event(
                session,
                EventKind.PHASE_CHANGED,
                new_state,
                next_item,
                **{"from": state.value, "to": new_state.value},
            )
        )
        logger.info(
            "Session %s: %s -> %s (%s)", session.id, state.value, new_state.value, next_item
        )

        return self._store.commit_turn(
            session.conversation_id,
            TurnCommit(
                patch=SessionPatch(
                    status=status,
                    question_state=qs.with_context(result.context),
                    completed_at=completed_at,
                ),
                events=events,
                expected_version=session.version,
            ),
        )

    async def record_interviewer_message(self, conversation_id: str, text: str) -> Session:
        """Append what the interviewer said to the transcript."""
        if not text.strip():
            raise InputValidationError("Interviewer message is empty")
        async with self._lock(conversation_id):
            return await asyncio.to_thread(
                self._store.append_transcript_entry,
                conversation_id,
                TranscriptEntry(role=Role.INTERVIEWER, text=text),
            )

    async def handle_patient_message(
        self,
        conversation_id: str,
        text: str,
        item_id: str | None = None,
        additional_item_ids: Sequence[str] = (),
    ) -> TurnResult:
        """Run one patient turn: safety first, then scoring, then selection.

        Args:
            conversation_id: Conversation owning the session
            text: The patient's message
            item_id: Item the message answers (defaults to the current item)
            additional_item_ids: Other items the message also addressed

        Returns:
            TurnResult with the next action.

        Raises:
            InputValidationError: Unknown item ids or empty text (nothing written)
            SessionNotFoundError: No session for the conversation
            OracleError: The scorer failed; the message stays in the transcript
                unscored and the phase is unchanged
            PersistenceError: A commit failed
        """
        if not text.strip():
            raise InputValidationError("Patient message is empty")
        unknown = [i for i in (item_id, *additional_item_ids) if i and not is_known_item(i)]
        if unknown:
            raise InputValidationError(f"Unknown item id(s): {', '.join(unknown)}")

        async with self._lock(conversation_id):
            session = await asyncio.to_thread(self._store.require_session, conversation_id)
            message_index = len(session.transcript)
            safety = await self._safety.check(session, text, message_index)
            commit = safety.commit.model_copy(
                update={"transcript_entries": [TranscriptEntry(role=Role.PATIENT, text=text)]}
            )
            session = await asyncio.to_thread(self._store.commit_turn, conversation_id, commit)

            if safety.escalation_script is not None:
                return TurnResult(
                    action=TurnAction.SAFETY_STOP,
                    state=session.state,
                    escalation_script=safety.escalation_script,
                    safety=safety,
                )

            state = session.state
            if state == InterviewState.DONE:
                return TurnResult(action=TurnAction.INTERVIEW_COMPLETE, state=state, safety=safety)
            if state == InterviewState.REPORT:
                return TurnResult(action=TurnAction.GENERATE_REPORT, state=state, safety=safety)
            if state == InterviewState.INTRO:
                session = await asyncio.to_thread(self._advance, session)
                return TurnResult(
                    action=TurnAction.ASK_ITEM,
                    state=session.state,
                    question=_prompt_for(session),
                    safety=safety,
                )
            if state not in SCORABLE_STATES:
                logger.warning("Session %s: unexpected phase %s", session.id, state.value)
                raise InvariantViolation(f"Unexpected phase {state.value}")

            primary = item_id or session.question_state.current_item_id
            if primary is None:
                logger.warning("Session %s has no current item to score", session.id)
                raise InvariantViolation(f"Session {session.id} has no current item to score")
            request = ScoreRequest(
                primary_item_id=primary,
                additional_item_ids=tuple(additional_item_ids),
                patient_text=text,
            )
            scoring = await self._orchestrator.score_response(
                conversation_id, request, message_index=message_index
            )
            return self._result_after_scoring(scoring, safety)

    def _result_after_scoring(
        self, scoring: ScoringResult, safety: SafetyCheckResult
    ) -> TurnResult:
        session = scoring.session
        state = scoring.next_state
        if state == InterviewState.SAFETY_STOP:
            return TurnResult(
                action=TurnAction.SAFETY_STOP,
                state=state,
                escalation_script=SAFETY_ESCALATION_SCRIPT,
                safety=safety,
                scoring=scoring,
            )
        if state == InterviewState.REPORT:
            return TurnResult(
                action=TurnAction.GENERATE_REPORT, state=state, safety=safety, scoring=scoring
            )
        if state == InterviewState.FOLLOW_UP:
            return TurnResult(
                action=TurnAction.ASK_FOLLOW_UP,
                state=state,
                question=_prompt_for(session, is_follow_up=True),
                safety=safety,
                scoring=scoring,
            )
        return TurnResult(
            action=TurnAction.ASK_ITEM,
            state=state,
            question=_prompt_for(session),
            safety=safety,
            scoring=scoring,
        )

    async def complete_report(self, conversation_id: str) -> Session:
        """Mark the report as delivered (REPORT -> DONE)."""
        async with self._lock(conversation_id):
            session = await asyncio.to_thread(self._store.require_session, conversation_id)
            result = transition(
                session.question_state.context, StateEvent(type=EventType.REPORT_COMPLETE)
            )
            if not isinstance(result, Transitioned):
                logger.warning("Session %s: cannot complete report: %s", session.id, result.reason)
                raise InvariantViolation(f"Cannot complete report: {result.reason}")
            logger.info("Session %s: report complete", session.id)
            return await asyncio.to_thread(
                self._store.commit_turn,
                conversation_id,
                TurnCommit(
                    patch=SessionPatch(
                        status=SessionStatus.COMPLETED,
                        question_state=session.question_state.with_context(result.context),
                        completed_at=datetime.now(UTC),
                    ),
                    events=[
                        self._event(session, EventKind.REPORT_COMPLETE, InterviewState.DONE)
                    ],
                    expected_version=session.version,
                ),
            )

    def get_session(self, conversation_id: str) -> Session:
        """Current session state."""
        return self._store.require_session(conversation_id)

    def get_item_responses(self, conversation_id: str) -> list[ItemResponse]:
        """Persisted item responses for the conversation's session."""
        session = self._store.require_session(conversation_id)
        return self._store.get_item_responses(session.id)

    def get_events(self, conversation_id: str) -> list[InterviewEvent]:
        """The session's authoritative decision log."""
        session = self._store.require_session(conversation_id)
        return self._store.get_events(session.id)

    def evidence_integrity(self, conversation_id: str) -> IntegrityReport:
        """Evidence-integrity score over the session's item responses."""
        session = self._store.require_session(conversation_id)
        return score_evidence_integrity(
            self._store.get_item_responses(session.id), session.transcript
        )

    def audit(self, conversation_id: str) -> CoverageAudit:
        """Coverage and follow-up/repeat violation counts from the event log."""
        session = self._store.require_session(conversation_id)
        return audit_session(
            self._store.get_events(session.id), self._store.get_item_responses(session.id)
        )
