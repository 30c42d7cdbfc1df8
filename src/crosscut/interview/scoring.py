"""Scoring orchestration.

plan_turn is the pure decision function: given the session, the request and
the scorer's output it builds the single TurnCommit for the turn (item
responses, progress, merged risk flags, next phase, event log entries).
ScoringOrchestrator wraps it with the oracle call and the store commit, so a
failed or timed-out scorer leaves the session exactly as it was.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from crosscut.config import EngineConfig
from crosscut.errors import InputValidationError, InvariantViolation, OracleError
from crosscut.interview.evidence import (
    MAX_SPANS,
    InterviewerTextDetector,
    assert_evidence_sound,
    ensure_valid_evidence,
    extract_evidence_spans,
)
from crosscut.interview.models import (
    EventKind,
    InterviewEvent,
    InterviewState,
    ItemResponse,
    QuestionState,
    Role,
    Session,
    SessionPatch,
    SessionStatus,
    StateContext,
    TranscriptEntry,
    TurnCommit,
)
from crosscut.interview.selector import select_next_item
from crosscut.interview.state_machine import (
    EventType,
    StateEvent,
    Transitioned,
    should_trigger_follow_up,
    transition,
)
from crosscut.oracles.base import ItemScore, ItemScorer, ScoringOutput
from crosscut.registry import is_known_item
from crosscut.storage.base import SessionStore

logger = logging.getLogger(__name__)

SCORABLE_STATES = frozenset(
    {InterviewState.ASK_ITEM, InterviewState.FOLLOW_UP, InterviewState.SCORE_ITEM}
)


class ScoreRequest(BaseModel):
    """One patient response to score: the item asked plus any others it addressed."""

    primary_item_id: str
    additional_item_ids: tuple[str, ...] = ()
    patient_text: str

    model_config = ConfigDict(frozen=True)

    @property
    def item_ids(self) -> list[str]:
        """Primary first, then additional ids, without duplicates."""
        return list(dict.fromkeys((self.primary_item_id, *self.additional_item_ids)))

    def validate_items(self) -> None:
        """Raise InputValidationError for unknown ids or an empty response."""
        unknown = [i for i in self.item_ids if not is_known_item(i)]
        if unknown:
            raise InputValidationError(f"Unknown item id(s): {', '.join(unknown)}")
        if not self.patient_text.strip():
            raise InputValidationError("Patient response is empty")


class TurnPlan(BaseModel):
    """Outcome of plan_turn, not yet committed."""

    commit: TurnCommit
    item_responses: list[ItemResponse]
    should_follow_up: bool
    next_state: InterviewState
    next_item_id: str | None = None
    status: SessionStatus
    dropped_item_ids: list[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class ScoringResult(BaseModel):
    """Committed outcome of scoring one response."""

    session: Session
    item_responses: list[ItemResponse]
    should_follow_up: bool
    next_state: InterviewState
    next_item_id: str | None = None
    dropped_item_ids: list[str] = Field(default_factory=list)


def _violation(message: str) -> InvariantViolation:
    """Log an invariant breach and build the error to raise."""
    logger.warning("%s", message)
    return InvariantViolation(message)


def _step(context: StateContext, event: StateEvent) -> StateContext:
    result = transition(context, event)
    if not isinstance(result, Transitioned):
        raise _violation(f"Cannot apply {event.type.value}: {result.reason}")
    return result.context


def _select_scores(
    output: ScoringOutput, requested: list[str]
) -> tuple[dict[str, ItemScore], list[str]]:
    """Scores for requested items (first entry wins), plus the dropped ids."""
    kept: dict[str, ItemScore] = {}
    dropped: list[str] = []
    for score in output.per_item:
        if score.item_id not in requested:
            dropped.append(score.item_id)
        elif score.item_id in kept:
            logger.warning("Scorer returned %s twice; keeping the first", score.item_id)
        else:
            kept[score.item_id] = score
    if dropped:
        logger.warning("Dropping scores for items that were not requested: %s", dropped)
    return kept, dropped


def plan_turn(
    session: Session,
    request: ScoreRequest,
    output: ScoringOutput,
    message_index: int,
    existing_scores: Mapping[str, int] | None = None,
    config: EngineConfig | None = None,
    detector: InterviewerTextDetector | None = None,
    now: datetime | None = None,
) -> TurnPlan:
    """Decide everything one scored turn writes.

    Args:
        session: Session as read before the turn
        request: Items addressed and the patient's text
        output: Scorer output for the request
        message_index: Transcript index of the patient message being scored
        existing_scores: Latest persisted score per item
        config: Follow-up thresholds
        detector: Interviewer-text predicate for evidence extraction
        now: Commit timestamp

    Returns:
        TurnPlan holding the TurnCommit and the decisions behind it.

    Raises:
        InputValidationError: Unknown item ids or empty text
        InvariantViolation: The session is not in a scorable phase, or the
            message index does not point at a patient message
        OracleError: The scorer did not score the primary item
    """
    config = config or EngineConfig()
    now = now or datetime.now(UTC)
    request.validate_items()

    state = session.state
    if session.is_safety_stopped or state not in SCORABLE_STATES:
        raise _violation(f"Cannot score a response in {state.value}")
    if not 0 <= message_index < len(session.transcript):
        raise _violation(f"Message index {message_index} is outside the transcript")
    message = session.transcript[message_index]
    if message.role != Role.PATIENT:
        raise _violation(f"Message {message_index} is not a patient message")
    if message.text != request.patient_text:
        raise _violation(f"Message {message_index} does not hold the scored response")

    context = session.question_state.context
    if state != InterviewState.SCORE_ITEM:
        context = _step(context, StateEvent(type=EventType.PATIENT_RESPONDED))

    scores, dropped = _select_scores(output, request.item_ids)
    primary = request.primary_item_id
    if primary not in scores:
        raise OracleError(f"Scorer returned no score for {primary}")

    responses: list[ItemResponse] = []
    events: list[InterviewEvent] = []
    for item_id in request.item_ids:
        score = scores.get(item_id)
        if score is None:
            logger.warning("Scorer returned no score for additional item %s", item_id)
            continue
        evidence = extract_evidence_spans(
            request.patient_text,
            score.evidence_quotes,
            message_index,
            summary=score.evidence_summary,
            detector=detector,
        )
        evidence = ensure_valid_evidence(evidence, request.patient_text, item_id)
        assert_evidence_sound(evidence, session.transcript)
        responses.append(
            ItemResponse(
                item_id=item_id,
                score=score.score,
                ambiguity=score.ambiguity,
                evidence_quotes=list(score.evidence_quotes)[:MAX_SPANS],
                evidence=evidence,
                confidence=score.confidence,
                reasoning=score.reasoning or None,
                updated_at=now,
            )
        )
        events.append(
            InterviewEvent(
                kind=EventKind.ITEM_SCORED,
                session_id=session.id,
                phase=context.current_state,
                item_id=item_id,
                timestamp=now,
                detail={
                    "score": score.score,
                    "ambiguity": score.ambiguity,
                    "evidence_type": evidence.type.value,
                    "primary": item_id == primary,
                    "follow_up_answer": context.is_follow_up,
                },
            )
        )

    progress = session.question_state.with_completed([r.item_id for r in responses])
    primary_score = scores[primary]
    follow_up = should_trigger_follow_up(
        context,
        primary,
        primary_score.score,
        primary_score.ambiguity,
        ambiguity_threshold=config.follow_up_ambiguity_threshold,
        score_threshold=config.follow_up_score_threshold,
    )

    risk_patch = output.risk_flags_patch
    status = session.status
    completed_at: datetime | None = None
    next_item: str | None = None

    if risk_patch.critical:
        context = _step(context, StateEvent(type=EventType.SAFETY_TRIGGERED))
        status = SessionStatus.TERMINATED_FOR_SAFETY
        events.append(
            InterviewEvent(
                kind=EventKind.SAFETY_STOP,
                session_id=session.id,
                phase=InterviewState.SAFETY_STOP,
                item_id=primary,
                timestamp=now,
                detail={"source": "scoring", "risk_flags": risk_patch.model_dump()},
            )
        )
    elif not progress.pending_items:
        context = _step(context, StateEvent(type=EventType.ALL_ITEMS_COMPLETE))
        status = SessionStatus.COMPLETED
        completed_at = now
    elif follow_up:
        context = _step(context, StateEvent(type=EventType.TRIGGER_FOLLOW_UP, item_id=primary))
        events.append(
            InterviewEvent(
                kind=EventKind.FOLLOW_UP_STARTED,
                session_id=session.id,
                phase=InterviewState.FOLLOW_UP,
                item_id=primary,
                timestamp=now,
            )
        )
    else:
        all_scores = dict(existing_scores or {})
        all_scores.update({r.item_id: r.score for r in responses})
        next_item = select_next_item(progress.pending_items, progress.completed_items, all_scores)
        context = _step(context, StateEvent(type=EventType.MOVE_TO_NEXT_ITEM, item_id=next_item))
        events.append(
            InterviewEvent(
                kind=EventKind.ITEM_SELECTED,
                session_id=session.id,
                phase=InterviewState.ASK_ITEM,
                item_id=next_item,
                timestamp=now,
            )
        )

    events.append(
        InterviewEvent(
            kind=EventKind.PHASE_CHANGED,
            session_id=session.id,
            phase=context.current_state,
            item_id=context.current_item_id or primary,
            timestamp=now,
            detail={"from": state.value, "to": context.current_state.value},
        )
    )

    question_state: QuestionState = progress.with_context(context)
    commit = TurnCommit(
        patch=SessionPatch(
            status=status,
            risk_flags=risk_patch,
            question_state=question_state,
            completed_at=completed_at,
        ),
        item_responses=responses,
        events=events,
        expected_version=session.version,
    )
    return TurnPlan(
        commit=commit,
        item_responses=responses,
        should_follow_up=follow_up,
        next_state=context.current_state,
        next_item_id=next_item,
        status=status,
        dropped_item_ids=dropped,
    )


def find_patient_message(transcript: list[TranscriptEntry], text: str) -> int | None:
    """Index of the latest patient entry with exactly this text."""
    for index in range(len(transcript) - 1, -1, -1):
        entry = transcript[index]
        if entry.role == Role.PATIENT and entry.text == text:
            return index
    return None


class ScoringOrchestrator:
    """Scores a patient response through the scorer oracle and commits the turn."""

    def __init__(
        self,
        store: SessionStore,
        scorer: ItemScorer,
        config: EngineConfig | None = None,
        detector: InterviewerTextDetector | None = None,
    ) -> None:
        self._store = store
        self._scorer = scorer
        self._config = config or EngineConfig()
        self._detector = detector

    async def _call_scorer(
        self, request: ScoreRequest, context: list[TranscriptEntry]
    ) -> ScoringOutput:
        try:
            return await asyncio.wait_for(
                self._scorer.score_items(request.item_ids, request.patient_text, context),
                timeout=self._config.scoring_timeout_seconds,
            )
        except TimeoutError as e:
            raise OracleError(
                f"Item scorer timed out after {self._config.scoring_timeout_seconds}s"
            ) from e
        except OracleError:
            raise
        except Exception as e:
            raise OracleError(f"Item scorer failed: {e}") from e

    async def score_response(
        self,
        conversation_id: str,
        request: ScoreRequest,
        message_index: int | None = None,
    ) -> ScoringResult:
        """Score a response that is already in the transcript and commit the result.

        Args:
            conversation_id: Conversation owning the session
            request: Items addressed and the patient's text
            message_index: Transcript index of the response (defaults to the
                latest patient entry with the same text)

        Returns:
            ScoringResult with the committed session.

        Raises:
            InputValidationError: Unknown item ids or empty text (nothing written)
            InvariantViolation: The session is not in a scorable phase
            OracleError: The scorer failed or timed out (nothing written)
            PersistenceError: The commit failed (nothing written)
        """
        request.validate_items()
        session = await asyncio.to_thread(self._store.require_session, conversation_id)
        if session.is_safety_stopped or session.state not in SCORABLE_STATES:
            raise _violation(f"Cannot score a response in {session.state.value}")

        if message_index is None:
            message_index = find_patient_message(session.transcript, request.patient_text)
            if message_index is None:
                raise _violation("Patient response is not in the transcript")

        limit = self._config.context_messages
        recent = session.transcript[max(0, message_index - limit) : message_index]
        output = await self._call_scorer(request, recent)

        responses = await asyncio.to_thread(self._store.get_item_responses, session.id)
        existing = {r.item_id: r.score for r in responses}
        plan = plan_turn(
            session,
            request,
            output,
            message_index,
            existing_scores=existing,
            config=self._config,
            detector=self._detector,
        )
        updated = await asyncio.to_thread(self._store.commit_turn, conversation_id, plan.commit)
        logger.info(
            "Session %s: scored %s, %s -> %s",
            session.id,
            ", ".join(r.item_id for r in plan.item_responses),
            session.state.value,
            plan.next_state.value,
        )
        return ScoringResult(
            session=updated,
            item_responses=plan.item_responses,
            should_follow_up=plan.should_follow_up,
            next_state=plan.next_state,
            next_item_id=plan.next_item_id,
            dropped_item_ids=plan.dropped_item_ids,
        )
