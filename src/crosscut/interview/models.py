"""Interview session data models.

A Session is owned by exactly one conversation. Every turn reads it, builds a
TurnCommit, and hands that to the store, which applies it atomically. Partial
updates are explicit structs (RiskFlagsPatch, SessionPatch) with one merge
function each, so there is no free-form dict patching anywhere.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from crosscut.errors import InvariantViolation
from crosscut.registry.items import ALL_ITEM_IDS


def _now() -> datetime:
    return datetime.now(UTC)


class SessionStatus(StrEnum):
    """Lifecycle status of an interview session."""

    ACTIVE = "active"
    COMPLETED = "completed"
    TERMINATED_FOR_SAFETY = "terminated_for_safety"


class InterviewState(StrEnum):
    """Interview phases. DONE and SAFETY_STOP are terminal."""

    INTRO = "INTRO"
    ASK_ITEM = "ASK_ITEM"
    SCORE_ITEM = "SCORE_ITEM"
    FOLLOW_UP = "FOLLOW_UP"
    REPORT = "REPORT"
    DONE = "DONE"
    SAFETY_STOP = "SAFETY_STOP"


class Role(StrEnum):
    """Speaker of a transcript entry."""

    PATIENT = "patient"
    INTERVIEWER = "interviewer"


class TranscriptEntry(BaseModel):
    """One message in the append-only session transcript."""

    role: Role
    text: str
    timestamp: datetime = Field(default_factory=_now)

    model_config = ConfigDict(frozen=True)


class RiskFlagsPatch(BaseModel):
    """Partial risk-flag update. None means "not asserted by this patch"."""

    suicidality_mentioned: bool | None = None
    self_harm_ideation: bool | None = None
    violence_risk: bool | None = None
    substance_abuse_signal: bool | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def critical(self) -> bool:
        """True if the patch asserts suicidality, self-harm or violence."""
        return bool(self.suicidality_mentioned or self.self_harm_ideation or self.violence_risk)

    @property
    def is_empty(self) -> bool:
        """True if the patch asserts nothing."""
        return not (
            self.suicidality_mentioned
            or self.self_harm_ideation
            or self.violence_risk
            or self.substance_abuse_signal
        )


class RiskFlags(BaseModel):
    """Session safety signals. Monotonic: a flag never goes back to False."""

    suicidality_mentioned: bool = False
    self_harm_ideation: bool = False
    violence_risk: bool = False
    substance_abuse_signal: bool = False

    model_config = ConfigDict(frozen=True)

    def merge(self, patch: RiskFlagsPatch | None) -> RiskFlags:
        """OR-merge a patch into these flags."""
        if patch is None:
            return self
        return RiskFlags(
            suicidality_mentioned=self.suicidality_mentioned or bool(patch.suicidality_mentioned),
            self_harm_ideation=self.self_harm_ideation or bool(patch.self_harm_ideation),
            violence_risk=self.violence_risk or bool(patch.violence_risk),
            substance_abuse_signal=(
                self.substance_abuse_signal or bool(patch.substance_abuse_signal)
            ),
        )

    @property
    def any_critical(self) -> bool:
        """True if any critical flag (suicidality, self-harm, violence) is set."""
        return self.suicidality_mentioned or self.self_harm_ideation or self.violence_risk


class EvidenceType(StrEnum):
    """How a score is supported by the transcript."""

    DIRECT_SPAN = "direct_span"
    INFERRED = "inferred"
    NONE = "none"


class Span(BaseModel):
    """Character range [start, end) in a transcript message."""

    start: int = Field(ge=0)
    end: int = Field(ge=0)

    model_config = ConfigDict(frozen=True)


class EvidenceSpan(BaseModel):
    """Structured evidence for one item score."""

    type: EvidenceType
    message_index: int = Field(ge=0)
    spans: list[Span] = Field(default_factory=list, max_length=3)
    strength: float = Field(ge=0.0, le=1.0)
    summary: str | None = None

    model_config = ConfigDict(frozen=True)


class ItemResponse(BaseModel):
    """Persisted score for one item. One per item per session; re-scoring overwrites."""

    item_id: str
    score: int = Field(ge=0, le=4)
    ambiguity: int = Field(ge=1, le=10)
    evidence_quotes: list[str] = Field(default_factory=list, max_length=3)
    evidence: EvidenceSpan | None = None
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    reasoning: str | None = None
    updated_at: datetime = Field(default_factory=_now)

    model_config = ConfigDict(frozen=True)


class StateContext(BaseModel):
    """The slice of question state the state machine reads and writes."""

    current_state: InterviewState = InterviewState.INTRO
    current_item_id: str | None = None
    is_follow_up: bool = False
    follow_up_used_items: tuple[str, ...] = ()

    model_config = ConfigDict(frozen=True)


class QuestionState(BaseModel):
    """Interview progress.

    pending_items and completed_items always partition the full item set.
    Construction fails with InvariantViolation otherwise.
    """

    pending_items: list[str] = Field(default_factory=lambda: list(ALL_ITEM_IDS))
    completed_items: list[str] = Field(default_factory=list)
    current_state: InterviewState = InterviewState.INTRO
    current_item_id: str | None = None
    is_follow_up: bool = False
    follow_up_used_items: list[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _check_partition(self) -> QuestionState:
        issues = self.invariant_issues()
        if issues:
            raise InvariantViolation("; ".join(issues))
        return self

    def invariant_issues(self) -> list[str]:
        """List every broken progress invariant (empty when consistent)."""
        issues: list[str] = []
        pending = set(self.pending_items)
        completed = set(self.completed_items)
        if len(pending) != len(self.pending_items):
            issues.append("pending_items contains duplicates")
        if len(completed) != len(self.completed_items):
            issues.append("completed_items contains duplicates")
        overlap = pending & completed
        if overlap:
            issues.append(f"items both pending and completed: {sorted(overlap)}")
        if pending | completed != set(ALL_ITEM_IDS):
            missing = set(ALL_ITEM_IDS) - (pending | completed)
            extra = (pending | completed) - set(ALL_ITEM_IDS)
            if missing:
                issues.append(f"items missing from progress: {sorted(missing)}")
            if extra:
                issues.append(f"unknown items in progress: {sorted(extra)}")
        if len(set(self.follow_up_used_items)) != len(self.follow_up_used_items):
            issues.append("follow_up_used_items contains duplicates")
        return issues

    @property
    def context(self) -> StateContext:
        """State-machine view of this question state."""
        return StateContext(
            current_state=self.current_state,
            current_item_id=self.current_item_id,
            is_follow_up=self.is_follow_up,
            follow_up_used_items=tuple(self.follow_up_used_items),
        )

    def with_context(self, context: StateContext) -> QuestionState:
        """Copy with the state-machine fields replaced from a context."""
        return QuestionState(
            pending_items=list(self.pending_items),
            completed_items=list(self.completed_items),
            current_state=context.current_state,
            current_item_id=context.current_item_id,
            is_follow_up=context.is_follow_up,
            follow_up_used_items=list(context.follow_up_used_items),
        )

    def with_completed(self, item_ids: list[str]) -> QuestionState:
        """Copy with the given items moved from pending to completed."""
        newly = [i for i in item_ids if i in self.pending_items]
        return QuestionState(
            pending_items=[i for i in self.pending_items if i not in newly],
            completed_items=[*self.completed_items, *dict.fromkeys(newly)],
            current_state=self.current_state,
            current_item_id=self.current_item_id,
            is_follow_up=self.is_follow_up,
            follow_up_used_items=list(self.follow_up_used_items),
        )


class SessionMeta(BaseModel):
    """Provenance of a session (which model and prompt versions ran it)."""

    model_version: str = "unknown"
    prompt_version: str = "1"
    persona_id: str | None = None

    model_config = ConfigDict(frozen=True)


class Session(BaseModel):
    """One interview session."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    conversation_id: str
    status: SessionStatus = SessionStatus.ACTIVE
    transcript: list[TranscriptEntry] = Field(default_factory=list)
    risk_flags: RiskFlags = Field(default_factory=RiskFlags)
    question_state: QuestionState = Field(default_factory=QuestionState)
    meta: SessionMeta = Field(default_factory=SessionMeta)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    completed_at: datetime | None = None
    version: int = 0

    @property
    def state(self) -> InterviewState:
        """Current interview phase."""
        return self.question_state.current_state

    @property
    def is_terminal(self) -> bool:
        """True once the session reached DONE or SAFETY_STOP."""
        return self.state in (InterviewState.DONE, InterviewState.SAFETY_STOP)

    @property
    def is_safety_stopped(self) -> bool:
        """True if the safety override has fired for this session."""
        return (
            self.state == InterviewState.SAFETY_STOP
            or self.status == SessionStatus.TERMINATED_FOR_SAFETY
        )

    def recent_transcript(self, limit: int) -> list[TranscriptEntry]:
        """Last `limit` transcript entries."""
        if limit <= 0:
            return []
        return self.transcript[-limit:]


class EventKind(StrEnum):
    """Kinds of entries in the authoritative decision log."""

    SESSION_CREATED = "session_created"
    INTERVIEW_STARTED = "interview_started"
    ITEM_SELECTED = "item_selected"
    FOLLOW_UP_STARTED = "follow_up_started"
    ITEM_SCORED = "item_scored"
    PHASE_CHANGED = "phase_changed"
    SAFETY_CHECK = "safety_check"
    SAFETY_CHECK_DEGRADED = "safety_check_degraded"
    SAFETY_STOP = "safety_stop"
    REPORT_COMPLETE = "report_complete"


class InterviewEvent(BaseModel):
    """One engine decision, recorded with the item and phase it applied to."""

    kind: EventKind
    session_id: str
    phase: InterviewState
    item_id: str | None = None
    timestamp: datetime = Field(default_factory=_now)
    detail: dict[str, object] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)


class SessionPatch(BaseModel):
    """Explicit optional-field session update.

    status: replaced (terminated_for_safety is final).
    risk_flags: OR-merged, never clears a flag.
    question_state: replaced (already validated on construction).
    completed_at: set once, later values are ignored.
    """

    status: SessionStatus | None = None
    risk_flags: RiskFlagsPatch | None = None
    question_state: QuestionState | None = None
    completed_at: datetime | None = None

    model_config = ConfigDict(frozen=True)

    def apply(self, session: Session, now: datetime | None = None) -> Session:
        """Return a new session with this patch merged in."""
        status = session.status
        if self.status is not None and self.status != session.status:
            if session.status == SessionStatus.TERMINATED_FOR_SAFETY:
                raise InvariantViolation(
                    f"Session {session.id} was terminated for safety; "
                    f"cannot change status to {self.status.value}"
                )
            status = self.status

        return session.model_copy(
            update={
                "status": status,
                "risk_flags": session.risk_flags.merge(self.risk_flags),
                "question_state": self.question_state or session.question_state,
                "completed_at": session.completed_at or self.completed_at,
                "updated_at": now or _now(),
            }
        )


class TurnCommit(BaseModel):
    """Everything one turn writes. The store applies it all or nothing."""

    patch: SessionPatch = Field(default_factory=SessionPatch)
    transcript_entries: list[TranscriptEntry] = Field(default_factory=list)
    item_responses: list[ItemResponse] = Field(default_factory=list)
    events: list[InterviewEvent] = Field(default_factory=list)
    expected_version: int | None = None

    model_config = ConfigDict(frozen=True)

    def apply(self, session: Session, now: datetime | None = None) -> Session:
        """Merge patch and transcript entries into a session, bumping its version."""
        updated = self.patch.apply(session, now=now)
        return updated.model_copy(
            update={
                "transcript": [*session.transcript, *self.transcript_entries],
                "version": session.version + 1,
            }
        )
