"""Crosscut interview: the session engine.

Public API:
    Models: Session, QuestionState, RiskFlags, RiskFlagsPatch, TranscriptEntry,
            ItemResponse, EvidenceSpan, SessionPatch, TurnCommit, InterviewEvent
    State machine: transition, force_safety_stop, should_trigger_follow_up
    Selection: select_next_item
    Evidence: extract_evidence_spans, validate_evidence_span, score_evidence_integrity

The engine, scoring orchestrator and safety protocol depend on the oracles and
are imported from their own modules (crosscut.interview.engine etc.).
"""

from crosscut.interview.evidence import (
    IntegrityReport,
    extract_evidence_spans,
    score_evidence_integrity,
    validate_evidence_span,
)
from crosscut.interview.models import (
    EvidenceSpan,
    EvidenceType,
    EventKind,
    InterviewEvent,
    InterviewState,
    ItemResponse,
    QuestionState,
    RiskFlags,
    RiskFlagsPatch,
    Role,
    Session,
    SessionMeta,
    SessionPatch,
    SessionStatus,
    Span,
    TranscriptEntry,
    TurnCommit,
)
from crosscut.interview.selector import select_next_item
from crosscut.interview.state_machine import (
    EventType,
    Ignored,
    StateEvent,
    Transitioned,
    force_safety_stop,
    should_trigger_follow_up,
    transition,
)

__all__ = [
    "EventKind",
    "EventType",
    "EvidenceSpan",
    "EvidenceType",
    "Ignored",
    "IntegrityReport",
    "InterviewEvent",
    "InterviewState",
    "ItemResponse",
    "QuestionState",
    "RiskFlags",
    "RiskFlagsPatch",
    "Role",
    "Session",
    "SessionMeta",
    "SessionPatch",
    "SessionStatus",
    "Span",
    "StateEvent",
    "TranscriptEntry",
    "Transitioned",
    "TurnCommit",
    "extract_evidence_spans",
    "force_safety_stop",
    "score_evidence_integrity",
    "select_next_item",
    "should_trigger_follow_up",
    "transition",
    "validate_evidence_span",
]
