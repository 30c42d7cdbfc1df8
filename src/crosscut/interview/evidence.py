"""Evidence extraction, validation and integrity scoring.

Candidate quotes come from the scorer. They are only trusted once located
verbatim in the patient's own message; anything that reads like the
interviewer's question is thrown out before matching, so a score can never be
backed by the asker's words (a "leak").
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field

from crosscut.errors import InvariantViolation
from crosscut.interview.models import (
    EvidenceSpan,
    EvidenceType,
    ItemResponse,
    Role,
    Span,
    TranscriptEntry,
)

logger = logging.getLogger(__name__)

DIRECT_SPAN_STRENGTH = 0.9
INFERRED_STRENGTH = 0.5
MAX_SPANS = 3
MIN_QUOTE_LENGTH = 3
INFERRED_SUMMARY = "(inferred from response pattern)"
SUMMARY_MAX_CHARS = 50

DEFAULT_INTERROGATIVE_PATTERNS: tuple[str, ...] = (
    r"^have you\b",
    r"^do you\b",
    r"^did you\b",
    r"^are you\b",
    r"^could you\b",
    r"^can you\b",
    r"^how often\b",
    r"^how much\b",
    r"^how many\b",
    r"^in the past\b",
    r"^during the past\b",
    r"^over the past\b",
    r"^would you say\b",
)

_QUOTE_CHARS = "\"'“”‘’"
_PATIENT_LABEL = re.compile(r"^(?:patient|user)\s*:\s*", re.IGNORECASE)
_INTERVIEWER_LABEL = re.compile(
    r"^(?:interviewer|therapist|assistant|clinician)\s*:", re.IGNORECASE
)


class InterviewerTextDetector(Protocol):
    """Decides whether a candidate quote reads like interviewer speech."""

    def looks_like_interviewer_text(self, text: str) -> bool: ...


class PatternInterviewerDetector:
    """Flags questions, interviewer labels and interrogative openings."""

    def __init__(self, patterns: Iterable[str] = DEFAULT_INTERROGATIVE_PATTERNS) -> None:
        self._patterns = [re.compile(p, re.IGNORECASE) for p in patterns]

    def looks_like_interviewer_text(self, text: str) -> bool:
        if "?" in text:
            return True
        if _INTERVIEWER_LABEL.match(text):
            return True
        return any(p.search(text) for p in self._patterns)


DEFAULT_DETECTOR = PatternInterviewerDetector()


class SpanValidation(BaseModel):
    """Outcome of bounds-checking an evidence span."""

    valid: bool
    issues: list[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class IntegrityDetails(BaseModel):
    """Counts behind an evidence-integrity score."""

    total_items: int = 0
    direct_span_items: int = 0
    inferred_items: int = 0
    no_evidence_items: int = 0
    valid_spans: int = 0
    invalid_spans: int = 0
    leak_count: int = 0

    model_config = ConfigDict(frozen=True)


class IntegrityReport(BaseModel):
    """Evidence-integrity score (0-1) over a session's item responses."""

    score: float
    details: IntegrityDetails
    issues: list[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


def normalize_quote(quote: str) -> str:
    """Trim, strip surrounding quote marks and a leading patient label."""
    cleaned = quote.strip().strip(_QUOTE_CHARS).strip()
    cleaned = _PATIENT_LABEL.sub("", cleaned)
    return cleaned.strip().strip(_QUOTE_CHARS).strip()


def merge_spans(spans: Sequence[Span]) -> list[Span]:
    """Sort by start and merge overlapping or adjacent spans."""
    if len(spans) <= 1:
        return list(spans)

    ordered = sorted(spans, key=lambda s: (s.start, s.end))
    merged = [ordered[0]]
    for span in ordered[1:]:
        last = merged[-1]
        if span.start <= last.end:
            merged[-1] = Span(start=last.start, end=max(last.end, span.end))
        else:
            merged.append(span)
    return merged


def _summarize(text: str, spans: Sequence[Span]) -> str:
    if not spans:
        return INFERRED_SUMMARY
    first = text[spans[0].start : spans[0].end]
    if len(first) > SUMMARY_MAX_CHARS:
        first = f"{first[: SUMMARY_MAX_CHARS - 3]}..."
    return f'Patient: "{first}"'


def extract_evidence_spans(
    patient_text: str,
    candidate_quotes: Iterable[str],
    message_index: int,
    summary: str | None = None,
    detector: InterviewerTextDetector | None = None,
) -> EvidenceSpan:
    """Turn candidate quotes into bounds-checked spans over the patient's message.

    Args:
        patient_text: The patient message the quotes should come from
        candidate_quotes: Quotes proposed by the scorer
        message_index: Transcript index of the patient message
        summary: Scorer-supplied summary, used as-is when given
        detector: Interviewer-text predicate (defaults to pattern matching)

    Returns:
        direct_span evidence (strength 0.9) if any quote was located,
        otherwise inferred evidence (strength 0.5).
    """
    detector = detector or DEFAULT_DETECTOR
    found: list[Span] = []

    for quote in candidate_quotes:
        cleaned = normalize_quote(quote)
        if len(cleaned) < MIN_QUOTE_LENGTH:
            continue
        if detector.looks_like_interviewer_text(cleaned):
            logger.debug("Discarded interviewer-like quote: %r", cleaned)
            continue
        match = re.search(re.escape(cleaned), patient_text, re.IGNORECASE)
        if match is None:
            continue
        found.append(Span(start=match.start(), end=match.end()))

    spans = merge_spans(found)[:MAX_SPANS]
    if spans:
        return EvidenceSpan(
            type=EvidenceType.DIRECT_SPAN,
            message_index=message_index,
            spans=spans,
            strength=DIRECT_SPAN_STRENGTH,
            summary=summary if summary is not None else _summarize(patient_text, spans),
        )
    return EvidenceSpan(
        type=EvidenceType.INFERRED,
        message_index=message_index,
        spans=[],
        strength=INFERRED_STRENGTH,
        summary=summary if summary is not None else INFERRED_SUMMARY,
    )


def validate_evidence_span(evidence: EvidenceSpan, patient_text: str) -> SpanValidation:
    """Bounds-check direct spans. Inferred and none evidence is always valid."""
    if evidence.type != EvidenceType.DIRECT_SPAN:
        return SpanValidation(valid=True)

    issues: list[str] = []
    if not evidence.spans:
        issues.append("direct_span evidence has no spans")
    for span in evidence.spans:
        if span.start < 0:
            issues.append(f"Span start {span.start} is negative")
        if span.end > len(patient_text):
            issues.append(f"Span end {span.end} exceeds text length {len(patient_text)}")
        if span.start >= span.end:
            issues.append(f"Span start {span.start} >= end {span.end}")
    return SpanValidation(valid=not issues, issues=issues)


def ensure_valid_evidence(
    evidence: EvidenceSpan, patient_text: str, item_id: str | None = None
) -> EvidenceSpan:
    """Downgrade evidence that fails validation to inferred (strength 0.5)."""
    validation = validate_evidence_span(evidence, patient_text)
    if validation.valid:
        return evidence
    logger.warning(
        "Downgrading evidence for %s to inferred: %s",
        item_id or "item",
        "; ".join(validation.issues),
    )
    return EvidenceSpan(
        type=EvidenceType.INFERRED,
        message_index=evidence.message_index,
        spans=[],
        strength=INFERRED_STRENGTH,
        summary=evidence.summary,
    )


def assert_evidence_sound(evidence: EvidenceSpan, transcript: Sequence[TranscriptEntry]) -> None:
    """Raise InvariantViolation unless direct evidence points at an in-bounds patient message."""
    if evidence.type != EvidenceType.DIRECT_SPAN:
        return
    if evidence.message_index >= len(transcript):
        raise InvariantViolation(
            f"Evidence references message {evidence.message_index} "
            f"but the transcript has {len(transcript)} entries"
        )
    entry = transcript[evidence.message_index]
    if entry.role != Role.PATIENT:
        raise InvariantViolation(
            f"Evidence references a {entry.role.value} message at {evidence.message_index}"
        )
    validation = validate_evidence_span(evidence, entry.text)
    if not validation.valid:
        raise InvariantViolation("; ".join(validation.issues))


def get_evidence_text(evidence: EvidenceSpan, patient_text: str) -> list[str]:
    """The quoted substrings for direct evidence, empty otherwise."""
    if evidence.type != EvidenceType.DIRECT_SPAN:
        return []
    return [patient_text[span.start : span.end] for span in evidence.spans]


def score_evidence_integrity(
    responses: Iterable[ItemResponse], transcript: Sequence[TranscriptEntry]
) -> IntegrityReport:
    """Score how well a session's item scores are backed by patient text.

    Score = (valid direct spans * 1.0 + inferred items * 0.5) / total items,
    1.0 when there are no responses. Direct evidence pointing at a
    non-patient message counts as a leak and an invalid span.
    """
    issues: list[str] = []
    total = direct = inferred = none = valid = invalid = leaks = 0

    for response in responses:
        total += 1
        evidence = response.evidence
        if evidence is None:
            none += 1
            issues.append(f"{response.item_id}: no evidence recorded")
            continue

        if evidence.type == EvidenceType.INFERRED:
            inferred += 1
            continue
        if evidence.type == EvidenceType.NONE:
            none += 1
            continue

        direct += 1
        if evidence.message_index >= len(transcript):
            invalid += 1
            issues.append(
                f"{response.item_id}: message_index {evidence.message_index} out of bounds"
            )
            continue

        message = transcript[evidence.message_index]
        if message.role != Role.PATIENT:
            invalid += 1
            leaks += 1
            issues.append(f"{response.item_id}: evidence references non-patient message")
            continue

        validation = validate_evidence_span(evidence, message.text)
        if validation.valid:
            valid += 1
        else:
            invalid += 1
            issues.append(f"{response.item_id}: {', '.join(validation.issues)}")

    score = (valid * 1.0 + inferred * 0.5) / total if total else 1.0
    return IntegrityReport(
        score=score,
        details=IntegrityDetails(
            total_items=total,
            direct_span_items=direct,
            inferred_items=inferred,
            no_evidence_items=none,
            valid_spans=valid,
            invalid_spans=invalid,
            leak_count=leaks,
        ),
        issues=issues,
    )
