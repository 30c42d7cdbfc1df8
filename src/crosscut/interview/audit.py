"""Session audits computed from the authoritative event log.

Follow-up and repeat violations are counted from what the engine actually
decided (item_selected / follow_up_started / item_scored events), not guessed
from transcript wording.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, Field

from crosscut.interview.models import EventKind, InterviewEvent, ItemResponse
from crosscut.registry import ALL_ITEM_IDS

MAX_FOLLOW_UPS_PER_ITEM = 1


class CoverageAudit(BaseModel):
    """Coverage and protocol-adherence figures for one session."""

    rate: float
    completed_items: list[str] = Field(default_factory=list)
    missing_items: list[str] = Field(default_factory=list)
    follow_up_violations: int = 0
    repeat_violations: int = 0
    safety_stopped: bool = False
    degraded_safety_checks: int = 0
    issues: list[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


def count_follow_up_violations(events: Iterable[InterviewEvent]) -> int:
    """Items that had more than one follow-up started."""
    counts = Counter(
        e.item_id for e in events if e.kind == EventKind.FOLLOW_UP_STARTED and e.item_id
    )
    return sum(1 for n in counts.values() if n > MAX_FOLLOW_UPS_PER_ITEM)


def count_repeat_violations(events: Iterable[InterviewEvent]) -> int:
    """Items selected to be asked again after they had already been scored."""
    scored: set[str] = set()
    repeated: set[str] = set()
    for event in events:
        if event.item_id is None:
            continue
        if event.kind == EventKind.ITEM_SCORED:
            scored.add(event.item_id)
        elif event.kind == EventKind.ITEM_SELECTED and event.item_id in scored:
            repeated.add(event.item_id)
    return len(repeated)


def audit_session(
    events: Iterable[InterviewEvent], responses: Iterable[ItemResponse]
) -> CoverageAudit:
    """Coverage rate, missing items and violation counts for a session."""
    events = list(events)
    completed = [r.item_id for r in responses]
    completed_set = set(completed)
    missing = [i for i in ALL_ITEM_IDS if i not in completed_set]

    follow_up_violations = count_follow_up_violations(events)
    repeat_violations = count_repeat_violations(events)
    issues: list[str] = []
    if follow_up_violations:
        issues.append(f"Follow-up limit exceeded: {follow_up_violations} item(s) had >1 follow-up")
    if repeat_violations:
        issues.append(
            f"Repeat questions: {repeat_violations} item(s) asked again after completion"
        )

    return CoverageAudit(
        rate=len(completed_set) / len(ALL_ITEM_IDS),
        completed_items=completed,
        missing_items=missing,
        follow_up_violations=follow_up_violations,
        repeat_violations=repeat_violations,
        safety_stopped=any(e.kind == EventKind.SAFETY_STOP for e in events),
        degraded_safety_checks=sum(
            1 for e in events if e.kind == EventKind.SAFETY_CHECK_DEGRADED
        ),
        issues=issues,
    )
