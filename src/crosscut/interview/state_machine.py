"""Interview state machine.

The transition function is total and pure: every (state, event) pair yields a
tagged result, Transitioned with the new context or Ignored with the unchanged
context and a reason. It never raises and never touches pending/completed
progress; moving items between those sets is the scoring orchestrator's job.

    INTRO --START_INTERVIEW--> ASK_ITEM --PATIENT_RESPONDED--> SCORE_ITEM
    SCORE_ITEM --TRIGGER_FOLLOW_UP--> FOLLOW_UP --PATIENT_RESPONDED--> SCORE_ITEM
    SCORE_ITEM --MOVE_TO_NEXT_ITEM--> ASK_ITEM
    ASK_ITEM | SCORE_ITEM --ALL_ITEMS_COMPLETE--> REPORT --REPORT_COMPLETE--> DONE
    ASK_ITEM | SCORE_ITEM | FOLLOW_UP --SAFETY_TRIGGERED--> SAFETY_STOP
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from crosscut.interview.models import InterviewState, StateContext

TERMINAL_STATES: frozenset[InterviewState] = frozenset(
    {InterviewState.DONE, InterviewState.SAFETY_STOP}
)

_INTERVIEW_PHASES: frozenset[InterviewState] = frozenset(
    {InterviewState.ASK_ITEM, InterviewState.SCORE_ITEM, InterviewState.FOLLOW_UP}
)

_STATE_DESCRIPTIONS: dict[InterviewState, str] = {
    InterviewState.INTRO: "Introduction and consent",
    InterviewState.ASK_ITEM: "Asking a screening question",
    InterviewState.SCORE_ITEM: "Scoring the patient's response",
    InterviewState.FOLLOW_UP: "Asking a clarifying follow-up",
    InterviewState.REPORT: "Generating the report",
    InterviewState.DONE: "Interview complete",
    InterviewState.SAFETY_STOP: "Interview stopped for safety",
}


class EventType(StrEnum):
    """Events the state machine understands."""

    START_INTERVIEW = "START_INTERVIEW"
    PATIENT_RESPONDED = "PATIENT_RESPONDED"
    TRIGGER_FOLLOW_UP = "TRIGGER_FOLLOW_UP"
    MOVE_TO_NEXT_ITEM = "MOVE_TO_NEXT_ITEM"
    ALL_ITEMS_COMPLETE = "ALL_ITEMS_COMPLETE"
    SAFETY_TRIGGERED = "SAFETY_TRIGGERED"
    REPORT_COMPLETE = "REPORT_COMPLETE"


class StateEvent(BaseModel):
    """An event, optionally carrying the item it applies to."""

    type: EventType
    item_id: str | None = None

    model_config = ConfigDict(frozen=True)


class Transitioned(BaseModel):
    """The event was accepted and produced a new context."""

    context: StateContext
    previous_state: InterviewState

    model_config = ConfigDict(frozen=True)

    @property
    def changed(self) -> bool:
        return True


class Ignored(BaseModel):
    """The event is not valid here. The context is returned unchanged."""

    context: StateContext
    reason: str

    model_config = ConfigDict(frozen=True)

    @property
    def changed(self) -> bool:
        return False


type TransitionResult = Transitioned | Ignored


def initial_context() -> StateContext:
    """Context of a brand-new session."""
    return StateContext()


def is_terminal_state(state: InterviewState) -> bool:
    """DONE and SAFETY_STOP accept no further events."""
    return state in TERMINAL_STATES


def can_accept_patient_message(state: InterviewState) -> bool:
    """States in which a patient answer is expected."""
    return state in (InterviewState.ASK_ITEM, InterviewState.FOLLOW_UP)


def is_in_interview_phase(state: InterviewState) -> bool:
    """True while items are being asked or scored."""
    return state in _INTERVIEW_PHASES


def describe_state(state: InterviewState) -> str:
    """Human-readable phase description."""
    return _STATE_DESCRIPTIONS[state]


def can_ask_follow_up(context: StateContext, item_id: str) -> bool:
    """Each item gets at most one follow-up."""
    return item_id not in context.follow_up_used_items


def should_trigger_follow_up(
    context: StateContext,
    item_id: str,
    score: int,
    ambiguity: int,
    ambiguity_threshold: int = 7,
    score_threshold: int = 2,
) -> bool:
    """Decide whether an item's answer warrants its one follow-up.

    Args:
        context: Current state context
        item_id: Item that was just scored
        score: 0-4 score from the scorer
        ambiguity: 1-10 ambiguity rating from the scorer
        ambiguity_threshold: Ambiguity at or above which to follow up
        score_threshold: Score at or above which to follow up

    Returns:
        False if the item already used its follow-up, otherwise whether the
        answer is ambiguous or severe enough.
    """
    if not can_ask_follow_up(context, item_id):
        return False
    return ambiguity >= ambiguity_threshold or score >= score_threshold


def _ignored(context: StateContext, event: StateEvent, why: str | None = None) -> Ignored:
    reason = why or f"{event.type.value} is not valid in {context.current_state.value}"
    return Ignored(context=context, reason=reason)


def _moved(context: StateContext, **changes: object) -> Transitioned:
    return Transitioned(
        context=context.model_copy(update=changes), previous_state=context.current_state
    )


def transition(context: StateContext, event: StateEvent) -> TransitionResult:
    """Apply an event to a context.

    Args:
        context: Current state context
        event: Event to apply

    Returns:
        Transitioned with the new context, or Ignored with the input context
        unchanged. Never raises.
    """
    state = context.current_state
    kind = event.type

    if state in TERMINAL_STATES:
        return _ignored(context, event, f"{state.value} is terminal")

    if kind == EventType.SAFETY_TRIGGERED:
        if state in _INTERVIEW_PHASES:
            return _moved(context, current_state=InterviewState.SAFETY_STOP)
        return _ignored(context, event)

    if state == InterviewState.INTRO:
        if kind == EventType.START_INTERVIEW:
            if event.item_id is None:
                return _ignored(context, event, "START_INTERVIEW needs an item to ask")
            return _moved(
                context,
                current_state=InterviewState.ASK_ITEM,
                current_item_id=event.item_id,
                is_follow_up=False,
            )
        return _ignored(context, event)

    if state == InterviewState.ASK_ITEM:
        if kind == EventType.PATIENT_RESPONDED:
            return _moved(context, current_state=InterviewState.SCORE_ITEM)
        if kind == EventType.MOVE_TO_NEXT_ITEM:
            return _to_next_item(context, event)
        if kind == EventType.ALL_ITEMS_COMPLETE:
            return _to_report(context)
        return _ignored(context, event)

    if state == InterviewState.SCORE_ITEM:
        if kind == EventType.TRIGGER_FOLLOW_UP:
            item_id = event.item_id or context.current_item_id
            if item_id is None:
                return _ignored(context, event, "no current item to follow up on")
            if not can_ask_follow_up(context, item_id):
                return _ignored(context, event, f"{item_id} already used its follow-up")
            return _moved(
                context,
                current_state=InterviewState.FOLLOW_UP,
                current_item_id=item_id,
                is_follow_up=True,
                follow_up_used_items=(*context.follow_up_used_items, item_id),
            )
        if kind == EventType.MOVE_TO_NEXT_ITEM:
            return _to_next_item(context, event)
        if kind == EventType.ALL_ITEMS_COMPLETE:
            return _to_report(context)
        return _ignored(context, event)

    if state == InterviewState.FOLLOW_UP:
        if kind == EventType.PATIENT_RESPONDED:
            return _moved(context, current_state=InterviewState.SCORE_ITEM)
        return _ignored(context, event)

    if state == InterviewState.REPORT:
        if kind == EventType.REPORT_COMPLETE:
            return _moved(context, current_state=InterviewState.DONE)
        return _ignored(context, event)

    return _ignored(context, event)


def _to_next_item(context: StateContext, event: StateEvent) -> TransitionResult:
    if event.item_id is None:
        return _ignored(context, event, "MOVE_TO_NEXT_ITEM needs the selected item")
    return _moved(
        context,
        current_state=InterviewState.ASK_ITEM,
        current_item_id=event.item_id,
        is_follow_up=False,
    )


def _to_report(context: StateContext) -> Transitioned:
    return _moved(
        context,
        current_state=InterviewState.REPORT,
        current_item_id=None,
        is_follow_up=False,
    )


def force_safety_stop(context: StateContext) -> TransitionResult:
    """Safety override: move any non-terminal phase into SAFETY_STOP.

    Unlike SAFETY_TRIGGERED through transition(), this also applies to INTRO
    and REPORT. DONE and SAFETY_STOP are left untouched.
    """
    if context.current_state in TERMINAL_STATES:
        return Ignored(context=context, reason=f"{context.current_state.value} is terminal")
    return _moved(context, current_state=InterviewState.SAFETY_STOP, is_follow_up=False)
