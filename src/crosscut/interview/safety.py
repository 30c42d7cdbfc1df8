"""Safety hard-stop protocol.

Every patient message is classified before anything else looks at it. An
unsafe verdict (or high/critical urgency) moves the session into SAFETY_STOP
for good. Once stopped, the classifier is not called again and only the fixed
escalation script is produced. If the classifier itself fails, the message is
treated as safe and the check is recorded as degraded: a transient failure
never blocks the interview and never terminates it.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from crosscut.interview.models import (
    EventKind,
    InterviewEvent,
    InterviewState,
    RiskFlagsPatch,
    Session,
    SessionPatch,
    SessionStatus,
    TurnCommit,
)
from crosscut.interview.state_machine import Transitioned, force_safety_stop
from crosscut.oracles.base import SafetyAnalysis, SafetyClassifier, Urgency
from crosscut.oracles.prompts import SAFETY_ESCALATION_SCRIPT

logger = logging.getLogger(__name__)

DEGRADED_REASONING = "Safety check failed - proceeding with caution"


class SafetyCheckResult(BaseModel):
    """Outcome of the safety check for one patient message.

    commit holds what the check writes (merged flags, phase change, event log
    entries). The caller commits it before any scoring runs.
    """

    safe: bool
    risk_flags_detected: RiskFlagsPatch = Field(default_factory=RiskFlagsPatch)
    urgency: Urgency = Urgency.NONE
    reasoning: str = ""
    escalation_script: str | None = None
    session_terminated: bool = False
    degraded: bool = False
    commit: TurnCommit = Field(default_factory=TurnCommit, exclude=True)

    model_config = ConfigDict(frozen=True)


class SafetyProtocol:
    """Runs the safety classifier and decides whether the session must stop."""

    def __init__(self, classifier: SafetyClassifier, timeout_seconds: float = 30.0) -> None:
        self._classifier = classifier
        self._timeout = timeout_seconds

    async def _classify(self, patient_text: str) -> SafetyAnalysis | None:
        """Classifier verdict, or None when the check could not be completed."""
        try:
            return await asyncio.wait_for(
                self._classifier.classify(patient_text), timeout=self._timeout
            )
        except TimeoutError:
            logger.warning("Safety classifier timed out after %ss; continuing", self._timeout)
        except Exception as e:
            logger.warning("Safety classifier failed (%s); continuing", e)
        return None

    async def check(
        self, session: Session, patient_text: str, message_index: int | None = None
    ) -> SafetyCheckResult:
        """Classify a patient message and build the resulting commit.

        Args:
            session: Session as read before the message
            patient_text: The inbound patient message
            message_index: Transcript index the message will occupy

        Returns:
            SafetyCheckResult. escalation_script is set whenever the message is
            unsafe or the session was already stopped.
        """
        now = datetime.now(UTC)
        index = len(session.transcript) if message_index is None else message_index

        if session.is_safety_stopped:
            return SafetyCheckResult(
                safe=False,
                urgency=Urgency.CRITICAL,
                reasoning="Session already in SAFETY_STOP state",
                escalation_script=SAFETY_ESCALATION_SCRIPT,
                session_terminated=True,
                commit=TurnCommit(expected_version=session.version),
            )

        analysis = await self._classify(patient_text)
        if analysis is None:
            event = InterviewEvent(
                kind=EventKind.SAFETY_CHECK_DEGRADED,
                session_id=session.id,
                phase=session.state,
                item_id=session.question_state.current_item_id,
                timestamp=now,
                detail={"message_index": index},
            )
            return SafetyCheckResult(
                safe=True,
                reasoning=DEGRADED_REASONING,
                degraded=True,
                commit=TurnCommit(events=[event], expected_version=session.version),
            )

        unsafe = not analysis.safe or analysis.urgency.forces_stop
        events = [
            InterviewEvent(
                kind=EventKind.SAFETY_CHECK,
                session_id=session.id,
                phase=session.state,
                item_id=session.question_state.current_item_id,
                timestamp=now,
                detail={
                    "message_index": index,
                    "safe": not unsafe,
                    "urgency": analysis.urgency.value,
                },
            )
        ]

        if not unsafe:
            if not analysis.risk_flags.is_empty:
                logger.info(
                    "Session %s: risk indicators noted at %s urgency",
                    session.id,
                    analysis.urgency.value,
                )
            return SafetyCheckResult(
                safe=True,
                risk_flags_detected=analysis.risk_flags,
                urgency=analysis.urgency,
                reasoning=analysis.reasoning,
                commit=TurnCommit(
                    patch=SessionPatch(risk_flags=analysis.risk_flags),
                    events=events,
                    expected_version=session.version,
                ),
            )

        stop = force_safety_stop(session.question_state.context)
        terminated = isinstance(stop, Transitioned)
        patch = SessionPatch(risk_flags=analysis.risk_flags)
        if isinstance(stop, Transitioned):
            patch = SessionPatch(
                status=SessionStatus.TERMINATED_FOR_SAFETY,
                risk_flags=analysis.risk_flags,
                question_state=session.question_state.with_context(stop.context),
            )
            events.append(
                InterviewEvent(
                    kind=EventKind.SAFETY_STOP,
                    session_id=session.id,
                    phase=InterviewState.SAFETY_STOP,
                    item_id=session.question_state.current_item_id,
                    timestamp=now,
                    detail={"source": "safety_check", "from": session.state.value},
                )
            )
            logger.info(
                "Session %s: safety stop from %s (%s urgency)",
                session.id,
                session.state.value,
                analysis.urgency.value,
            )
        else:
            logger.info(
                "Session %s: unsafe message after the interview ended (%s)",
                session.id,
                session.state.value,
            )

        return SafetyCheckResult(
            safe=False,
            risk_flags_detected=analysis.risk_flags,
            urgency=analysis.urgency,
            reasoning=analysis.reasoning,
            escalation_script=SAFETY_ESCALATION_SCRIPT,
            session_terminated=terminated,
            commit=TurnCommit(patch=patch, events=events, expected_version=session.version),
        )
