"""Tests for the safety hard-stop protocol."""

import asyncio

import pytest

from crosscut.interview.models import (
    EventKind,
    InterviewState,
    RiskFlagsPatch,
    SessionStatus,
)
from crosscut.interview.safety import DEGRADED_REASONING, SafetyProtocol
from crosscut.oracles.base import SafetyAnalysis, Urgency
from crosscut.oracles.prompts import SAFETY_ESCALATION_SCRIPT
from tests.fakes import ScriptedSafetyClassifier, session_at

CRISIS = "I don't want to be here anymore"


def _classifier_with(text: str, analysis: SafetyAnalysis) -> ScriptedSafetyClassifier:
    classifier = ScriptedSafetyClassifier()
    classifier.verdicts[text] = analysis
    return classifier


class TestUnsafeMessages:
    """Test the stop path."""

    async def test_critical_message_stops_session(self) -> None:
        """An unsafe verdict during ASK_ITEM moves to SAFETY_STOP."""
        classifier = _classifier_with(
            CRISIS,
            SafetyAnalysis(
                safe=False,
                urgency=Urgency.CRITICAL,
                risk_flags=RiskFlagsPatch(suicidality_mentioned=True),
            ),
        )
        session = session_at(InterviewState.ASK_ITEM)
        result = await SafetyProtocol(classifier).check(session, CRISIS)

        assert not result.safe
        assert result.session_terminated
        assert result.escalation_script == SAFETY_ESCALATION_SCRIPT
        updated = result.commit.apply(session)
        assert updated.state == InterviewState.SAFETY_STOP
        assert updated.status == SessionStatus.TERMINATED_FOR_SAFETY
        assert updated.risk_flags.suicidality_mentioned
        kinds = [e.kind for e in result.commit.events]
        assert kinds == [EventKind.SAFETY_CHECK, EventKind.SAFETY_STOP]

    async def test_high_urgency_forces_stop_even_if_marked_safe(self) -> None:
        """HIGH urgency is unsafe regardless of the safe flag."""
        classifier = _classifier_with(CRISIS, SafetyAnalysis(safe=True, urgency=Urgency.HIGH))
        session = session_at(InterviewState.FOLLOW_UP)
        result = await SafetyProtocol(classifier).check(session, CRISIS)

        assert not result.safe
        assert result.commit.apply(session).state == InterviewState.SAFETY_STOP

    @pytest.mark.parametrize("state", [InterviewState.INTRO, InterviewState.REPORT])
    async def test_stops_outside_item_phases(self, state: InterviewState) -> None:
        """The override also applies before and after the items."""
        classifier = _classifier_with(CRISIS, SafetyAnalysis(safe=False, urgency=Urgency.MEDIUM))
        session = session_at(state, current_item_id=None)
        result = await SafetyProtocol(classifier).check(session, CRISIS)

        assert result.session_terminated
        assert result.commit.apply(session).state == InterviewState.SAFETY_STOP

    async def test_done_session_stays_done(self) -> None:
        """A finished interview is not reopened, but the escalation is still returned."""
        classifier = _classifier_with(CRISIS, SafetyAnalysis(safe=False, urgency=Urgency.CRITICAL))
        session = session_at(InterviewState.DONE, current_item_id=None).model_copy(
            update={"status": SessionStatus.COMPLETED}
        )
        result = await SafetyProtocol(classifier).check(session, CRISIS)

        assert not result.session_terminated
        assert result.escalation_script == SAFETY_ESCALATION_SCRIPT
        updated = result.commit.apply(session)
        assert updated.state == InterviewState.DONE
        assert updated.status == SessionStatus.COMPLETED

    async def test_already_stopped_skips_classifier(self) -> None:
        """Once stopped, the classifier is never called again."""
        classifier = ScriptedSafetyClassifier()
        session = session_at(InterviewState.SAFETY_STOP).model_copy(
            update={"status": SessionStatus.TERMINATED_FOR_SAFETY}
        )
        result = await SafetyProtocol(classifier).check(session, "I feel fine now")

        assert classifier.calls == []
        assert not result.safe
        assert result.urgency == Urgency.CRITICAL
        assert result.escalation_script == SAFETY_ESCALATION_SCRIPT
        assert result.commit.events == []


class TestSafeMessages:
    """Test the continue path."""

    async def test_safe_message_continues(self) -> None:
        """A safe verdict leaves the phase alone and logs the check."""
        classifier = ScriptedSafetyClassifier()
        session = session_at(InterviewState.ASK_ITEM)
        result = await SafetyProtocol(classifier).check(session, "Mostly fine")

        assert result.safe
        assert result.escalation_script is None
        assert not result.session_terminated
        assert classifier.calls == ["Mostly fine"]
        updated = result.commit.apply(session)
        assert updated.state == InterviewState.ASK_ITEM
        assert [e.kind for e in result.commit.events] == [EventKind.SAFETY_CHECK]

    async def test_low_urgency_flags_are_merged(self) -> None:
        """Non-stopping risk indicators are still recorded."""
        classifier = _classifier_with(
            "I drink a lot",
            SafetyAnalysis(
                safe=True,
                urgency=Urgency.LOW,
                risk_flags=RiskFlagsPatch(substance_abuse_signal=True),
            ),
        )
        session = session_at(InterviewState.ASK_ITEM)
        result = await SafetyProtocol(classifier).check(session, "I drink a lot")

        assert result.safe
        assert result.commit.apply(session).risk_flags.substance_abuse_signal

    async def test_message_index_recorded(self) -> None:
        """The check event records which message was classified."""
        session = session_at(InterviewState.ASK_ITEM)
        result = await SafetyProtocol(ScriptedSafetyClassifier()).check(session, "ok", 4)
        assert result.commit.events[0].detail["message_index"] == 4


class TestDegraded:
    """Test classifier failures."""

    async def test_classifier_error_is_degraded_not_fatal(self) -> None:
        """A failing classifier never blocks or stops the interview."""
        classifier = ScriptedSafetyClassifier()
        classifier.error = RuntimeError("rate limited")
        session = session_at(InterviewState.ASK_ITEM)
        result = await SafetyProtocol(classifier).check(session, "hello")

        assert result.safe
        assert result.degraded
        assert result.reasoning == DEGRADED_REASONING
        assert result.escalation_script is None
        assert [e.kind for e in result.commit.events] == [EventKind.SAFETY_CHECK_DEGRADED]
        assert result.commit.apply(session).state == InterviewState.ASK_ITEM

    async def test_classifier_timeout_is_degraded(self) -> None:
        """A slow classifier is treated like a failure."""

        class SlowClassifier(ScriptedSafetyClassifier):
            async def classify(self, patient_text: str) -> SafetyAnalysis:
                await asyncio.sleep(1)
                return await super().classify(patient_text)

        session = session_at(InterviewState.ASK_ITEM)
        result = await SafetyProtocol(SlowClassifier(), timeout_seconds=0.01).check(
            session, "hello"
        )
        assert result.degraded
        assert result.safe
