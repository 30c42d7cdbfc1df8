"""Tests for scoring orchestration."""

import asyncio
import logging
from collections.abc import Sequence

import pytest

from crosscut.config import EngineConfig
from crosscut.errors import InputValidationError, InvariantViolation, OracleError
from crosscut.interview.models import (
    EventKind,
    EvidenceType,
    InterviewState,
    RiskFlagsPatch,
    Role,
    Session,
    SessionPatch,
    SessionStatus,
    TranscriptEntry,
)
from crosscut.interview.scoring import (
    ScoreRequest,
    ScoringOrchestrator,
    find_patient_message,
    plan_turn,
)
from crosscut.oracles.base import ScoringOutput
from crosscut.registry import ALL_ITEM_IDS
from crosscut.storage import InMemorySessionStore
from tests.fakes import ScriptedItemScorer, item_score, session_at

DOWN = "I've been feeling really down most days"


def _answered(
    state: InterviewState = InterviewState.ASK_ITEM,
    item_id: str = "D2",
    text: str = DOWN,
    completed: Sequence[str] = ("D1",),
    follow_up_used: Sequence[str] = (),
) -> Session:
    """Session whose last transcript entry is the patient's answer to item_id."""
    return session_at(
        state,
        current_item_id=item_id,
        completed=completed,
        transcript=[
            (Role.INTERVIEWER, "Feeling down, depressed, or hopeless?"),
            (Role.PATIENT, text),
        ],
        follow_up_used=follow_up_used,
    )


def _request(item_id: str = "D2", text: str = DOWN, *also: str) -> ScoreRequest:
    return ScoreRequest(primary_item_id=item_id, additional_item_ids=also, patient_text=text)


class TestScoreRequest:
    """Test ScoreRequest validation."""

    def test_item_ids_deduplicated_primary_first(self) -> None:
        """Primary comes first and duplicates are dropped."""
        request = ScoreRequest(
            primary_item_id="D2", additional_item_ids=("D1", "D2", "D1"), patient_text="x"
        )
        assert request.item_ids == ["D2", "D1"]

    def test_unknown_item_rejected(self) -> None:
        """Unknown ids fail validation."""
        with pytest.raises(InputValidationError, match="X9"):
            _request("D2", DOWN, "X9").validate_items()

    def test_empty_text_rejected(self) -> None:
        """Blank responses fail validation."""
        with pytest.raises(InputValidationError, match="empty"):
            _request("D2", "   ").validate_items()


class TestPlanTurn:
    """Test plan_turn decisions."""

    def test_high_score_triggers_follow_up(self) -> None:
        """A score of 3 on D2 with no follow-up used leads to FOLLOW_UP."""
        session = _answered()
        output = ScoringOutput(per_item=[item_score("D2", 3, 2, ["feeling really down"])])
        plan = plan_turn(session, _request(), output, message_index=1)

        assert plan.should_follow_up
        assert plan.next_state == InterviewState.FOLLOW_UP
        qs = plan.commit.patch.question_state
        assert qs is not None
        assert qs.follow_up_used_items == ["D2"]
        assert qs.is_follow_up
        assert "D2" in qs.completed_items
        kinds = [e.kind for e in plan.commit.events]
        assert kinds == [
            EventKind.ITEM_SCORED,
            EventKind.FOLLOW_UP_STARTED,
            EventKind.PHASE_CHANGED,
        ]

    def test_clear_low_answer_moves_to_next_item(self) -> None:
        """A clear low answer selects the next item in the same commit."""
        session = _answered()
        output = ScoringOutput(per_item=[item_score("D2", 0, 1)])
        plan = plan_turn(session, _request(), output, message_index=1, existing_scores={"D1": 0})

        assert not plan.should_follow_up
        assert plan.next_state == InterviewState.ASK_ITEM
        assert plan.next_item_id == "ANG1"
        qs = plan.commit.patch.question_state
        assert qs is not None
        assert qs.current_item_id == "ANG1"
        assert qs.completed_items == ["D1", "D2"]

    def test_follow_up_used_moves_on(self) -> None:
        """The answer to a follow-up never triggers a second one."""
        session = _answered(state=InterviewState.FOLLOW_UP, follow_up_used=["D2"])
        output = ScoringOutput(per_item=[item_score("D2", 4, 9)])
        plan = plan_turn(session, _request(), output, message_index=1)

        assert not plan.should_follow_up
        assert plan.next_state == InterviewState.ASK_ITEM
        kinds = [e.kind for e in plan.commit.events]
        assert EventKind.FOLLOW_UP_STARTED not in kinds

    def test_extra_quotes_truncated_to_three(self) -> None:
        """A scorer citing four quotes still yields a response with three."""
        quotes = ["feeling", "really down", "most days", "been feeling"]
        output = ScoringOutput(per_item=[item_score("D2", 2, 2, quotes)])
        plan = plan_turn(_answered(), _request(), output, message_index=1)

        (response,) = plan.item_responses
        assert response.evidence_quotes == quotes[:3]
        assert response.evidence is not None
        assert len(response.evidence.spans) <= 3

    def test_last_item_goes_to_report(self) -> None:
        """Completing the last pending item without follow-up ends in REPORT."""
        done = [i for i in ALL_ITEM_IDS if i != "SUI1"]
        session = _answered(item_id="SUI1", text="No, never.", completed=done)
        output = ScoringOutput(per_item=[item_score("SUI1", 0, 1, ["never"])])
        plan = plan_turn(session, _request("SUI1", "No, never."), output, message_index=1)

        assert plan.next_state == InterviewState.REPORT
        assert plan.status == SessionStatus.COMPLETED
        assert plan.commit.patch.completed_at is not None
        qs = plan.commit.patch.question_state
        assert qs is not None
        assert qs.pending_items == []
        assert qs.current_item_id is None

    def test_last_item_beats_follow_up(self) -> None:
        """With nothing pending the interview completes even when the answer is ambiguous."""
        done = [i for i in ALL_ITEM_IDS if i != "SUB3"]
        session = _answered(item_id="SUB3", text="Sometimes", completed=done)
        output = ScoringOutput(per_item=[item_score("SUB3", 3, 9)])
        plan = plan_turn(session, _request("SUB3", "Sometimes"), output, message_index=1)
        assert plan.next_state == InterviewState.REPORT

    def test_critical_risk_patch_stops(self) -> None:
        """A scorer-detected critical flag forces SAFETY_STOP."""
        session = _answered()
        output = ScoringOutput(
            per_item=[item_score("D2", 3, 2)],
            risk_flags_patch=RiskFlagsPatch(suicidality_mentioned=True),
        )
        plan = plan_turn(session, _request(), output, message_index=1)

        assert plan.next_state == InterviewState.SAFETY_STOP
        assert plan.status == SessionStatus.TERMINATED_FOR_SAFETY
        assert plan.commit.patch.risk_flags == RiskFlagsPatch(suicidality_mentioned=True)
        assert EventKind.SAFETY_STOP in [e.kind for e in plan.commit.events]

    def test_substance_flag_does_not_stop(self) -> None:
        """Non-critical flags are merged without stopping."""
        session = _answered()
        output = ScoringOutput(
            per_item=[item_score("D2", 0, 1)],
            risk_flags_patch=RiskFlagsPatch(substance_abuse_signal=True),
        )
        plan = plan_turn(session, _request(), output, message_index=1)
        assert plan.next_state == InterviewState.ASK_ITEM
        assert plan.commit.patch.risk_flags == RiskFlagsPatch(substance_abuse_signal=True)

    def test_additional_items_completed(self) -> None:
        """One answer can complete several items."""
        text = "I'm down and I can't sleep"
        session = _answered(text=text)
        output = ScoringOutput(
            per_item=[item_score("D2", 1, 2, ["down"]), item_score("SLP1", 1, 2, ["can't sleep"])]
        )
        plan = plan_turn(session, _request("D2", text, "SLP1"), output, message_index=1)

        assert [r.item_id for r in plan.item_responses] == ["D2", "SLP1"]
        qs = plan.commit.patch.question_state
        assert qs is not None
        assert {"D2", "SLP1"} <= set(qs.completed_items)

    def test_unrequested_items_dropped(self) -> None:
        """Scores for items nobody asked about are dropped."""
        session = _answered()
        output = ScoringOutput(per_item=[item_score("D2", 0, 1), item_score("ANX1", 2, 2)])
        plan = plan_turn(session, _request(), output, message_index=1)

        assert plan.dropped_item_ids == ["ANX1"]
        assert [r.item_id for r in plan.item_responses] == ["D2"]

    def test_missing_primary_is_oracle_error(self) -> None:
        """The scorer must score the primary item."""
        session = _answered()
        output = ScoringOutput(per_item=[])
        with pytest.raises(OracleError, match="D2"):
            plan_turn(session, _request(), output, message_index=1)

    def test_evidence_from_interviewer_question_is_inferred(self) -> None:
        """A quote lifted from the question is discarded."""
        session = _answered()
        output = ScoringOutput(
            per_item=[item_score("D2", 2, 3, ["Have you been feeling down?"])]
        )
        plan = plan_turn(session, _request(), output, message_index=1)
        evidence = plan.item_responses[0].evidence
        assert evidence is not None
        assert evidence.type == EvidenceType.INFERRED

    def test_evidence_references_patient_message(self) -> None:
        """Direct evidence points at the scored message."""
        session = _answered()
        output = ScoringOutput(per_item=[item_score("D2", 2, 3, ["really down"])])
        plan = plan_turn(session, _request(), output, message_index=1)
        evidence = plan.item_responses[0].evidence
        assert evidence is not None
        assert evidence.type == EvidenceType.DIRECT_SPAN
        assert evidence.message_index == 1

    def test_expected_version_from_session(self) -> None:
        """The commit is guarded by the version it was planned from."""
        session = _answered().model_copy(update={"version": 7})
        plan = plan_turn(session, _request(), ScoringOutput(per_item=[item_score("D2")]), 1)
        assert plan.commit.expected_version == 7

    @pytest.mark.parametrize(
        "state", [InterviewState.INTRO, InterviewState.REPORT, InterviewState.SAFETY_STOP]
    )
    def test_unscorable_state(self, state: InterviewState) -> None:
        """Scoring outside the interview phases is a caller bug."""
        session = _answered(state=state)
        with pytest.raises(InvariantViolation):
            plan_turn(session, _request(), ScoringOutput(per_item=[item_score("D2")]), 1)

    def test_message_index_must_be_patient(self) -> None:
        """The index must point at the patient's answer."""
        session = _answered()
        with pytest.raises(InvariantViolation, match="not a patient message"):
            plan_turn(session, _request(), ScoringOutput(per_item=[item_score("D2")]), 0)

    def test_violation_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        """Invariant failures are logged before they are raised."""
        session = _answered()
        with caplog.at_level(logging.WARNING, logger="crosscut.interview.scoring"):
            with pytest.raises(InvariantViolation):
                plan_turn(session, _request(), ScoringOutput(per_item=[item_score("D2")]), 0)
        assert "Message 0 is not a patient message" in caplog.text

    def test_message_index_in_bounds(self) -> None:
        """Out-of-range indexes are rejected."""
        session = _answered()
        with pytest.raises(InvariantViolation, match="outside the transcript"):
            plan_turn(session, _request(), ScoringOutput(per_item=[item_score("D2")]), 5)

    def test_custom_thresholds(self) -> None:
        """Follow-up thresholds come from the config."""
        session = _answered()
        output = ScoringOutput(per_item=[item_score("D2", 3, 2)])
        config = EngineConfig(follow_up_score_threshold=4)
        plan = plan_turn(session, _request(), output, message_index=1, config=config)
        assert not plan.should_follow_up


def test_find_patient_message() -> None:
    """Latest patient entry with the same text."""
    transcript = [
        TranscriptEntry(role=Role.PATIENT, text="yes"),
        TranscriptEntry(role=Role.INTERVIEWER, text="yes"),
        TranscriptEntry(role=Role.PATIENT, text="yes"),
        TranscriptEntry(role=Role.INTERVIEWER, text="ok"),
    ]
    assert find_patient_message(transcript, "yes") == 2
    assert find_patient_message(transcript, "no") is None


class TestScoringOrchestrator:
    """Test ScoringOrchestrator with a store and a scripted scorer."""

    def _store_with(self, session: Session) -> InMemorySessionStore:
        store = InMemorySessionStore()
        created = store.create_session(session.conversation_id)
        store.update_session(
            session.conversation_id,
            SessionPatch(question_state=session.question_state),
            expected_version=created.version,
        )
        for entry in session.transcript:
            store.append_transcript_entry(session.conversation_id, entry)
        return store

    async def test_commits_scores_and_phase(self) -> None:
        """Scores are persisted and the session moves on."""
        store = self._store_with(_answered())
        scorer = ScriptedItemScorer()
        scorer.outputs.append(ScoringOutput(per_item=[item_score("D2", 3, 2, ["really down"])]))
        orchestrator = ScoringOrchestrator(store, scorer)

        result = await orchestrator.score_response("conv-1", _request())

        assert result.next_state == InterviewState.FOLLOW_UP
        assert result.session.state == InterviewState.FOLLOW_UP
        persisted = store.get_item_responses(result.session.id)
        assert [r.item_id for r in persisted] == ["D2"]
        assert persisted[0].score == 3

    async def test_four_quotes_commit_three(self) -> None:
        """Overflowing quotes do not lose the turn."""
        store = self._store_with(_answered())
        scorer = ScriptedItemScorer()
        scorer.outputs.append(
            ScoringOutput(
                per_item=[item_score("D2", 1, 2, ["I've", "been", "really down", "most days"])]
            )
        )
        orchestrator = ScoringOrchestrator(store, scorer)

        result = await orchestrator.score_response("conv-1", _request())

        (persisted,) = store.get_item_responses(result.session.id)
        assert persisted.evidence_quotes == ["I've", "been", "really down"]

    async def test_context_window_excludes_scored_message(self) -> None:
        """The scorer sees the entries before the response, capped by config."""
        store = self._store_with(_answered())
        scorer = ScriptedItemScorer()
        orchestrator = ScoringOrchestrator(store, scorer, config=EngineConfig(context_messages=1))

        await orchestrator.score_response("conv-1", _request(), message_index=1)

        item_ids, text, context = scorer.calls[0]
        assert item_ids == ["D2"]
        assert text == DOWN
        assert [e.role for e in context] == [Role.INTERVIEWER]

    async def test_scorer_failure_leaves_session_unchanged(self) -> None:
        """A failing scorer writes nothing."""
        store = self._store_with(_answered())
        before = store.require_session("conv-1")
        scorer = ScriptedItemScorer()
        scorer.error = RuntimeError("model offline")
        orchestrator = ScoringOrchestrator(store, scorer)

        with pytest.raises(OracleError, match="model offline"):
            await orchestrator.score_response("conv-1", _request())

        assert store.require_session("conv-1") == before
        assert store.get_item_responses(before.id) == []

    async def test_scorer_timeout(self) -> None:
        """A slow scorer becomes an OracleError."""
        store = self._store_with(_answered())

        class SlowScorer(ScriptedItemScorer):
            async def score_items(
                self,
                item_ids: Sequence[str],
                patient_text: str,
                recent_context: Sequence[TranscriptEntry],
            ) -> ScoringOutput:
                await asyncio.sleep(1)
                return await super().score_items(item_ids, patient_text, recent_context)

        orchestrator = ScoringOrchestrator(
            store, SlowScorer(), config=EngineConfig(scoring_timeout_seconds=0.01)
        )
        with pytest.raises(OracleError, match="timed out"):
            await orchestrator.score_response("conv-1", _request())

    async def test_unknown_item_rejected_before_oracle(self) -> None:
        """Invalid requests never reach the scorer."""
        store = self._store_with(_answered())
        scorer = ScriptedItemScorer()
        orchestrator = ScoringOrchestrator(store, scorer)

        with pytest.raises(InputValidationError):
            await orchestrator.score_response("conv-1", _request("D2", DOWN, "NOPE"))
        assert scorer.calls == []

    async def test_response_must_be_in_transcript(self) -> None:
        """Without an index the response is located in the transcript."""
        store = self._store_with(_answered())
        orchestrator = ScoringOrchestrator(store, ScriptedItemScorer())
        with pytest.raises(InvariantViolation, match="not in the transcript"):
            await orchestrator.score_response("conv-1", _request("D2", "something else"))
