"""Tests for the Pydantic AI backed oracles."""

import pytest
from pydantic_ai.models.test import TestModel

from crosscut.errors import OracleError
from crosscut.interview.models import Role, TranscriptEntry
from crosscut.oracles.base import SafetyAnalysis, ScoringOutput, Urgency
from crosscut.oracles.llm import (
    LLMItemScorer,
    LLMSafetyClassifier,
    build_item_scorer,
    build_safety_classifier,
)
from crosscut.providers.base import AgentProvider, AgentResult


class BrokenProvider[OutputT](AgentProvider[OutputT]):
    """Provider whose every call fails."""

    async def invoke(self, prompt: str, **kwargs: object) -> AgentResult[OutputT]:
        raise ConnectionError("upstream unavailable")

    @property
    def model_name(self) -> str:
        return "broken:model"


class TestUrgency:
    """Test Urgency.forces_stop."""

    @pytest.mark.parametrize(
        ("urgency", "stops"),
        [
            (Urgency.NONE, False),
            (Urgency.LOW, False),
            (Urgency.MEDIUM, False),
            (Urgency.HIGH, True),
            (Urgency.CRITICAL, True),
        ],
    )
    def test_forces_stop(self, urgency: Urgency, stops: bool) -> None:
        assert urgency.forces_stop is stops


class TestLLMSafetyClassifier:
    """Test LLMSafetyClassifier."""

    async def test_structured_verdict(self) -> None:
        """The agent's structured output is returned as SafetyAnalysis."""
        model = TestModel(
            custom_output_args={
                "safe": False,
                "risk_flags": {"suicidality_mentioned": True},
                "urgency": "critical",
                "reasoning": "explicit intent",
            }
        )
        classifier = build_safety_classifier(model)

        analysis = await classifier.classify("I want to end my life")

        assert isinstance(analysis, SafetyAnalysis)
        assert not analysis.safe
        assert analysis.risk_flags.suicidality_mentioned is True
        assert analysis.urgency.forces_stop
        assert classifier.model_name == "test:test"

    async def test_provider_failure_is_oracle_error(self) -> None:
        classifier = LLMSafetyClassifier(BrokenProvider[SafetyAnalysis]())
        with pytest.raises(OracleError, match="Safety classifier failed: upstream unavailable"):
            await classifier.classify("hello")


class TestLLMItemScorer:
    """Test LLMItemScorer."""

    async def test_structured_scores(self) -> None:
        model = TestModel(
            custom_output_args={
                "per_item": [
                    {
                        "item_id": "D1",
                        "score": 2,
                        "ambiguity": 3,
                        "evidence_quotes": ["more than half the days"],
                    }
                ],
                "risk_flags_patch": {},
            }
        )
        scorer = build_item_scorer(model)
        context = [TranscriptEntry(role=Role.INTERVIEWER, text="Little interest?")]

        output = await scorer.score_items(["D1"], "More than half the days, yes", context)

        assert isinstance(output, ScoringOutput)
        assert output.per_item[0].item_id == "D1"
        assert output.per_item[0].score == 2
        assert output.per_item[0].evidence_quotes == ["more than half the days"]

    async def test_more_than_three_quotes_accepted(self) -> None:
        """Quote overflow is left to the engine to truncate."""
        quotes = ["one", "two", "three", "four"]
        model = TestModel(
            custom_output_args={
                "per_item": [
                    {"item_id": "D1", "score": 1, "ambiguity": 2, "evidence_quotes": quotes}
                ],
            }
        )
        output = await build_item_scorer(model).score_items(["D1"], "one two three four", [])
        assert output.per_item[0].evidence_quotes == quotes

    async def test_unknown_items_rejected_before_call(self) -> None:
        """No model call is made when none of the ids are registry items."""
        scorer = LLMItemScorer(BrokenProvider[ScoringOutput]())
        with pytest.raises(OracleError, match="No known items to score"):
            await scorer.score_items(["ZZ1"], "text", [])

    async def test_provider_failure_is_oracle_error(self) -> None:
        scorer = LLMItemScorer(BrokenProvider[ScoringOutput]())
        with pytest.raises(OracleError, match="Item scorer failed"):
            await scorer.score_items(["D1"], "text", [])
        assert scorer.model_name == "broken:model"
