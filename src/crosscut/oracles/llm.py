"""Pydantic AI backed oracles.

Each oracle owns an AgentProvider whose structured output type is the oracle's
result model, so the model's JSON is validated by pydantic before the engine
sees it. Any provider failure is re-raised as OracleError.
"""

import logging
from collections.abc import Sequence

from pydantic_ai.models import Model

from crosscut.errors import OracleError
from crosscut.interview.models import TranscriptEntry
from crosscut.oracles.base import (
    ItemScorer,
    SafetyAnalysis,
    SafetyClassifier,
    ScoringOutput,
)
from crosscut.oracles.prompts import (
    SAFETY_SYSTEM_PROMPT,
    SCORING_SYSTEM_PROMPT,
    build_safety_prompt,
    build_scoring_prompt,
)
from crosscut.providers.base import AgentProvider
from crosscut.providers.pydantic_ai import PydanticAIProvider
from crosscut.registry import get_item

logger = logging.getLogger(__name__)


class LLMSafetyClassifier(SafetyClassifier):
    """Safety classifier backed by an agent returning SafetyAnalysis."""

    def __init__(self, provider: AgentProvider[SafetyAnalysis]) -> None:
        self._provider = provider
        self.model_name = provider.model_name

    async def classify(self, patient_text: str) -> SafetyAnalysis:
        try:
            result = await self._provider.invoke(build_safety_prompt(patient_text))
        except Exception as e:
            raise OracleError(f"Safety classifier failed: {e}") from e
        logger.debug("Safety analysis cost $%.6f", result.usage.cost_usd or 0.0)
        return result.output


class LLMItemScorer(ItemScorer):
    """Item scorer backed by an agent returning ScoringOutput."""

    def __init__(self, provider: AgentProvider[ScoringOutput]) -> None:
        self._provider = provider
        self.model_name = provider.model_name

    async def score_items(
        self,
        item_ids: Sequence[str],
        patient_text: str,
        recent_context: Sequence[TranscriptEntry],
    ) -> ScoringOutput:
        items = [item for item in (get_item(i) for i in item_ids) if item is not None]
        if not items:
            raise OracleError(f"No known items to score among {list(item_ids)}")

        prompt = build_scoring_prompt(
            items,
            patient_text,
            [(entry.role.value, entry.text) for entry in recent_context],
        )
        try:
            result = await self._provider.invoke(prompt)
        except Exception as e:
            raise OracleError(f"Item scorer failed: {e}") from e
        logger.debug(
            "Scored %s with %s (cost $%.6f)",
            ", ".join(item_ids),
            self.model_name,
            result.usage.cost_usd or 0.0,
        )
        return result.output


def build_safety_classifier(model: Model | str) -> LLMSafetyClassifier:
    """Safety classifier for a Pydantic AI model or "provider:model" string."""
    provider = PydanticAIProvider(
        model=model, output_type=SafetyAnalysis, system_prompt=SAFETY_SYSTEM_PROMPT
    )
    return LLMSafetyClassifier(provider)


def build_item_scorer(model: Model | str) -> LLMItemScorer:
    """Item scorer for a Pydantic AI model or "provider:model" string."""
    provider = PydanticAIProvider(
        model=model, output_type=ScoringOutput, system_prompt=SCORING_SYSTEM_PROMPT
    )
    return LLMItemScorer(provider)
