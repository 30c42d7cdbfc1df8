"""Oracle contracts.

The engine never infers scores or risk itself. It asks two pluggable oracles:
a SafetyClassifier, called on every patient message, and an ItemScorer that
maps an answer onto 0-4 scores with ambiguity ratings and candidate quotes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from crosscut.interview.models import RiskFlagsPatch, TranscriptEntry


class Urgency(StrEnum):
    """Urgency of a safety concern. HIGH and CRITICAL always mean unsafe."""

    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def forces_stop(self) -> bool:
        return self in (Urgency.HIGH, Urgency.CRITICAL)


class SafetyAnalysis(BaseModel):
    """Safety classifier verdict for one patient message."""

    safe: bool = Field(description="False if crisis signals were detected")
    risk_flags: RiskFlagsPatch = Field(
        default_factory=RiskFlagsPatch, description="Risk indicators found in the message"
    )
    urgency: Urgency = Field(default=Urgency.NONE, description="How urgent the concern is")
    reasoning: str = Field(default="", description="Brief explanation of the verdict")

    model_config = ConfigDict(frozen=True)


class ItemScore(BaseModel):
    """Scorer output for a single item."""

    item_id: str = Field(description="Registry item id, e.g. D1")
    score: int = Field(ge=0, le=4, description="0 Not at all ... 4 Nearly every day")
    ambiguity: int = Field(ge=1, le=10, description="1 very clear ... 10 cannot determine")
    evidence_quotes: list[str] = Field(
        default_factory=list,
        description="Exact substrings of the patient's response",
    )
    evidence_summary: str | None = Field(default=None, description="One-line evidence summary")
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    reasoning: str = Field(default="", description="How the words were mapped to the score")

    model_config = ConfigDict(frozen=True)


class ScoringOutput(BaseModel):
    """Scorer output for one patient response."""

    per_item: list[ItemScore] = Field(default_factory=list)
    risk_flags_patch: RiskFlagsPatch = Field(default_factory=RiskFlagsPatch)

    model_config = ConfigDict(frozen=True)


class SafetyClassifier(ABC):
    """Natural-language risk detector."""

    model_name: str = "unknown"

    @abstractmethod
    async def classify(self, patient_text: str) -> SafetyAnalysis:
        """Classify a patient message for suicidality, self-harm and violence risk."""
        ...


class ItemScorer(ABC):
    """Natural-language to 0-4 score mapper."""

    model_name: str = "unknown"

    @abstractmethod
    async def score_items(
        self,
        item_ids: Sequence[str],
        patient_text: str,
        recent_context: Sequence[TranscriptEntry],
    ) -> ScoringOutput:
        """Score a patient response against the given items.

        Args:
            item_ids: Items the response should be scored for
            patient_text: The patient's response
            recent_context: Preceding transcript entries, oldest first

        Returns:
            One ItemScore per item plus any risk flags noticed along the way.
        """
        ...
