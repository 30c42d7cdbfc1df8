"""Oracles: pluggable safety classification and item scoring."""

from crosscut.oracles.base import (
    ItemScore,
    ItemScorer,
    SafetyAnalysis,
    SafetyClassifier,
    ScoringOutput,
    Urgency,
)
from crosscut.oracles.llm import (
    LLMItemScorer,
    LLMSafetyClassifier,
    build_item_scorer,
    build_safety_classifier,
)
from crosscut.oracles.prompts import PROMPT_VERSION, SAFETY_ESCALATION_SCRIPT

__all__ = [
    "PROMPT_VERSION",
    "SAFETY_ESCALATION_SCRIPT",
    "ItemScore",
    "ItemScorer",
    "LLMItemScorer",
    "LLMSafetyClassifier",
    "SafetyAnalysis",
    "SafetyClassifier",
    "ScoringOutput",
    "Urgency",
    "build_item_scorer",
    "build_safety_classifier",
]
