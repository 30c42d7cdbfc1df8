"""Crosscut providers: AI provider abstraction layer for the oracles."""

from crosscut.providers.base import AgentProvider, AgentResult, TokenUsage
from crosscut.providers.config import ModelRoster, ProviderConfig, resolve_default_model
from crosscut.providers.pricing import calculate_cost
from crosscut.providers.pydantic_ai import PydanticAIProvider

__all__ = [
    "AgentProvider",
    "AgentResult",
    "ModelRoster",
    "ProviderConfig",
    "PydanticAIProvider",
    "TokenUsage",
    "calculate_cost",
    "resolve_default_model",
]
