"""Provider configuration models.

Defines per-provider configuration and the per-role model roster for the two
oracles (safety classification and item scoring).
"""

import os

from pydantic import BaseModel


def resolve_default_model() -> str:
    """Resolve the default AI model based on available credentials.

    Checks in order:
    1. ANTHROPIC_API_KEY set → "anthropic:claude-sonnet-4-5"
    2. OPENAI_API_KEY set → "openai:gpt-4o-mini"
    3. Neither → raise RuntimeError with clear instructions

    Returns:
        Full model string ready for PydanticAIProvider.
    """
    if os.environ.get("ANTHROPIC_API_KEY"):
        return "anthropic:claude-sonnet-4-5"
    if os.environ.get("OPENAI_API_KEY"):
        return "openai:gpt-4o-mini"

    msg = (
        "No AI provider configured. Either:\n"
        "  1. Set ANTHROPIC_API_KEY environment variable, or\n"
        "  2. Set OPENAI_API_KEY environment variable, or\n"
        "  3. Pass --model explicitly (e.g. --model openai:gpt-4o-mini)"
    )
    raise RuntimeError(msg)


class ProviderConfig(BaseModel):
    """Configuration for a single AI provider/model."""

    provider: str = "openai"
    model: str = "gpt-4o-mini"
    timeout_seconds: int = 60

    @property
    def model_string(self) -> str:
        """Shorthand "provider:model" string understood by Pydantic AI."""
        if self.provider == "unknown":
            return self.model
        return f"{self.provider}:{self.model}"


class ModelRoster(BaseModel):
    """Per-role model assignment.

    - safety: risk classification on every patient message (fast, cheap)
    - scoring: maps answers to 0-4 scores with evidence quotes
    """

    safety: ProviderConfig = ProviderConfig(timeout_seconds=30)
    scoring: ProviderConfig = ProviderConfig()

    @classmethod
    def from_model(cls, model: str) -> "ModelRoster":
        """Use one "provider:model" string for both roles."""
        provider, _, name = model.partition(":")
        if not name:
            provider, name = "unknown", model
        return cls(
            safety=ProviderConfig(provider=provider, model=name, timeout_seconds=30),
            scoring=ProviderConfig(provider=provider, model=name),
        )
