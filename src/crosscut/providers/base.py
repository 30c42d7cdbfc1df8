"""Core provider abstractions.

This module defines the base types the oracles build on:
- TokenUsage: token counts and cost of one oracle call
- AgentResult: structured output plus usage and timing
- AgentProvider: abstract base class for provider implementations

No pydantic-ai dependency here, so oracles and tests can stub providers freely.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel, ConfigDict


class TokenUsage(BaseModel):
    """Token usage and cost of an oracle call.

    Maps directly to Pydantic AI RunUsage. All token counts default to 0.
    """

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    cache_read_tokens: int = 0
    cache_write_tokens: int = 0
    requests: int = 1
    cost_usd: float | None = None

    model_config = ConfigDict(frozen=True)


class AgentResult[OutputT](BaseModel):
    """Result from an agent invocation.

    Generic over output type: SafetyAnalysis and ScoringOutput for the oracles,
    str for free-text calls.
    """

    output: OutputT
    usage: TokenUsage
    model: str
    provider: str
    duration_ms: int


class AgentProvider[OutputT](ABC):
    """Abstract base class for agent providers.

    Generic over OutputT, the type of structured output the agent returns.
    """

    @abstractmethod
    async def invoke(self, prompt: str, **kwargs: object) -> AgentResult[OutputT]:
        """Invoke the agent with a prompt.

        Args:
            prompt: User prompt to send to the agent
            **kwargs: Additional provider-specific arguments

        Returns:
            AgentResult with typed output, usage stats, and metadata
        """
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Model identifier recorded in session metadata."""
        ...
