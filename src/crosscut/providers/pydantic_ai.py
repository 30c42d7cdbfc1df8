"""Pydantic AI provider implementation.

Wraps a Pydantic AI Agent for structured oracle output, usage tracking, cost
calculation, and timing.
"""

import logging
import time
from typing import Any

from pydantic_ai import Agent
from pydantic_ai.models import KnownModelName, Model
from pydantic_ai.models.test import TestModel

from crosscut.providers.base import AgentProvider, AgentResult, TokenUsage
from crosscut.providers.pricing import calculate_cost

logger = logging.getLogger(__name__)


class PydanticAIProvider[OutputT](AgentProvider[OutputT]):
    """Pydantic AI implementation of AgentProvider.

    Example:
        provider = PydanticAIProvider(
            model="openai:gpt-4o-mini",
            output_type=SafetyAnalysis,
            system_prompt=SAFETY_SYSTEM_PROMPT,
        )
    """

    def __init__(
        self,
        model: Model | KnownModelName | TestModel | str,
        output_type: type[OutputT],
        system_prompt: str = "",
    ) -> None:
        """Initialize provider with model and output type.

        Args:
            model: Pydantic AI model (Model, shorthand string, or TestModel)
            output_type: Type of structured output (BaseModel subclass or str)
            system_prompt: System prompt for the agent
        """
        self._agent: Agent[None, OutputT] = Agent(
            model=model, output_type=output_type, system_prompt=system_prompt
        )
        self._model_name, self._provider_name = self._parse_model_name(model)

    @property
    def model_name(self) -> str:
        """Model identifier with provider prefix, e.g. "openai:gpt-4o-mini"."""
        return f"{self._provider_name}:{self._model_name}"

    def _parse_model_name(self, model: Model | KnownModelName | TestModel | str) -> tuple[str, str]:
        """Extract model name and provider from model identifier.

        Args:
            model: Model instance or "provider:model" string

        Returns:
            Tuple of (model_name, provider_name)
        """
        if isinstance(model, TestModel):
            return ("test", "test")

        model_str = model if isinstance(model, str) else str(model)
        if ":" in model_str:
            provider, model_name = model_str.split(":", 1)
            return (model_name, provider)
        return (model_str, "unknown")

    async def invoke(self, prompt: str, **kwargs: Any) -> AgentResult[OutputT]:
        """Invoke the agent with a prompt.

        Args:
            prompt: User prompt
            **kwargs: Additional arguments (passed to agent.run)

        Returns:
            AgentResult with output, usage, cost, and timing
        """
        start = time.monotonic()
        result = await self._agent.run(prompt, **kwargs)
        duration_ms = int((time.monotonic() - start) * 1000)

        run_usage = result.usage()
        input_tokens = run_usage.input_tokens or 0
        output_tokens = run_usage.output_tokens or 0
        usage = TokenUsage(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=run_usage.total_tokens or 0,
            requests=run_usage.requests or 1,
            cost_usd=calculate_cost(
                TokenUsage(input_tokens=input_tokens, output_tokens=output_tokens),
                self._model_name,
            ),
        )
        logger.debug(
            "%s call: %d in / %d out tokens, %d ms",
            self.model_name,
            usage.input_tokens,
            usage.output_tokens,
            duration_ms,
        )

        return AgentResult(
            output=result.output,
            usage=usage,
            model=self._model_name,
            provider=self._provider_name,
            duration_ms=duration_ms,
        )
