"""Tests for Pydantic AI provider implementation."""

from pydantic_ai.models.test import TestModel

from crosscut.oracles.base import SafetyAnalysis, Urgency
from crosscut.providers.pydantic_ai import PydanticAIProvider


class TestPydanticAIProvider:
    """Test PydanticAIProvider with TestModel."""

    async def test_invoke_returns_agent_result(self) -> None:
        """Invoke returns AgentResult with correct structure."""
        provider = PydanticAIProvider(
            model=TestModel(), output_type=str, system_prompt="Test system prompt"
        )
        result = await provider.invoke("test prompt")

        assert isinstance(result.output, str)
        assert result.model == "test"
        assert result.provider == "test"
        assert result.duration_ms >= 0
        assert result.usage.requests == 1

    async def test_cost_zero_for_test_model(self) -> None:
        """TestModel is not in the price table, so cost is 0.0."""
        provider = PydanticAIProvider(model=TestModel(), output_type=str)
        result = await provider.invoke("test prompt")
        assert result.usage.cost_usd == 0.0

    async def test_structured_output(self) -> None:
        """Structured output is validated into the output type."""
        model = TestModel(
            custom_output_args={"safe": False, "urgency": "critical", "reasoning": "plan"}
        )
        provider = PydanticAIProvider(model=model, output_type=SafetyAnalysis)
        result = await provider.invoke("I have a plan")

        assert isinstance(result.output, SafetyAnalysis)
        assert result.output.urgency == Urgency.CRITICAL

    def test_model_name_from_test_model(self) -> None:
        provider = PydanticAIProvider(model=TestModel(), output_type=str)
        assert provider.model_name == "test:test"

    def test_model_name_from_shorthand(self) -> None:
        provider = PydanticAIProvider(model=TestModel(), output_type=str)
        model_name, provider_name = provider._parse_model_name("anthropic:claude-haiku-4-5")
        assert model_name == "claude-haiku-4-5"
        assert provider_name == "anthropic"

    def test_model_name_from_plain_string(self) -> None:
        """Plain strings have no provider prefix."""
        provider = PydanticAIProvider(model=TestModel(), output_type=str)
        model_name, provider_name = provider._parse_model_name("gpt-4o")
        assert model_name == "gpt-4o"
        assert provider_name == "unknown"

    def test_model_object_with_colon_in_repr(self) -> None:
        """Model objects are parsed through str()."""

        class MockModel:
            def __str__(self) -> str:
                return "openai:gpt-4o"

        provider = PydanticAIProvider(model=TestModel(), output_type=str)
        parsed = provider._parse_model_name(MockModel())  # type: ignore[arg-type]
        assert parsed == ("gpt-4o", "openai")
