"""Cost calculation for oracle token usage.

Prices are per 1M tokens (USD). Cache pricing: write = 1.25x input, read = 0.1x input.
"""

from typing import Protocol


class UsageProtocol(Protocol):
    """Protocol for token usage to avoid circular imports with base.py."""

    input_tokens: int
    output_tokens: int
    cache_read_tokens: int
    cache_write_tokens: int


# Prices per 1M tokens (USD)
PROVIDER_PRICES: dict[str, dict[str, float]] = {
    "claude-sonnet-4-5": {
        "input": 3.00,
        "output": 15.00,
        "cache_write": 3.75,
        "cache_read": 0.30,
    },
    "claude-haiku-4-5": {
        "input": 1.00,
        "output": 5.00,
        "cache_write": 1.25,
        "cache_read": 0.10,
    },
    "gpt-4o-mini": {
        "input": 0.15,
        "output": 0.60,
        "cache_write": 0.15,
        "cache_read": 0.075,
    },
    "gpt-4o": {
        "input": 2.50,
        "output": 10.00,
        "cache_write": 2.50,
        "cache_read": 1.25,
    },
}


def calculate_cost(usage: UsageProtocol, model: str) -> float:
    """Calculate cost in USD for the given usage and model.

    Args:
        usage: Token usage counts (input, output, cache read/write)
        model: Model name without provider prefix (e.g., "gpt-4o-mini")

    Returns:
        Total cost in USD. Returns 0.0 for unknown models or zero tokens.
    """
    prices = PROVIDER_PRICES.get(model)
    if prices is None:
        return 0.0

    return (
        usage.input_tokens * prices["input"]
        + usage.output_tokens * prices["output"]
        + usage.cache_write_tokens * prices["cache_write"]
        + usage.cache_read_tokens * prices["cache_read"]
    ) / 1_000_000
