"""Advisory cost and duration projections for a batch, computed before it runs.

Neither projection is ever reconciled against the actual spend recorded on
the job while it runs.
"""

import math

from batch_engine.domain.entities import GenerationSettings

# Model pricing per 1M tokens (USD), keyed by provider then model id.
MODEL_PRICING: dict[str, dict[str, dict[str, float]]] = {
    "openai": {
        "gpt-4o": {"input": 5.0, "output": 15.0},
        "gpt-4o-mini": {"input": 0.15, "output": 0.60},
        "gpt-4-turbo": {"input": 10.0, "output": 30.0},
    },
    "anthropic": {
        "claude-opus-4-5-20250415": {"input": 15.0, "output": 75.0},
        "claude-sonnet-4-20250514": {"input": 3.0, "output": 15.0},
        "claude-3-5-sonnet-20241022": {"input": 3.0, "output": 15.0},
        "claude-3-haiku-20240307": {"input": 0.25, "output": 1.25},
    },
    "groq": {
        "llama-3.3-70b-versatile": {"input": 0.0, "output": 0.0},
        "llama-3.1-70b-versatile": {"input": 0.0, "output": 0.0},
        "llama-3.1-8b-instant": {"input": 0.0, "output": 0.0},
        "mixtral-8x7b-32768": {"input": 0.0, "output": 0.0},
        "gemma2-9b-it": {"input": 0.0, "output": 0.0},
    },
    "google": {
        "gemini-1.5-pro": {"input": 0.0, "output": 0.0},
        "gemini-1.5-flash": {"input": 0.0, "output": 0.0},
        "gemini-2.0-flash-exp": {"input": 0.0, "output": 0.0},
    },
}

# Assumed average token counts per generated item
AVERAGE_INPUT_TOKENS = 500
AVERAGE_OUTPUT_TOKENS_BY_LENGTH: dict[str, int] = {
    "short": 700,
    "medium": 1500,
    "long": 2500,
}

DEFAULT_AVERAGE_SECONDS_PER_ITEM = 30.0
DEFAULT_ITEM_DELAY_SECONDS = 2.0


def get_model_pricing(provider: str, model: str) -> dict[str, float] | None:
    """Return {"input", "output"} USD per 1M tokens, or None when unknown."""
    return MODEL_PRICING.get(provider, {}).get(model)


def calculate_cost(provider: str, model: str, input_tokens: int, output_tokens: int) -> float:
    """Return the cost in USD for a single call, 0.0 when pricing is unknown."""
    pricing = get_model_pricing(provider, model)
    if pricing is None:
        return 0.0
    cost = (input_tokens * pricing["input"] + output_tokens * pricing["output"]) / 1_000_000
    return round(cost, 6)


def estimate_cost(item_count: int, settings: GenerationSettings | None) -> float:
    """Project the total spend for item_count items generated with settings."""
    if settings is None or item_count <= 0:
        return 0.0
    output_tokens = AVERAGE_OUTPUT_TOKENS_BY_LENGTH.get(
        settings.length, AVERAGE_OUTPUT_TOKENS_BY_LENGTH["medium"]
    )
    per_item = calculate_cost(
        settings.provider, settings.model, AVERAGE_INPUT_TOKENS, output_tokens
    )
    return per_item * item_count


def estimate_minutes(
    item_count: int,
    average_seconds_per_item: float = DEFAULT_AVERAGE_SECONDS_PER_ITEM,
    item_delay_seconds: float = DEFAULT_ITEM_DELAY_SECONDS,
) -> int:
    """Project wall-clock minutes, rounded up."""
    if item_count <= 0:
        return 0
    return math.ceil(item_count * (average_seconds_per_item + item_delay_seconds) / 60)
