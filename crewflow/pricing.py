"""
Per-model pricing used for cost estimates on agent outputs.

Prices are USD per one million tokens (input, output). Model ids may carry a
litellm provider prefix (``openrouter/openai/gpt-4o-mini``); only the last
path segment is used for lookup.
"""

from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class ModelPricing:
    input_per_million: float
    output_per_million: float


MODEL_PRICING: Dict[str, ModelPricing] = {
    # Anthropic
    "claude-opus-4-5-20251101": ModelPricing(15.0, 75.0),
    "claude-sonnet-4-5-20250929": ModelPricing(3.0, 15.0),
    "claude-sonnet-4-20250514": ModelPricing(3.0, 15.0),
    "claude-haiku-4-5-20251001": ModelPricing(0.8, 4.0),
    # OpenAI
    "gpt-4o": ModelPricing(2.5, 10.0),
    "gpt-4o-mini": ModelPricing(0.15, 0.6),
    "gpt-4-turbo": ModelPricing(10.0, 30.0),
    "gpt-4-turbo-preview": ModelPricing(10.0, 30.0),
    "gpt-4": ModelPricing(30.0, 60.0),
    "gpt-3.5-turbo": ModelPricing(0.5, 1.5),
    # Google
    "gemini-pro": ModelPricing(0.5, 1.5),
    "gemini-1.5-pro": ModelPricing(1.25, 5.0),
}


def get_model_pricing(model: Optional[str]) -> Optional[ModelPricing]:
    if not model:
        return None
    return MODEL_PRICING.get(model) or MODEL_PRICING.get(model.rsplit("/", 1)[-1])


def estimate_cost(model: Optional[str], input_tokens: int, output_tokens: int) -> float:
    """Return the USD cost of a call, or 0.0 when the model has no known pricing."""
    pricing = get_model_pricing(model)
    if pricing is None:
        return 0.0
    return (input_tokens / 1_000_000) * pricing.input_per_million + (
        output_tokens / 1_000_000
    ) * pricing.output_per_million


def format_cost(cost: float) -> str:
    if cost < 0.01:
        return f"${cost:.6f}"
    return f"${cost:.4f}"
