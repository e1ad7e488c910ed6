"""
Cost Module
===========

Model tiers and their pricing, token-to-dollar conversion and pre-flight
cost estimates.
"""

import math
from dataclasses import dataclass
from typing import Dict, Optional

from ..config import config
from ..models import TokenUsage

FAST = "fast"
CAPABLE = "capable"

# Claude 3.5 Haiku pricing (per 1M tokens)
FAST_INPUT_COST_PER_M = 0.80
FAST_OUTPUT_COST_PER_M = 4.0

# Claude Sonnet 4 pricing (per 1M tokens)
CAPABLE_INPUT_COST_PER_M = 3.0
CAPABLE_OUTPUT_COST_PER_M = 15.0

# Server-side web search: $10 per 1,000 searches
WEB_SEARCH_COST = 0.01

# Rough output size of one extracted product
OUTPUT_TOKENS_PER_PRODUCT = 500
RECOMMEND_FAST_BELOW = 0.05


@dataclass(frozen=True)
class ModelTier:
    name: str
    model: str
    input_cost_per_m: float
    output_cost_per_m: float


def get_model_tiers() -> Dict[str, ModelTier]:
    return {
        FAST: ModelTier(FAST, config.FAST_MODEL, FAST_INPUT_COST_PER_M, FAST_OUTPUT_COST_PER_M),
        CAPABLE: ModelTier(CAPABLE, config.CAPABLE_MODEL, CAPABLE_INPUT_COST_PER_M, CAPABLE_OUTPUT_COST_PER_M),
    }


def tier_for_model(model: str) -> ModelTier:
    """Tier of a configured model; unknown models are priced as the capable tier"""
    tiers = get_model_tiers()
    for tier in tiers.values():
        if tier.model == model:
            return tier
    capable = tiers[CAPABLE]
    return ModelTier(CAPABLE, model, capable.input_cost_per_m, capable.output_cost_per_m)


def calculate_cost(usage: Optional[TokenUsage], tier: ModelTier) -> float:
    """Calculate cost in USD from token counts. No usage means no cost."""
    if usage is None:
        return 0.0
    input_cost = (usage.prompt_tokens / 1_000_000) * tier.input_cost_per_m
    output_cost = (usage.completion_tokens / 1_000_000) * tier.output_cost_per_m
    search_cost = usage.search_requests * WEB_SEARCH_COST
    return input_cost + output_cost + search_cost


def estimate_cost(prompt_text: str, expected_products: int) -> dict:
    """Pre-flight estimate for both tiers from prompt length and product count"""
    tiers = get_model_tiers()
    usage = TokenUsage(
        prompt_tokens=math.ceil(len(prompt_text) / 4),
        completion_tokens=expected_products * OUTPUT_TOKENS_PER_PRODUCT,
    )
    fast_cost = calculate_cost(usage, tiers[FAST])
    capable_cost = calculate_cost(usage, tiers[CAPABLE])

    return {
        "input_tokens": usage.prompt_tokens,
        "output_tokens": usage.completion_tokens,
        "fast_cost": fast_cost,
        "capable_cost": capable_cost,
        "recommended": FAST if fast_cost < RECOMMEND_FAST_BELOW else CAPABLE,
    }
