"""
AI product extraction: model tiers, the extraction service seam and the orchestrator.
"""

from .costs import ModelTier, FAST, CAPABLE, get_model_tiers, calculate_cost, estimate_cost
from .llm_client import ExtractionService, AnthropicExtractionService, get_extraction_service
from .orchestrator import (
    ExtractionOrchestrator,
    ParsedResponse,
    select_model_tier,
    estimate_product_count,
    parse_response,
    normalize_product,
)

__all__ = [
    'ModelTier', 'FAST', 'CAPABLE', 'get_model_tiers', 'calculate_cost', 'estimate_cost',
    'ExtractionService', 'AnthropicExtractionService', 'get_extraction_service',
    'ExtractionOrchestrator', 'ParsedResponse', 'select_model_tier',
    'estimate_product_count', 'parse_response', 'normalize_product',
]
