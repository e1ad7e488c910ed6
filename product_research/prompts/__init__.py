"""
LLM prompts and their response models.
"""

from .product_extraction import (
    DEFAULT_INSTRUCTIONS, SEO_DIRECTIVE, SYSTEM_PROMPT, build_user_prompt, augment_instructions,
)
from .product_description import get_description_prompt
from .product_enrichment import EnrichmentData, PriceRange, get_enrichment_prompt
from .product_validation import ValidationReport, get_validation_prompt

__all__ = [
    'DEFAULT_INSTRUCTIONS', 'SEO_DIRECTIVE', 'SYSTEM_PROMPT', 'build_user_prompt', 'augment_instructions',
    'get_description_prompt',
    'EnrichmentData', 'PriceRange', 'get_enrichment_prompt',
    'ValidationReport', 'get_validation_prompt',
]
