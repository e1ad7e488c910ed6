"""
Extraction Orchestrator
=======================

Builds one prompt from instructions, parsed PDF pages and scraped vendor
pages, picks a model tier, calls the extraction service and turns the reply
into validated ExtractedProduct records.

The raw JSON reply never leaves this module: everything goes through
`normalize_product`.
"""

import json
import re
import time
from dataclasses import dataclass, field
from typing import Any, List, Optional, Union

from pydantic import ValidationError

from ..config import config
from ..logger import get_logger
from ..models import (
    ExtractedProduct, ExtractionResult, GenerationConfig,
    PageExtraction, ScrapeResult, Variant,
)
from ..prompts import (
    SYSTEM_PROMPT, build_user_prompt, augment_instructions,
    get_description_prompt,
    EnrichmentData, get_enrichment_prompt,
    ValidationReport, get_validation_prompt,
)
from .costs import FAST, CAPABLE, get_model_tiers, tier_for_model, calculate_cost
from .llm_client import ExtractionService, WEB_SEARCH

logger = get_logger('extraction')

# Tier selection thresholds
SMALL_CONTENT_CHARS = 5000
LARGE_CONTENT_CHARS = 20000
FEW_PRODUCTS = 2
MANY_PRODUCTS = 5
DEFAULT_PRODUCT_ESTIMATE = 5

# Bare `price` above this is taken to already be in cents. Prices of $10.00
# or less sent as cents (e.g. 999) get multiplied again; kept for
# compatibility with existing replies.
BARE_PRICE_CENTS_THRESHOLD = 1000

EXTRACTION_CONFIG = GenerationConfig(temperature=0.3, max_output_tokens=8000, top_k=40)
DESCRIPTION_CONFIG = GenerationConfig(temperature=0.6, max_output_tokens=400)
ENRICHMENT_CONFIG = GenerationConfig(temperature=0.2, max_output_tokens=500)
VALIDATION_CONFIG = GenerationConfig(temperature=0.2, max_output_tokens=300)

ERROR_SUGGESTIONS = ['Check if the PDF/URL content is readable', 'Try with fewer products']
PARSE_SUGGESTIONS = ['Try with fewer products or simpler instructions']

PRODUCT_BLOCK = re.compile(r'\{[\s\S]*"products"[\s\S]*\}')
JSON_BLOCK = re.compile(r'\{[\s\S]*\}')
PRODUCT_VERBS = re.compile(r'add|import|extract', re.IGNORECASE)


@dataclass
class ParsedResponse:
    products: List[ExtractedProduct] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)


def select_model_tier(content_length: int, product_count: int) -> str:
    """Small jobs use the fast tier, large or many-product jobs the capable tier"""
    if product_count <= FEW_PRODUCTS and content_length < SMALL_CONTENT_CHARS:
        return FAST
    if product_count > MANY_PRODUCTS or content_length > LARGE_CONTENT_CHARS:
        return CAPABLE
    return FAST


def estimate_product_count(instructions: Optional[str]) -> int:
    return len(PRODUCT_VERBS.findall(instructions or "")) or DEFAULT_PRODUCT_ESTIMATE


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item not in (None, "")]


def _normalize_variant(raw: dict) -> Variant:
    price = raw.get("price")
    return Variant(
        name=str(raw.get("name") or ""),
        material=str(raw.get("material") or ""),
        price=int(round(price)) if _is_number(price) else 0,
        image_url=raw.get("image_url") or raw.get("imageUrl") or None,
        notes=str(raw.get("notes") or ""),
    )


def normalize_product(raw: dict, index: int) -> ExtractedProduct:
    """Map one product object from the AI reply onto ExtractedProduct"""
    confidence = raw.get("confidence")
    confidence = float(confidence) if _is_number(confidence) else None

    name = raw.get("name")
    if not name:
        name = f"Unknown Product {index + 1}"
        confidence = min(confidence or 0.5, 0.5)

    price_cents = raw.get("price_cents")
    price = raw.get("price")
    if _is_number(price_cents) and price_cents:
        price_cents = int(round(price_cents))
    elif _is_number(price) and price:
        price_cents = int(round(price if price > BARE_PRICE_CENTS_THRESHOLD else price * 100))
    else:
        price_cents = 0

    variants = raw.get("variants")
    variants = [_normalize_variant(v) for v in variants if isinstance(v, dict)] if isinstance(variants, list) else []

    if confidence is None:
        confidence = 0.8

    return ExtractedProduct(
        name=str(name),
        description=str(raw.get("description") or ""),
        price_cents=price_cents,
        category=str(raw.get("category") or "uncategorized"),
        variants=variants,
        highlights=_string_list(raw.get("highlights")),
        images=_string_list(raw.get("images")),
        confidence=max(0.0, min(confidence, 1.0)),
        sources=_string_list(raw.get("sources")),
    )


def _from_payload(data: Any) -> Optional[ParsedResponse]:
    if not isinstance(data, dict) or not isinstance(data.get("products"), list):
        return None
    products = [
        normalize_product(raw if isinstance(raw, dict) else {}, i)
        for i, raw in enumerate(data["products"])
    ]
    return ParsedResponse(
        products=products,
        errors=_string_list(data.get("errors")),
        suggestions=_string_list(data.get("suggestions")),
    )


def strip_code_fence(text: str) -> str:
    text = (text or "").strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def parse_response(response_text: str) -> ParsedResponse:
    """
    Parse the model reply. Never raises.

    Tries the fence-stripped text first, then the largest {...} block that
    mentions "products".
    """
    try:
        data = json.loads(strip_code_fence(response_text))
    except json.JSONDecodeError as e:
        logger.warning(f"Failed to parse response: {e}")

        match = PRODUCT_BLOCK.search(response_text or "")
        if match:
            try:
                parsed = _from_payload(json.loads(match.group(0)))
                if parsed:
                    return parsed
            except json.JSONDecodeError:
                pass

        return ParsedResponse(
            errors=[f"Failed to parse AI response: {e}"],
            suggestions=list(PARSE_SUGGESTIONS),
        )

    parsed = _from_payload(data)
    if parsed is None:
        return ParsedResponse(errors=["Invalid response structure: missing products array"])
    return parsed


def _low_confidence_warnings(products: List[ExtractedProduct]) -> List[str]:
    return [
        f"Low confidence ({p.confidence:.2f}) for product: {p.name}"
        for p in products if p.low_confidence
    ]


class ExtractionOrchestrator:
    """Runs extraction calls against an ExtractionService"""

    def __init__(self, service: ExtractionService,
                 model_override: Optional[str] = None,
                 grounding: Optional[bool] = None):
        self.service = service
        self.model_override = model_override if model_override is not None else config.EXTRACTION_MODEL
        self.grounding = config.ENABLE_GROUNDING if grounding is None else grounding

    @property
    def _tools(self) -> Optional[List[str]]:
        return [WEB_SEARCH] if self.grounding else None

    def extract_products(self, instructions: Optional[str] = None,
                         pdf_data: Optional[PageExtraction] = None,
                         url_data: Union[ScrapeResult, List[ScrapeResult], None] = None,
                         category: Optional[str] = None,
                         generate_descriptions: bool = True) -> ExtractionResult:
        """
        Extract products from whatever content is available.

        Args:
            instructions: Caller's free-text instructions
            pdf_data: Parsed PDF pages, if any
            url_data: One or more scraped vendor pages, if any
            category: Pin every product to this category ("auto" means no pin)
            generate_descriptions: Ask for long SEO descriptions

        Returns:
            ExtractionResult. Service and parse failures come back as errors.
        """
        logger.info("Starting product extraction...")

        user_prompt = build_user_prompt(
            augment_instructions(instructions, category, generate_descriptions),
            pdf_data,
            url_data,
        )

        estimated_products = estimate_product_count(instructions)
        content_length = len(user_prompt)
        if self.model_override:
            tier = tier_for_model(self.model_override)
        else:
            tier = get_model_tiers()[select_model_tier(content_length, estimated_products)]

        logger.info(f"Using model: {tier.model} ({tier.name}), content length: {content_length}")

        start_time = time.time()
        try:
            response = self.service.generate(
                tier.model, [SYSTEM_PROMPT, user_prompt], EXTRACTION_CONFIG, tools=self._tools
            )
        except Exception as e:
            logger.error(f"Extraction call failed: {e}")
            return ExtractionResult(
                errors=[str(e)],
                suggestions=list(ERROR_SUGGESTIONS),
                model=tier.model,
                model_tier=tier.name,
            )

        execution_time_ms = int((time.time() - start_time) * 1000)
        cost = calculate_cost(response.usage, tier)
        if response.usage:
            logger.info(
                f"Tokens: {response.usage.prompt_tokens} in, {response.usage.completion_tokens} out, "
                f"Cost: ${cost:.6f}"
            )
        else:
            logger.warning("No usage metadata in response, cost recorded as 0")

        parsed = parse_response(response.text)
        logger.info(f"Extracted {len(parsed.products)} products in {execution_time_ms}ms")

        return ExtractionResult(
            products=parsed.products,
            errors=parsed.errors,
            warnings=_low_confidence_warnings(parsed.products),
            suggestions=parsed.suggestions,
            model=tier.model,
            model_tier=tier.name,
            execution_time_ms=execution_time_ms,
            cost=cost,
            usage=response.usage,
        )

    # =========================================================================
    # AUXILIARY OPERATIONS
    # =========================================================================

    def generate_product_description(self, product: ExtractedProduct) -> str:
        """New marketing description; the current one on any failure"""
        try:
            response = self.service.generate(
                get_model_tiers()[FAST].model, [get_description_prompt(product)], DESCRIPTION_CONFIG
            )
            return response.text.strip() or product.description
        except Exception as e:
            logger.warning(f"Description generation error: {e}")
            return product.description

    def enrich_product_with_search(self, product: ExtractedProduct) -> Optional[EnrichmentData]:
        """Search-grounded specifications and pricing, or None"""
        try:
            response = self.service.generate(
                get_model_tiers()[FAST].model, [get_enrichment_prompt(product.name)],
                ENRICHMENT_CONFIG, tools=self._tools
            )
            match = JSON_BLOCK.search(response.text or "")
            if not match:
                return None
            return EnrichmentData.model_validate(json.loads(match.group(0)))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Unreadable enrichment reply for {product.name}: {e}")
            return None
        except Exception as e:
            logger.warning(f"Enrichment error: {e}")
            return None

    def validate_product_data(self, product: ExtractedProduct) -> ValidationReport:
        """Review a product record. Falls back to a permissive report."""
        try:
            response = self.service.generate(
                get_model_tiers()[FAST].model, [get_validation_prompt(product)], VALIDATION_CONFIG
            )
            match = JSON_BLOCK.search(response.text or "")
            if not match:
                return ValidationReport(confidence=0.8)
            return ValidationReport.model_validate(json.loads(match.group(0)))
        except Exception as e:
            logger.warning(f"Validation error: {e}")
            return ValidationReport(confidence=0.5)
