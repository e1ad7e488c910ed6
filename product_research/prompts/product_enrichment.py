"""
Product Enrichment Prompt
=========================

Search-grounded lookup of specifications, price range and usage for a product.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class PriceRange(BaseModel):
    low: Optional[float] = None
    high: Optional[float] = None


class EnrichmentData(BaseModel):
    """Response model for product enrichment"""
    specifications: Optional[Dict[str, Any]] = Field(default=None, description="Key technical specifications")
    typical_price_range: Optional[PriceRange] = Field(default=None, description="Typical market price range in dollars")
    common_materials: Optional[List[str]] = Field(default=None, description="Materials the product is usually made from")
    use_cases: Optional[List[str]] = Field(default=None, description="Typical applications")
    brand_info: Optional[str] = Field(default=None, description="Manufacturer or brand background")


def get_enrichment_prompt(product_name: str) -> str:
    return f"""Search for information about "{product_name}" in the building materials and construction industry.

Return JSON:
{{
  "specifications": {{ "key": "value" }},
  "typical_price_range": {{ "low": number, "high": number }},
  "common_materials": ["material1", "material2"],
  "use_cases": ["use1", "use2"],
  "brand_info": "string or null"
}}

Use null for any field you cannot find."""
