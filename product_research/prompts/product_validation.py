"""
Product Validation Prompt
=========================

Asks the model to review one extracted product and suggest corrections.
"""

import json
from typing import Any, Dict, List

from pydantic import BaseModel, Field

from ..models import ExtractedProduct


class ValidationReport(BaseModel):
    """Response model for product validation"""
    is_valid: bool = Field(default=True, alias="isValid", description="Whether the record looks correct")
    issues: List[str] = Field(default_factory=list, description="Problems found in the record")
    suggestions: Dict[str, Any] = Field(default_factory=dict, description="Field name to suggested correction")
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)

    model_config = {"populate_by_name": True}


def get_validation_prompt(product: ExtractedProduct) -> str:
    return f"""Review this product record for a building materials catalog and identify any issues:

{json.dumps(product.to_dict(), indent=2)}

Return JSON:
{{
  "isValid": true/false,
  "issues": ["issue1", "issue2"],
  "suggestions": {{
    "field_name": "suggested_correction"
  }},
  "confidence": 0.0-1.0
}}"""
