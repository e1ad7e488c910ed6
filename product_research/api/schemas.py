"""
Request models for the product research API.
"""

from typing import Optional

from pydantic import BaseModel, Field, model_validator

from ..models import JobInputs, JobOptions


class StartJobRequest(BaseModel):
    """Body of POST /product-research/start"""
    pdf_url: Optional[str] = Field(default=None, description="Catalog PDF to parse")
    vendor_url: Optional[str] = Field(default=None, description="Vendor product page to scrape")
    instructions: Optional[str] = Field(default=None, description="Free-text extraction instructions")
    category: Optional[str] = Field(default=None, description="Pin all products to this category, or 'auto'")
    generate_descriptions: bool = True
    fetch_images: bool = True

    @model_validator(mode='after')
    def require_some_input(self):
        if not (self.pdf_url or self.vendor_url or (self.instructions or "").strip()):
            raise ValueError("Provide at least one of pdf_url, vendor_url or instructions")
        return self

    def to_inputs(self) -> JobInputs:
        return JobInputs(
            pdf_url=self.pdf_url or None,
            vendor_url=self.vendor_url or None,
            instructions=self.instructions or None,
            options=JobOptions(
                category=self.category,
                generate_descriptions=self.generate_descriptions,
                fetch_images=self.fetch_images,
            ),
        )
