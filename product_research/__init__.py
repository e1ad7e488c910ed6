"""
Product Research
================

Turns catalog PDFs and vendor product pages into structured product records:
PDF parsing with OCR fallback, vendor page scraping, AI extraction, image
ingestion, all tracked through persisted jobs.
"""

from .models import (
    Job, JobStatus, JobInputs, JobOptions, CostBreakdown,
    ExtractedProduct, Variant, PageExtraction, ScrapeResult, ExtractionResult,
)
from .processor import JobProcessor, build_processor, extract_pages_from_instructions

__version__ = "1.0.0"

__all__ = [
    'Job', 'JobStatus', 'JobInputs', 'JobOptions', 'CostBreakdown',
    'ExtractedProduct', 'Variant', 'PageExtraction', 'ScrapeResult', 'ExtractionResult',
    'JobProcessor', 'build_processor', 'extract_pages_from_instructions',
]
