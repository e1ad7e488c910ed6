"""
Document parsing: PDF text extraction with an OCR fallback for scanned pages.
"""

from .document_parser import (
    parse_pdf,
    parse_page_range,
    is_likely_scanned,
    find_pages_with_terms,
    get_pdf_summary,
)
from .ocr import OCRService, VisionOCRService, TesseractOCRService, get_ocr_service
from .rendering import PageRenderer, Pdf2ImageRenderer

__all__ = [
    'parse_pdf', 'parse_page_range', 'is_likely_scanned',
    'find_pages_with_terms', 'get_pdf_summary',
    'OCRService', 'VisionOCRService', 'TesseractOCRService', 'get_ocr_service',
    'PageRenderer', 'Pdf2ImageRenderer',
]
