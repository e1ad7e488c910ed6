"""
Page rasterization for OCR.

Rendering is optional: without poppler the renderer returns None and scanned
pages keep their native text.
"""

import io
from abc import ABC, abstractmethod
from typing import Optional

from ..logger import get_logger

logger = get_logger('rendering')


class PageRenderer(ABC):

    @abstractmethod
    def render(self, pdf_bytes: bytes, page_number: int) -> Optional[bytes]:
        """Render one 1-indexed page to PNG bytes, or None if rendering is unavailable"""
        pass


class Pdf2ImageRenderer(PageRenderer):
    """pdf2image (poppler) renderer"""

    def __init__(self, dpi: int = 144):
        self.dpi = dpi

    def render(self, pdf_bytes: bytes, page_number: int) -> Optional[bytes]:
        try:
            from pdf2image import convert_from_bytes

            images = convert_from_bytes(
                pdf_bytes,
                dpi=self.dpi,
                first_page=page_number,
                last_page=page_number,
                fmt='png',
            )
            if not images:
                return None

            buffer = io.BytesIO()
            images[0].save(buffer, format='PNG')
            return buffer.getvalue()

        except Exception as e:
            logger.warning(f"Cannot render page {page_number}, OCR skipped: {e}")
            return None
