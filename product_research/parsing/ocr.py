"""
OCR Services
============

Text detection for rendered page images. Used only for pages that look scanned.
"""

import io
from abc import ABC, abstractmethod
from typing import Optional

from PIL import Image

from ..errors import OCRError
from ..logger import get_logger
from ..models import OcrDetection

logger = get_logger('ocr')

# Cloud Vision text detection: $1.50 per 1,000 images
VISION_COST_PER_IMAGE = 0.0015
DEFAULT_CONFIDENCE = 0.8


class OCRService(ABC):
    """detect_text(image_bytes) -> OcrDetection. Raises OCRError on failure."""

    @abstractmethod
    def detect_text(self, image_bytes: bytes) -> OcrDetection:
        pass


class VisionOCRService(OCRService):
    """Google Cloud Vision text detection"""

    def __init__(self, client=None, timeout: float = 30.0):
        if client is None:
            from google.cloud import vision
            client = vision.ImageAnnotatorClient()
        self.client = client
        self.timeout = timeout

    def detect_text(self, image_bytes: bytes) -> OcrDetection:
        from google.cloud import vision

        try:
            response = self.client.text_detection(
                image=vision.Image(content=image_bytes),
                timeout=self.timeout,
            )
        except Exception as e:
            raise OCRError(f"Vision OCR request failed: {e}") from e

        if response.error.message:
            raise OCRError(f"Vision OCR error: {response.error.message}")

        annotations = response.text_annotations
        if not annotations:
            return OcrDetection(text="", confidence=0.0, cost=VISION_COST_PER_IMAGE)

        # First annotation holds the full page text
        first = annotations[0]
        return OcrDetection(
            text=first.description or "",
            confidence=first.confidence or DEFAULT_CONFIDENCE,
            cost=VISION_COST_PER_IMAGE,
        )


class TesseractOCRService(OCRService):
    """Local Tesseract OCR via pytesseract. No per-call cost."""

    def __init__(self, languages: str = "eng", timeout: float = 30.0):
        self.timeout = timeout
        # Tesseract format joins languages with + (e.g. eng+ell)
        self.lang_param = '+'.join(l.strip() for l in languages.replace(',', '+').split('+') if l.strip())

    def detect_text(self, image_bytes: bytes) -> OcrDetection:
        import pytesseract

        try:
            image = Image.open(io.BytesIO(image_bytes))
            data = pytesseract.image_to_data(
                image,
                lang=self.lang_param,
                config='--psm 3',
                timeout=self.timeout,
                output_type=pytesseract.Output.DICT,
            )
        except Exception as e:
            raise OCRError(f"Tesseract OCR failed: {e}") from e

        words = []
        confidences = []
        for word, conf in zip(data.get("text", []), data.get("conf", [])):
            if not str(word).strip():
                continue
            words.append(str(word).strip())
            conf = float(conf)
            if conf >= 0:
                confidences.append(conf / 100.0)

        confidence = sum(confidences) / len(confidences) if confidences else 0.0
        return OcrDetection(text=' '.join(words), confidence=round(confidence, 3), cost=0.0)


def get_ocr_service(engine: Optional[str] = None) -> Optional[OCRService]:
    """Build the configured OCR engine, or None when OCR is off or unavailable"""
    from ..config import config

    engine = (engine or config.OCR_ENGINE).lower()
    if engine == "none":
        return None
    if engine == "tesseract":
        return TesseractOCRService(config.OCR_LANGUAGES, timeout=config.OCR_TIMEOUT)
    if engine == "vision":
        try:
            return VisionOCRService(timeout=config.OCR_TIMEOUT)
        except Exception as e:
            # Missing credentials only disables OCR; scanned pages keep native text
            logger.warning(f"Vision OCR unavailable, continuing without OCR: {e}")
            return None
    raise ValueError(f"Unknown OCR engine: {engine}")
