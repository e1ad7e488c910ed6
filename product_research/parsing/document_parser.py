"""
Document Parser
===============

Per-page text extraction from catalog PDFs using pypdf.

Pages whose text-show density is too low for their area are treated as
scans. When OCR is available, a scanned page with almost no native text is
rendered and its OCR text replaces the native text entirely.
"""

import io
import re
from typing import Dict, Iterable, List, Optional, Tuple

from pypdf import PdfReader

from ..config import config
from ..logger import get_logger
from ..models import OcrPageResult, PageExtraction
from .ocr import OCRService
from .rendering import PageRenderer

logger = get_logger('document_parser')

TEXT_SHOW_OPERATORS = (b"Tj", b"TJ", b"'", b'"')
SUMMARY_PREVIEW_CHARS = 500


def parse_page_range(range_str: str) -> List[int]:
    """
    Expand a page range string into sorted, unique page numbers.

    "1-5" -> [1, 2, 3, 4, 5], "1-3,7,9-10" -> [1, 2, 3, 7, 9, 10].
    Malformed tokens and reversed ranges are skipped.
    """
    pages = set()

    for part in (range_str or "").split(','):
        part = part.strip()
        if not part:
            continue

        if '-' in part:
            bounds = [b.strip() for b in part.split('-')]
            if len(bounds) != 2:
                continue
            try:
                start, end = int(bounds[0]), int(bounds[1])
            except ValueError:
                continue
            if start <= end:
                pages.update(range(start, end + 1))
        else:
            try:
                pages.add(int(part))
            except ValueError:
                continue

    return sorted(pages)


def is_likely_scanned(item_count: int, page_width: float, page_height: float,
                      threshold: Optional[float] = None) -> bool:
    """Few text items for the page area means the page is probably an image"""
    if threshold is None:
        threshold = config.SCANNED_DENSITY_THRESHOLD
    if item_count <= 0:
        return True
    area = page_width * page_height
    if area <= 0:
        return True
    density = item_count / area * 10000
    return density < threshold


def _count_page_operations(page) -> Tuple[int, int]:
    """Return (text items, painted images) from the page content stream"""
    contents = page.get_contents()
    if contents is None:
        return 0, 0

    xobjects = {}
    resources = page.get("/Resources")
    if resources is not None:
        resources = resources.get_object()
        if "/XObject" in resources:
            xobjects = resources["/XObject"].get_object()

    text_items = 0
    image_count = 0
    for operands, operator in contents.operations:
        if operator in TEXT_SHOW_OPERATORS:
            text_items += 1
        elif operator == b"INLINE IMAGE":
            image_count += 1
        elif operator == b"Do" and operands:
            xobject = xobjects.get(operands[0])
            if xobject is not None and xobject.get_object().get("/Subtype") == "/Image":
                image_count += 1

    return text_items, image_count


def _extract_page(page) -> dict:
    text = re.sub(r'\s+', ' ', page.extract_text() or "").strip()
    text_items, image_count = _count_page_operations(page)
    width = float(page.mediabox.width)
    height = float(page.mediabox.height)

    return {
        "text": text,
        "item_count": text_items,
        "image_count": image_count,
        "width": width,
        "height": height,
    }


def _ocr_page(pdf_bytes: bytes, page_number: int, ocr_service: OCRService,
              renderer: PageRenderer) -> Optional[Tuple[str, OcrPageResult]]:
    image_bytes = renderer.render(pdf_bytes, page_number)
    if not image_bytes:
        return None

    try:
        detection = ocr_service.detect_text(image_bytes)
    except Exception as e:
        logger.warning(f"OCR failed on page {page_number}, keeping native text: {e}")
        return None

    if not detection.text:
        return None

    return detection.text, OcrPageResult(
        page=page_number,
        confidence=detection.confidence,
        char_count=len(detection.text),
        cost=detection.cost or 0.0,
    )


def parse_pdf(pdf_bytes: bytes,
              pages: Optional[Iterable[int]] = None,
              enable_ocr: bool = True,
              ocr_service: Optional[OCRService] = None,
              renderer: Optional[PageRenderer] = None,
              density_threshold: Optional[float] = None,
              min_text_chars: Optional[int] = None) -> PageExtraction:
    """
    Parse a PDF and extract text by page.

    Args:
        pdf_bytes: The PDF file contents
        pages: 1-indexed pages to extract; empty or None means all pages
        enable_ocr: Allow OCR on scanned pages (needs ocr_service and renderer)
        ocr_service: Text detection backend
        renderer: Page rasterizer feeding the OCR service
        density_threshold: Scanned-page density threshold override
        min_text_chars: Pages with at least this much native text skip OCR

    Returns:
        PageExtraction with text in page order

    A document that cannot be opened at all raises. Individual page failures
    are replaced by a placeholder string.
    """
    if min_text_chars is None:
        min_text_chars = config.OCR_MIN_TEXT_CHARS
    ocr_available = enable_ocr and ocr_service is not None and renderer is not None

    reader = PdfReader(io.BytesIO(pdf_bytes))
    num_pages = len(reader.pages)
    logger.info(f"PDF has {num_pages} pages")

    requested = list(pages or [])
    if requested:
        targets = sorted({p for p in requested if 1 <= p <= num_pages})
    else:
        targets = list(range(1, num_pages + 1))

    text_by_page: Dict[int, str] = {}
    scanned_pages: List[int] = []
    ocr_results: List[OcrPageResult] = []
    images: List[Dict[str, int]] = []

    for page_number in targets:
        try:
            page_info = _extract_page(reader.pages[page_number - 1])
            scanned = is_likely_scanned(
                page_info["item_count"], page_info["width"], page_info["height"],
                threshold=density_threshold,
            )
            if scanned:
                scanned_pages.append(page_number)

            if scanned and ocr_available and len(page_info["text"]) < min_text_chars:
                logger.info(f"Page {page_number} appears scanned, attempting OCR...")
                ocr = _ocr_page(pdf_bytes, page_number, ocr_service, renderer)
                if ocr:
                    text_by_page[page_number], result = ocr
                    ocr_results.append(result)
                    continue

            text_by_page[page_number] = page_info["text"]
            if page_info["image_count"] > 0:
                images.append({"page": page_number, "count": page_info["image_count"]})

        except Exception as e:
            logger.warning(f"Error processing page {page_number}: {e}")
            text_by_page[page_number] = f"[Error: Could not extract text from page {page_number}]"

    extraction = PageExtraction(
        num_pages=num_pages,
        pages_processed=len(targets),
        text_by_page=text_by_page,
        scanned_pages=scanned_pages,
        ocr_results=ocr_results,
        images=images,
    )
    logger.info(
        f"Parsed {extraction.pages_processed} pages "
        f"({len(scanned_pages)} scanned, {len(ocr_results)} OCR'd, ${extraction.ocr_cost:.4f})"
    )
    return extraction


def find_pages_with_terms(pdf_bytes: bytes, terms: List[str]) -> Dict[int, dict]:
    """Pages whose text contains any of the terms (case-insensitive), without OCR"""
    extraction = parse_pdf(pdf_bytes, enable_ocr=False)

    matching = {}
    for page_number, text in extraction.text_by_page.items():
        lower_text = text.lower()
        matched = [term for term in terms if term.lower() in lower_text]
        if matched:
            matching[page_number] = {"text": text, "matched_terms": matched}

    return matching


def get_pdf_summary(pdf_bytes: bytes) -> dict:
    """Page count, document info and a first-page preview"""
    reader = PdfReader(io.BytesIO(pdf_bytes))
    metadata = reader.metadata

    text = ""
    if reader.pages:
        text = _extract_page(reader.pages[0])["text"]

    preview = text[:SUMMARY_PREVIEW_CHARS]
    if len(text) > SUMMARY_PREVIEW_CHARS:
        preview += '...'

    return {
        "num_pages": len(reader.pages),
        "title": metadata.title if metadata else None,
        "author": metadata.author if metadata else None,
        "subject": metadata.subject if metadata else None,
        "preview": preview,
    }
