"""
Test doubles for the pipeline's external collaborators.
"""

import io
import json
from typing import Dict, List, Optional
from unittest.mock import Mock

from pypdf import PdfWriter
from pypdf.generic import DecodedStreamObject, DictionaryObject, NameObject, NumberObject

from product_research.errors import OCRError, StorageError
from product_research.extraction import ExtractionService
from product_research.models import (
    DownloadedImage, GenerationResponse, OcrDetection, Outcome, TokenUsage,
)
from product_research.parsing import OCRService, PageRenderer
from product_research.storage import ObjectStorage


def product_reply(*products, errors=None, suggestions=None) -> str:
    """JSON reply in the shape the extraction prompt asks for"""
    return json.dumps({
        "products": list(products),
        "errors": errors or [],
        "suggestions": suggestions or [],
    })


class FakeExtractionService(ExtractionService):
    """Returns canned replies in order; the last reply repeats"""

    def __init__(self, replies=None, error: Exception = None,
                 usage: Optional[TokenUsage] = TokenUsage(prompt_tokens=1000, completion_tokens=500)):
        self.replies = list(replies or [product_reply()])
        self.error = error
        self.usage = usage
        self.calls: List[dict] = []

    def generate(self, model, prompt_parts, generation_config, tools=None):
        self.calls.append({
            "model": model,
            "prompt_parts": list(prompt_parts),
            "config": generation_config,
            "tools": tools,
        })
        if self.error:
            raise self.error

        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, GenerationResponse):
            return reply
        return GenerationResponse(text=reply, usage=self.usage)


class FakeOCR(OCRService):
    def __init__(self, text="SCANNED CATALOG PAGE Frameless shower door $630",
                 confidence=0.92, cost=0.0015, error: str = None):
        self.text = text
        self.confidence = confidence
        self.cost = cost
        self.error = error
        self.calls: List[bytes] = []

    def detect_text(self, image_bytes):
        self.calls.append(image_bytes)
        if self.error:
            raise OCRError(self.error)
        return OcrDetection(text=self.text, confidence=self.confidence, cost=self.cost)


class FakeRenderer(PageRenderer):
    def __init__(self, available=True):
        self.available = available
        self.calls: List[int] = []

    def render(self, pdf_bytes, page_number):
        self.calls.append(page_number)
        return b"\x89PNG fake page" if self.available else None


class MemoryStorage(ObjectStorage):
    """Keeps uploads in a dict; paths listed in `fail_paths_containing` raise"""

    def __init__(self, fail_paths_containing: Optional[List[str]] = None):
        self.objects: Dict[str, bytes] = {}
        self.fail_paths_containing = fail_paths_containing or []

    def upload(self, data, content_type, path):
        if any(marker in path for marker in self.fail_paths_containing):
            raise StorageError(f"Upload failed for {path}")
        self.objects[path] = data
        return f"https://storage.test/{path}"


def image_fetcher(failures: Optional[Dict[str, str]] = None):
    """fetch_image stand-in: URLs in `failures` fail with the given message"""
    failures = failures or {}
    fetch = Mock()

    def fetch_image(url):
        if url in failures:
            return Outcome.failure(failures[url])
        return Outcome.success(DownloadedImage(data=b"jpeg-bytes", content_type="image/jpeg", size=10))

    fetch.side_effect = fetch_image
    return fetch


def fake_response(status=200, text="", headers=None, content=b"", reason="OK"):
    """Stand-in for requests.Response"""
    response = Mock()
    response.ok = 200 <= status < 300
    response.status_code = status
    response.reason = reason
    response.text = text
    response.headers = headers or {}
    response.content = content
    return response


def catalog_lines(title: str, count: int = 40) -> List[str]:
    return [title] + [f"Catalog line {i} tempered glass panel" for i in range(1, count)]


def build_pdf(pages: List[List[str]], with_image_on: Optional[List[int]] = None,
              metadata: Optional[dict] = None) -> bytes:
    """
    Build a PDF in memory. Each entry in `pages` is that page's text lines;
    an empty list makes a blank, image-only looking page.
    """
    with_image_on = with_image_on or []
    writer = PdfWriter()

    for page_number, lines in enumerate(pages, start=1):
        page = writer.add_blank_page(width=612, height=792)
        resources = DictionaryObject()
        ops = []

        if lines:
            resources[NameObject("/Font")] = DictionaryObject({
                NameObject("/F1"): DictionaryObject({
                    NameObject("/Type"): NameObject("/Font"),
                    NameObject("/Subtype"): NameObject("/Type1"),
                    NameObject("/BaseFont"): NameObject("/Helvetica"),
                }),
            })
            ops.extend(["BT", "/F1 10 Tf", "12 TL", "40 760 Td"])
            for line in lines:
                ops.append(f"({line}) Tj")
                ops.append("T*")
            ops.append("ET")

        if page_number in with_image_on:
            image = DecodedStreamObject()
            image.set_data(b"\x00\x00\x00")
            image.update({
                NameObject("/Type"): NameObject("/XObject"),
                NameObject("/Subtype"): NameObject("/Image"),
                NameObject("/Width"): NumberObject(1),
                NameObject("/Height"): NumberObject(1),
                NameObject("/ColorSpace"): NameObject("/DeviceRGB"),
                NameObject("/BitsPerComponent"): NumberObject(8),
            })
            resources[NameObject("/XObject")] = DictionaryObject({
                NameObject("/Im1"): writer._add_object(image),
            })
            ops.append("q 100 0 0 100 300 300 cm /Im1 Do Q")

        page[NameObject("/Resources")] = resources
        if ops:
            content = DecodedStreamObject()
            content.set_data("\n".join(ops).encode("latin-1"))
            page[NameObject("/Contents")] = writer._add_object(content)

    if metadata:
        writer.add_metadata(metadata)

    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()
