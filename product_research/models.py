"""
Data models for the product research pipeline.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any, Generic, TypeVar


# Products below this confidence are surfaced to the caller as warnings
LOW_CONFIDENCE_THRESHOLD = 0.8

COST_BUCKETS = ("extraction", "ocr", "storage")

T = TypeVar("T")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_dt(value) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


class JobStatus(str, Enum):
    """Lifecycle states of a research job."""
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


@dataclass
class JobOptions:
    """Options bag supplied when the job is queued."""
    category: Optional[str] = None
    generate_descriptions: bool = True
    fetch_images: bool = True

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "generate_descriptions": self.generate_descriptions,
            "fetch_images": self.fetch_images,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'JobOptions':
        data = data or {}
        return cls(
            category=data.get("category"),
            generate_descriptions=data.get("generate_descriptions", True) is not False,
            fetch_images=data.get("fetch_images", True) is not False,
        )


@dataclass
class JobInputs:
    """Immutable inputs of a job."""
    pdf_url: Optional[str] = None
    vendor_url: Optional[str] = None
    instructions: Optional[str] = None
    options: JobOptions = field(default_factory=JobOptions)

    def has_any(self) -> bool:
        return bool(self.pdf_url or self.vendor_url or (self.instructions or "").strip())

    def to_dict(self) -> dict:
        return {
            "pdf_url": self.pdf_url,
            "vendor_url": self.vendor_url,
            "instructions": self.instructions,
            "options": self.options.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'JobInputs':
        data = data or {}
        return cls(
            pdf_url=data.get("pdf_url") or None,
            vendor_url=data.get("vendor_url") or None,
            instructions=data.get("instructions") or None,
            options=JobOptions.from_dict(data.get("options")),
        )


@dataclass(frozen=True)
class CostBreakdown:
    """Per-stage cost in USD. Immutable: every addition returns a new value."""
    extraction: float = 0.0
    ocr: float = 0.0
    storage: float = 0.0

    def plus(self, bucket: str, amount: Optional[float]) -> 'CostBreakdown':
        if bucket not in COST_BUCKETS:
            raise ValueError(f"Unknown cost bucket: {bucket}")
        if not amount:
            return self
        return replace(self, **{bucket: getattr(self, bucket) + float(amount)})

    @property
    def total(self) -> float:
        return self.extraction + self.ocr + self.storage

    def to_dict(self) -> Dict[str, float]:
        return {"extraction": self.extraction, "ocr": self.ocr, "storage": self.storage}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'CostBreakdown':
        data = data or {}
        return cls(**{bucket: float(data.get(bucket) or 0.0) for bucket in COST_BUCKETS})


@dataclass
class Job:
    """The persisted unit of work."""
    id: str
    status: JobStatus = JobStatus.QUEUED
    progress: int = 0
    message: str = ""
    inputs: JobInputs = field(default_factory=JobInputs)
    results: Optional[Dict[str, Any]] = None
    errors: List[str] = field(default_factory=list)
    total_cost: float = 0.0
    cost_breakdown: CostBreakdown = field(default_factory=CostBreakdown)
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def products_found(self) -> int:
        products = (self.results or {}).get("products")
        return len(products) if isinstance(products, list) else 0

    def elapsed_seconds(self, now: Optional[datetime] = None) -> int:
        """Seconds from start (or creation) to completion, or to now while running"""
        start = self.started_at or self.created_at
        if start is None:
            return 0
        end = self.completed_at or now or datetime.now()
        return max(0, int((end - start).total_seconds()))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status.value,
            "progress": self.progress,
            "message": self.message,
            "inputs": self.inputs.to_dict(),
            "results": self.results,
            "errors": list(self.errors),
            "total_cost": self.total_cost,
            "cost_breakdown": self.cost_breakdown.to_dict(),
            "created_at": _iso(self.created_at),
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Job':
        return cls(
            id=data["id"],
            status=JobStatus(data.get("status", JobStatus.QUEUED.value)),
            progress=int(data.get("progress") or 0),
            message=data.get("message") or "",
            inputs=JobInputs.from_dict(data.get("inputs")),
            results=data.get("results"),
            errors=list(data.get("errors") or []),
            total_cost=float(data.get("total_cost") or 0.0),
            cost_breakdown=CostBreakdown.from_dict(data.get("cost_breakdown")),
            created_at=_parse_dt(data.get("created_at")),
            started_at=_parse_dt(data.get("started_at")),
            completed_at=_parse_dt(data.get("completed_at")),
        )


@dataclass
class Variant:
    """A product variant (finish, material or size option)."""
    name: str = ""
    material: str = ""
    price: int = 0  # minor currency units
    image_url: Optional[str] = None
    notes: str = ""

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "material": self.material,
            "price": self.price,
            "image_url": self.image_url,
            "notes": self.notes,
        }


@dataclass
class ExtractedProduct:
    """Normalized product produced by the extraction step."""
    name: str
    description: str = ""
    price_cents: int = 0
    category: str = "uncategorized"
    variants: List[Variant] = field(default_factory=list)
    highlights: List[str] = field(default_factory=list)
    images: List[str] = field(default_factory=list)
    confidence: float = 0.8
    sources: List[str] = field(default_factory=list)

    @property
    def low_confidence(self) -> bool:
        return self.confidence < LOW_CONFIDENCE_THRESHOLD

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "price_cents": self.price_cents,
            "category": self.category,
            "variants": [v.to_dict() for v in self.variants],
            "highlights": list(self.highlights),
            "images": list(self.images),
            "confidence": self.confidence,
            "sources": list(self.sources),
        }


@dataclass
class OcrDetection:
    """What the OCR service returns for one page image."""
    text: str
    confidence: float = 0.0
    cost: float = 0.0


@dataclass(frozen=True)
class OcrPageResult:
    page: int
    confidence: float
    char_count: int
    cost: float


@dataclass(frozen=True)
class PageExtraction:
    """Document parser output. Page numbers are 1-indexed and kept in page order."""
    num_pages: int
    pages_processed: int
    text_by_page: Dict[int, str]
    scanned_pages: List[int] = field(default_factory=list)
    ocr_results: List[OcrPageResult] = field(default_factory=list)
    images: List[Dict[str, int]] = field(default_factory=list)  # [{"page": 3, "count": 2}]

    @property
    def ocr_used(self) -> bool:
        return bool(self.ocr_results)

    @property
    def ocr_cost(self) -> float:
        return sum(r.cost for r in self.ocr_results)

    def summary(self) -> dict:
        return {
            "num_pages": self.num_pages,
            "pages_processed": self.pages_processed,
            "scanned_pages": list(self.scanned_pages),
            "ocr_used": self.ocr_used,
        }


@dataclass
class ScrapeResult:
    """Best-effort data pulled from a vendor page. `error` is set on soft failure."""
    url: str
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[int] = None  # minor currency units
    currency: str = "usd"
    images: List[str] = field(default_factory=list)
    brand: Optional[str] = None
    sku: Optional[str] = None
    gtin: Optional[str] = None
    category: Optional[str] = None
    availability: Optional[str] = None
    raw_text: Optional[str] = None
    structured: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failed(cls, url: str, error: str) -> 'ScrapeResult':
        return cls(url=url, error=error)

    def summary(self) -> dict:
        return {"url": self.url, "name": self.name}


@dataclass
class DownloadedImage:
    data: bytes
    content_type: str
    size: int

    @property
    def extension(self) -> str:
        subtype = self.content_type.split(";")[0].split("/")[-1].strip().lower()
        return {"jpeg": "jpg", "svg+xml": "svg"}.get(subtype, subtype or "jpg")


@dataclass
class Outcome(Generic[T]):
    """Result of a helper that never raises."""
    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, value: T) -> 'Outcome[T]':
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> 'Outcome[T]':
        return cls(ok=False, error=error)


@dataclass
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    search_requests: int = 0


@dataclass
class GenerationConfig:
    temperature: float = 0.3
    max_output_tokens: int = 8000
    top_p: Optional[float] = None
    top_k: Optional[int] = None


@dataclass
class GenerationResponse:
    text: str
    usage: Optional[TokenUsage] = None


@dataclass
class ExtractionResult:
    """Output of one extraction call."""
    products: List[ExtractedProduct] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    model: Optional[str] = None
    model_tier: Optional[str] = None
    execution_time_ms: int = 0
    cost: float = 0.0
    usage: Optional[TokenUsage] = None


@dataclass
class IngestionReport:
    uploaded: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)
    cost: float = 0.0
