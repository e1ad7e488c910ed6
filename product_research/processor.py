"""
Job Processor
=============

Runs a queued job through the pipeline:
1. Parse PDF (if provided)
2. Scrape vendor URL (if provided)
3. Extract products with the AI service
4. Copy product images into durable storage
5. Save results

States: queued -> processing -> completed | failed. Stage failures are
collected into the job's `errors` list; only an empty input set or an
uncaught stage exception fails the job.
"""

import re
from typing import Callable, List, Optional, Tuple

from .config import config
from .errors import DownloadError, JobNotFoundError, JobStoreError, NoExtractableInputError
from .extraction import ExtractionOrchestrator, ExtractionService, get_extraction_service
from .images import ingest_product_images
from .logger import get_logger
from .models import (
    CostBreakdown, DownloadedImage, Job, JobInputs, JobStatus,
    Outcome, PageExtraction, ScrapeResult,
)
from .parsing import (
    OCRService, PageRenderer, Pdf2ImageRenderer,
    get_ocr_service, parse_page_range, parse_pdf,
)
from .scraper import download_image, download_pdf, scrape_vendor_page
from .storage import JobStore, ObjectStorage, get_job_store, get_object_storage

logger = get_logger('job_processor')

# "page 45", "pages 60-65", "pages 2, 4–6"
PAGE_REFERENCE = re.compile(
    r'pages?\s*(\d+(?:\s*[-–]\s*\d+)?(?:\s*,\s*\d+(?:\s*[-–]\s*\d+)?)*)',
    re.IGNORECASE,
)

# Estimated processing time (seconds) shown when a job is queued
BASE_SECONDS = 10
PDF_SECONDS = 20
URL_SECONDS = 10
LONG_INSTRUCTIONS_SECONDS = 10
LONG_INSTRUCTIONS_CHARS = 200


def extract_pages_from_instructions(instructions: Optional[str]) -> List[int]:
    """Page numbers referenced in free text, sorted and unique"""
    if not instructions:
        return []

    pages = set()
    for match in PAGE_REFERENCE.finditer(instructions):
        pages.update(parse_page_range(match.group(1).replace('–', '-')))

    return sorted(pages)


def estimate_processing_time(inputs: JobInputs) -> int:
    seconds = BASE_SECONDS
    if inputs.pdf_url:
        seconds += PDF_SECONDS
    if inputs.vendor_url:
        seconds += URL_SECONDS
    if inputs.instructions and len(inputs.instructions) > LONG_INSTRUCTIONS_CHARS:
        seconds += LONG_INSTRUCTIONS_SECONDS
    return seconds


def queue_job(job_store: JobStore, inputs: JobInputs) -> Job:
    """Create a queued job. Raises NoExtractableInputError when there is nothing to extract from."""
    if not inputs.has_any():
        raise NoExtractableInputError("Provide a PDF URL, a vendor URL or instructions")
    return job_store.create(inputs)


class JobProcessor:
    """Coordinates one job at a time through parse, scrape, extract and ingest"""

    def __init__(self,
                 job_store: JobStore,
                 extraction_service: Optional[ExtractionService] = None,
                 object_storage: Optional[ObjectStorage] = None,
                 ocr_service: Optional[OCRService] = None,
                 renderer: Optional[PageRenderer] = None,
                 orchestrator: Optional[ExtractionOrchestrator] = None,
                 fetch_pdf: Callable[[str], Outcome[bytes]] = download_pdf,
                 scrape_page: Callable[[str], ScrapeResult] = scrape_vendor_page,
                 fetch_image: Callable[[str], Outcome[DownloadedImage]] = download_image):
        """
        Initialize JobProcessor

        Args:
            job_store: Job persistence
            extraction_service: AI service (ignored when `orchestrator` is given)
            object_storage: Upload target for product images
            ocr_service: OCR backend for scanned pages; None disables OCR
            renderer: Page rasterizer feeding OCR
            orchestrator: Prebuilt extraction orchestrator
            fetch_pdf, scrape_page, fetch_image: Network helpers
        """
        if orchestrator is None:
            if extraction_service is None:
                raise ValueError("JobProcessor needs an extraction service or orchestrator")
            orchestrator = ExtractionOrchestrator(extraction_service)

        self.job_store = job_store
        self.orchestrator = orchestrator
        self.object_storage = object_storage
        self.ocr_service = ocr_service
        self.renderer = renderer
        self.fetch_pdf = fetch_pdf
        self.scrape_page = scrape_page
        self.fetch_image = fetch_image

    def _progress(self, job_id: str, progress: int, message: str,
                  errors: List[str], costs: CostBreakdown):
        self.job_store.update_progress(job_id, progress, message, extra={
            "errors": list(errors),
            "cost_breakdown": costs,
            "total_cost": costs.total,
        })

    # =========================================================================
    # STAGES
    # =========================================================================

    def _parse_pdf_stage(self, job_id: str, inputs: JobInputs, errors: List[str],
                         costs: CostBreakdown) -> Tuple[Optional[PageExtraction], CostBreakdown]:
        self._progress(job_id, 10, "Downloading PDF...", errors, costs)

        try:
            downloaded = self.fetch_pdf(inputs.pdf_url)
            if not downloaded.ok:
                raise DownloadError(downloaded.error)

            self._progress(job_id, 20, "Parsing PDF...", errors, costs)
            target_pages = extract_pages_from_instructions(inputs.instructions)

            pdf_data = parse_pdf(
                downloaded.value,
                pages=target_pages,
                enable_ocr=True,
                ocr_service=self.ocr_service,
                renderer=self.renderer,
            )
        except JobStoreError:
            raise
        except Exception as e:
            logger.warning(f"PDF parsing error: {e}")
            errors.append(f"PDF parsing failed: {e}")
            return None, costs

        logger.info(
            f"PDF parsed: {pdf_data.pages_processed} pages, OCR used: {pdf_data.ocr_used}, "
            f"OCR cost: ${pdf_data.ocr_cost:.6f}"
        )
        return pdf_data, costs.plus("ocr", pdf_data.ocr_cost)

    def _scrape_stage(self, job_id: str, vendor_url: str, errors: List[str],
                      costs: CostBreakdown) -> Optional[ScrapeResult]:
        self._progress(job_id, 35, "Fetching vendor page...", errors, costs)

        try:
            url_data = self.scrape_page(vendor_url)
        except Exception as e:
            logger.warning(f"URL scraping error: {e}")
            errors.append(f"URL scraping failed: {e}")
            return None

        if not url_data.ok:
            errors.append(f"Vendor page error: {url_data.error}")
            return None

        logger.info(f"URL scraped: {url_data.name or 'No name'}, {len(url_data.images)} images")
        return url_data

    # =========================================================================
    # ENTRY POINTS
    # =========================================================================

    def process_job(self, job_id: str) -> Optional[Job]:
        """
        Run one job to a terminal state.

        Returns:
            The final Job, or None when the job was not queued (no-op)

        Raises:
            JobNotFoundError: unknown job id
            JobStoreError: the job store became unavailable
        """
        job = self.job_store.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)

        if job.status != JobStatus.QUEUED:
            logger.info(f"Job {job_id} is not queued (status: {job.status.value})")
            return None

        if not self.job_store.mark_processing(job_id):
            logger.info(f"Job {job_id} was claimed by another worker")
            return None

        logger.info(f"Starting job {job_id}")
        errors: List[str] = []
        costs = CostBreakdown()
        self._progress(job_id, 5, "Starting job...", errors, costs)

        try:
            inputs = job.inputs
            options = inputs.options

            pdf_data = None
            if inputs.pdf_url:
                pdf_data, costs = self._parse_pdf_stage(job_id, inputs, errors, costs)

            url_data = None
            if inputs.vendor_url:
                url_data = self._scrape_stage(job_id, inputs.vendor_url, errors, costs)

            if pdf_data is None and url_data is None and not (inputs.instructions or "").strip():
                raise NoExtractableInputError("No data available for extraction")

            self._progress(job_id, 50, "Extracting products with AI...", errors, costs)
            extraction = self.orchestrator.extract_products(
                instructions=inputs.instructions,
                pdf_data=pdf_data,
                url_data=url_data,
                category=options.category,
                generate_descriptions=options.generate_descriptions,
            )
            costs = costs.plus("extraction", extraction.cost)
            errors.extend(extraction.errors)
            products = extraction.products
            logger.info(f"Extraction complete: {len(products)} products")

            if options.fetch_images and any(p.images for p in products):
                self._progress(job_id, 75, "Processing images...", errors, costs)
                if self.object_storage is None:
                    errors.append("Image processing: no object storage configured")
                else:
                    try:
                        report = ingest_product_images(
                            products, job_id, self.object_storage, fetch_image=self.fetch_image
                        )
                        costs = costs.plus("storage", report.cost)
                        errors.extend(f"Image processing: {e}" for e in report.errors)
                    except Exception as e:
                        logger.warning(f"Image processing error: {e}")
                        errors.append(f"Image processing: {e}")

            self._progress(job_id, 95, "Saving results...", errors, costs)

            results = {
                "products": [p.to_dict() for p in products],
                "errors": list(extraction.errors),
                "warnings": list(extraction.warnings),
                "suggestions": list(extraction.suggestions),
                "model": extraction.model,
                "model_tier": extraction.model_tier,
                "execution_time_ms": extraction.execution_time_ms,
                "pdf_info": pdf_data.summary() if pdf_data else None,
                "url_info": url_data.summary() if url_data else None,
            }

        except JobStoreError:
            raise
        except Exception as e:
            logger.exception(f"Job {job_id} failed: {e}")
            self.job_store.mark_failed(job_id, str(e), errors + [str(e)], costs)
            return self.job_store.get(job_id)

        self.job_store.mark_completed(
            job_id, results, costs, costs.total,
            errors=errors,
            message=f"Found {len(products)} products",
        )
        logger.info(f"Job {job_id} completed: {len(products)} products, Total cost: ${costs.total:.6f}")
        return self.job_store.get(job_id)

    def process_queued_jobs(self) -> dict:
        """Run the oldest queued job, if any. At most one job per call."""
        job = self.job_store.find_oldest_queued()
        if job is None:
            logger.info("No queued jobs found")
            return {"processed": 0}

        result = self.process_job(job.id)
        if result is None:
            return {"processed": 0}
        return {"processed": 1, "job_id": job.id}


def build_processor(job_store: Optional[JobStore] = None) -> JobProcessor:
    """Wire a JobProcessor from configuration"""
    return JobProcessor(
        job_store=job_store or get_job_store(),
        extraction_service=get_extraction_service(),
        object_storage=get_object_storage(),
        ocr_service=get_ocr_service(),
        renderer=Pdf2ImageRenderer(dpi=config.RENDER_DPI),
    )
