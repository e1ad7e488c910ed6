"""
Image Ingestion
===============

Copies product images into durable storage. Each product keeps at most
`max_images` slots; a slot holds the stored URL when download and upload
both succeed and the original URL otherwise.
"""

import time
from typing import Callable, List, Optional

from .config import config
from .logger import get_logger
from .models import DownloadedImage, ExtractedProduct, IngestionReport, Outcome
from .scraper import download_image
from .storage import ObjectStorage

logger = get_logger('images')

ImageFetcher = Callable[[str], Outcome[DownloadedImage]]


def storage_path(job_id: str, product_index: int, image_index: int, extension: str,
                 timestamp_ms: Optional[int] = None) -> str:
    timestamp_ms = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    return f"products/imported/{job_id}/{timestamp_ms}-{product_index}-{image_index}.{extension}"


def _ingest_one(url: str, job_id: str, product_index: int, image_index: int,
                storage: ObjectStorage, fetch_image: ImageFetcher) -> Outcome[str]:
    if not url or not url.startswith('http'):
        return Outcome.failure(f"Skipped non-http image URL: {url}")

    downloaded = fetch_image(url)
    if not downloaded.ok:
        return Outcome.failure(f"Download failed for {url}: {downloaded.error}")

    image = downloaded.value
    path = storage_path(job_id, product_index, image_index, image.extension)
    try:
        return Outcome.success(storage.upload(image.data, image.content_type or 'image/jpeg', path))
    except Exception as e:
        return Outcome.failure(f"Upload failed for {url}: {e}")


def ingest_product_images(products: List[ExtractedProduct], job_id: str,
                          storage: ObjectStorage,
                          fetch_image: ImageFetcher = download_image,
                          max_images: Optional[int] = None,
                          cost_per_image: Optional[float] = None) -> IngestionReport:
    """
    Rewrite each product's `images` in place with durable URLs.

    Args:
        products: Extracted products (mutated)
        job_id: Scopes the storage path
        storage: Upload target
        fetch_image: Downloader returning an Outcome
        max_images: Slots kept per product (default MAX_IMAGES_PER_PRODUCT)
        cost_per_image: Storage cost per successful upload

    Returns:
        IngestionReport with counts, per-image errors and storage cost
    """
    max_images = config.MAX_IMAGES_PER_PRODUCT if max_images is None else max_images
    cost_per_image = config.STORAGE_COST_PER_IMAGE if cost_per_image is None else cost_per_image
    report = IngestionReport()

    for product_index, product in enumerate(products):
        if not product.images:
            continue

        slots = []
        for image_index, url in enumerate(product.images[:max_images]):
            outcome = _ingest_one(url, job_id, product_index, image_index, storage, fetch_image)
            if outcome.ok:
                slots.append(outcome.value)
                report.uploaded += 1
            else:
                # Keep original URL as fallback
                logger.warning(outcome.error)
                slots.append(url)
                report.failed += 1
                report.errors.append(outcome.error)

        product.images = slots

    report.cost = report.uploaded * cost_per_image
    logger.info(f"Images: {report.uploaded} uploaded, {report.failed} kept original")
    return report
