"""
Vendor page scraping and binary downloads.
"""

from .page_scraper import (
    scrape_vendor_page,
    scrape_multiple_urls,
    parse_vendor_page,
    extract_price,
    extract_images,
    resolve_url,
    download_image,
    download_pdf,
)

__all__ = [
    'scrape_vendor_page', 'scrape_multiple_urls', 'parse_vendor_page',
    'extract_price', 'extract_images', 'resolve_url',
    'download_image', 'download_pdf',
]
