#!/usr/bin/env python3
"""
Image Ingestion Tests
=====================

Run:
    python -m unittest product_research.tests.test_images
"""

import re
import unittest

from product_research.images import ingest_product_images, storage_path
from product_research.models import ExtractedProduct
from product_research.tests.fakes import MemoryStorage, image_fetcher

URLS = [f"https://shop.test/img/{i}.jpg" for i in range(5)]


class TestIngestProductImages(unittest.TestCase):
    """Per-product slot cap, fallbacks to original URLs and storage cost."""

    def test_cap_and_fallback(self):
        product = ExtractedProduct(name="Door", images=list(URLS))
        fetch = image_fetcher({URLS[1]: "HTTP 404"})
        storage = MemoryStorage()

        report = ingest_product_images([product], "job-1", storage, fetch_image=fetch,
                                       max_images=3, cost_per_image=0.0001)

        self.assertEqual(len(product.images), 3)
        self.assertTrue(product.images[0].startswith("https://storage.test/products/imported/job-1/"))
        self.assertEqual(product.images[1], URLS[1])
        self.assertTrue(product.images[2].startswith("https://storage.test/"))
        self.assertEqual(report.uploaded, 2)
        self.assertEqual(report.failed, 1)
        self.assertEqual(len(report.errors), 1)
        self.assertIn("HTTP 404", report.errors[0])
        self.assertAlmostEqual(report.cost, 0.0002)
        self.assertEqual(fetch.call_count, 3)

    def test_storage_paths(self):
        product = ExtractedProduct(name="Door", images=URLS[:1])
        storage = MemoryStorage()

        ingest_product_images([ExtractedProduct(name="No images"), product], "job-7", storage,
                              fetch_image=image_fetcher(), max_images=3, cost_per_image=0.0001)

        self.assertEqual(len(storage.objects), 1)
        path = next(iter(storage.objects))
        self.assertRegex(path, r"^products/imported/job-7/\d+-1-0\.jpg$")

    def test_upload_failure_keeps_original(self):
        product = ExtractedProduct(name="Door", images=URLS[:2])
        storage = MemoryStorage(fail_paths_containing=["-0-1."])

        report = ingest_product_images([product], "job-1", storage, fetch_image=image_fetcher(),
                                       max_images=3, cost_per_image=0.0001)

        self.assertTrue(product.images[0].startswith("https://storage.test/"))
        self.assertEqual(product.images[1], URLS[1])
        self.assertEqual(report.uploaded, 1)
        self.assertIn("Upload failed", report.errors[0])

    def test_non_http_urls_skipped(self):
        product = ExtractedProduct(name="Door", images=["/relative/a.jpg", "data:image/png;base64,xx"])
        fetch = image_fetcher()

        report = ingest_product_images([product], "job-1", MemoryStorage(), fetch_image=fetch,
                                       max_images=3, cost_per_image=0.0001)

        self.assertEqual(product.images, ["/relative/a.jpg", "data:image/png;base64,xx"])
        self.assertEqual(report.failed, 2)
        self.assertEqual(report.cost, 0)
        fetch.assert_not_called()

    def test_products_without_images_untouched(self):
        product = ExtractedProduct(name="Door")
        report = ingest_product_images([product], "job-1", MemoryStorage(), fetch_image=image_fetcher())

        self.assertEqual(product.images, [])
        self.assertEqual(report.uploaded, 0)

    def test_storage_path_format(self):
        self.assertEqual(storage_path("abc", 2, 1, "png", timestamp_ms=1700000000000),
                         "products/imported/abc/1700000000000-2-1.png")
        self.assertTrue(re.match(r"products/imported/abc/\d+-0-0\.jpg", storage_path("abc", 0, 0, "jpg")))


if __name__ == '__main__':
    unittest.main()
