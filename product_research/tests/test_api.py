#!/usr/bin/env python3
"""
API Tests
=========

Start, status, results and processing-trigger endpoints through the Flask test client.

Run:
    python -m unittest product_research.tests.test_api
"""

import io
import unittest
from unittest.mock import patch

from product_research.app import create_app
from product_research.config import config
from product_research.models import JobInputs, JobOptions, JobStatus
from product_research.processor import JobProcessor
from product_research.storage import SQLiteJobStore
from product_research.tests.fakes import FakeExtractionService, MemoryStorage, product_reply

TOKEN = "test-admin-token"
ADMIN = {"Authorization": f"Bearer {TOKEN}"}
INTERNAL = {"X-Internal-Call": "true"}

PROCESS = "/api/product-research/process"
START = "/api/product-research/start"
STATUS = "/api/product-research/status"
RESULTS = "/api/product-research/results"


class ApiTestCase(unittest.TestCase):

    def setUp(self):
        self.token_patch = patch.object(config, "ADMIN_API_TOKEN", TOKEN)
        self.header_patch = patch.object(config, "INTERNAL_CALL_HEADER", "X-Internal-Call")
        self.token_patch.start()
        self.header_patch.start()

        self.store = SQLiteJobStore(":memory:")
        self.storage = MemoryStorage()
        self.processor = JobProcessor(
            job_store=self.store,
            extraction_service=FakeExtractionService([product_reply({"name": "Door", "confidence": 0.9})]),
            object_storage=self.storage,
        )
        self.client = create_app(processor=self.processor).test_client()

    def tearDown(self):
        self.store.close()
        self.header_patch.stop()
        self.token_patch.stop()

    def queued_job(self):
        return self.store.create(JobInputs(instructions="Extract the door",
                                           options=JobOptions(fetch_images=False)))


# =============================================================================
# HEALTH
# =============================================================================

class TestHealth(ApiTestCase):

    def test_health(self):
        response = self.client.get("/api/health")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["status"], "healthy")


# =============================================================================
# PROCESS TRIGGER
# =============================================================================

class TestProcessTrigger(ApiTestCase):
    """POST only, internal header or admin token."""

    def test_other_methods_rejected(self):
        for method in ("get", "put", "patch", "delete"):
            response = getattr(self.client, method)(PROCESS, headers=ADMIN)
            self.assertEqual(response.status_code, 405, method)
            self.assertEqual(response.headers["Allow"], "POST")

    def test_unauthorized(self):
        response = self.client.post(PROCESS, json={})
        self.assertEqual(response.status_code, 401)

    def test_wrong_token(self):
        response = self.client.post(PROCESS, json={}, headers={"Authorization": "Bearer nope"})
        self.assertEqual(response.status_code, 401)

    def test_internal_call_drains_empty_queue(self):
        response = self.client.post(PROCESS, json={}, headers=INTERNAL)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json(), {"success": True, "processed": 0})

    def test_admin_drains_oldest_job(self):
        job = self.queued_job()

        response = self.client.post(PROCESS, headers=ADMIN)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json(), {"success": True, "processed": 1, "job_id": job.id})
        self.assertEqual(self.store.get(job.id).status, JobStatus.COMPLETED)

    def test_specific_job_starts_in_background(self):
        job = self.queued_job()

        with patch("product_research.api.routes._run_in_background") as run:
            response = self.client.post(PROCESS, json={"jobId": job.id}, headers=INTERNAL)

        self.assertEqual(response.status_code, 202)
        self.assertEqual(response.get_json()["job_id"], job.id)
        run.assert_called_once_with(self.processor, job.id)

    def test_finished_job_not_restarted(self):
        job = self.queued_job()
        self.processor.process_job(job.id)

        with patch("product_research.api.routes._run_in_background") as run:
            response = self.client.post(PROCESS, json={"jobId": job.id}, headers=INTERNAL)

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.get_json()["status"], "completed")
        run.assert_not_called()

    def test_unknown_job(self):
        with patch("product_research.api.routes._run_in_background") as run:
            response = self.client.post(PROCESS, json={"job_id": "missing"}, headers=INTERNAL)

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()["error"], "Job not found: missing")
        run.assert_not_called()


# =============================================================================
# START AND STATUS
# =============================================================================

class TestStartJob(ApiTestCase):
    """Queueing through the API."""

    def test_requires_admin(self):
        response = self.client.post(START, json={"instructions": "x"}, headers=INTERNAL)
        self.assertEqual(response.status_code, 401)

    def test_requires_some_input(self):
        response = self.client.post(START, json={"category": "doors"}, headers=ADMIN)

        self.assertEqual(response.status_code, 400)
        self.assertIn("pdf_url", response.get_json()["error"])

    def test_queues_job(self):
        with patch("product_research.api.routes._run_in_background") as run:
            response = self.client.post(START, headers=ADMIN, json={
                "pdf_url": "https://cdn.test/catalog.pdf",
                "vendor_url": "https://shop.test/door",
                "instructions": "pages 4-6",
                "category": "doors",
                "fetch_images": False,
            })

        self.assertEqual(response.status_code, 202)
        body = response.get_json()
        self.assertTrue(body["success"])
        self.assertEqual(body["status"], "queued")
        self.assertEqual(body["estimated_time"], 40)

        job = self.store.get(body["job_id"])
        self.assertEqual(job.status, JobStatus.QUEUED)
        self.assertEqual(job.inputs.options.category, "doors")
        self.assertFalse(job.inputs.options.fetch_images)
        run.assert_called_once_with(self.processor, body["job_id"])


    def test_uploaded_pdf_becomes_pdf_url(self):
        with patch("product_research.api.routes._run_in_background"):
            response = self.client.post(START, headers=ADMIN, content_type="multipart/form-data", data={
                "file": (io.BytesIO(b"%PDF-1.4 catalog"), "catalog.pdf"),
                "url": "https://shop.test/door",
                "category": "doors",
                "fetch_images": "false",
            })

        self.assertEqual(response.status_code, 202)
        body = response.get_json()

        [path] = self.storage.objects
        self.assertRegex(path, r"^product-research/\d+-[0-9a-f]{9}\.pdf$")
        self.assertEqual(self.storage.objects[path], b"%PDF-1.4 catalog")
        self.assertEqual(body["pdf_url"], f"https://storage.test/{path}")
        self.assertEqual(body["estimated_time"], 40)

        job = self.store.get(body["job_id"])
        self.assertEqual(job.inputs.pdf_url, f"https://storage.test/{path}")
        self.assertEqual(job.inputs.vendor_url, "https://shop.test/door")
        self.assertFalse(job.inputs.options.fetch_images)
        self.assertTrue(job.inputs.options.generate_descriptions)

    def test_pdf_field_name_accepted(self):
        with patch("product_research.api.routes._run_in_background"):
            response = self.client.post(START, headers=ADMIN, content_type="multipart/form-data", data={
                "pdf": (io.BytesIO(b"%PDF-1.4"), "catalog.pdf"),
            })

        self.assertEqual(response.status_code, 202)
        self.assertEqual(len(self.storage.objects), 1)

    def test_form_without_any_input(self):
        response = self.client.post(START, headers=ADMIN, content_type="multipart/form-data",
                                    data={"category": "doors"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.storage.objects, {})

    def test_upload_failure(self):
        self.storage.fail_paths_containing = ["product-research/"]

        with patch("product_research.api.routes._run_in_background") as run:
            response = self.client.post(START, headers=ADMIN, content_type="multipart/form-data", data={
                "file": (io.BytesIO(b"%PDF-1.4"), "catalog.pdf"),
            })

        self.assertEqual(response.status_code, 500)
        self.assertIn("PDF upload failed", response.get_json()["error"])
        self.assertEqual(self.store.list_jobs(), [])
        run.assert_not_called()

    def test_upload_without_storage(self):
        self.processor.object_storage = None

        response = self.client.post(START, headers=ADMIN, content_type="multipart/form-data", data={
            "file": (io.BytesIO(b"%PDF-1.4"), "catalog.pdf"),
        })

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.get_json()["error"], "Storage service not available")


class TestJobStatus(ApiTestCase):
    """Progress polling with product count and elapsed time."""

    def test_requires_admin(self):
        job = self.queued_job()
        self.assertEqual(self.client.get(f"{STATUS}/{job.id}").status_code, 401)

    def test_unknown(self):
        self.assertEqual(self.client.get(f"{STATUS}/missing", headers=ADMIN).status_code, 404)

    def test_queued(self):
        job = self.queued_job()

        body = self.client.get(f"{STATUS}/{job.id}", headers=ADMIN).get_json()

        self.assertEqual(body["job_id"], job.id)
        self.assertEqual(body["status"], "queued")
        self.assertEqual(body["progress"], 0)
        self.assertEqual(body["products_found"], 0)
        self.assertIsInstance(body["elapsed_seconds"], int)
        self.assertGreaterEqual(body["elapsed_seconds"], 0)
        self.assertIsNone(body["completed_at"])

    def test_completed(self):
        job = self.queued_job()
        self.processor.process_job(job.id)

        body = self.client.get(f"{STATUS}/{job.id}", headers=ADMIN).get_json()

        self.assertEqual(body["status"], "completed")
        self.assertEqual(body["progress"], 100)
        self.assertEqual(body["products_found"], 1)
        self.assertIsNotNone(body["completed_at"])


class TestJobResults(ApiTestCase):
    """Results are only served once a job is finished."""

    def test_requires_admin(self):
        job = self.queued_job()
        self.assertEqual(self.client.get(f"{RESULTS}/{job.id}").status_code, 401)

    def test_unknown(self):
        self.assertEqual(self.client.get(f"{RESULTS}/missing", headers=ADMIN).status_code, 404)

    def test_not_finished(self):
        job = self.queued_job()
        self.store.mark_processing(job.id)

        response = self.client.get(f"{RESULTS}/{job.id}", headers=ADMIN)

        self.assertEqual(response.status_code, 400)
        body = response.get_json()
        self.assertEqual(body["error"], "Job not yet completed")
        self.assertEqual(body["status"], "processing")

    def test_completed(self):
        job = self.queued_job()
        self.processor.process_job(job.id)

        response = self.client.get(f"{RESULTS}/{job.id}", headers=ADMIN)

        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertEqual(body["status"], "completed")
        [product] = body["products"]
        self.assertEqual(product["name"], "Door")
        self.assertTrue(product["selected"])
        # no price extracted
        self.assertTrue(product["has_issues"])
        self.assertEqual(body["inputs"]["instructions"], "Extract the door")
        self.assertIn("extraction", body["cost_breakdown"])

    def test_failed_job_has_results(self):
        job = self.queued_job()
        self.store.mark_processing(job.id)
        self.store.mark_failed(job.id, "No data available for extraction", ["PDF parsing failed: 404"])

        response = self.client.get(f"{RESULTS}/{job.id}", headers=ADMIN)

        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertEqual(body["status"], "failed")
        self.assertEqual(body["products"], [])
        self.assertEqual(body["errors"], ["PDF parsing failed: 404"])


class TestGetJob(ApiTestCase):
    """Job status lookups."""

    def test_requires_admin(self):
        job = self.queued_job()
        self.assertEqual(self.client.get(f"/api/product-research/jobs/{job.id}").status_code, 401)

    def test_unknown(self):
        response = self.client.get("/api/product-research/jobs/missing", headers=ADMIN)
        self.assertEqual(response.status_code, 404)

    def test_found(self):
        job = self.queued_job()

        response = self.client.get(f"/api/product-research/jobs/{job.id}", headers=ADMIN)

        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertEqual(body["id"], job.id)
        self.assertEqual(body["status"], "queued")
        self.assertEqual(body["cost_breakdown"], {"extraction": 0.0, "ocr": 0.0, "storage": 0.0})


if __name__ == '__main__':
    unittest.main()
