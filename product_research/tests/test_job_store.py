#!/usr/bin/env python3
"""
Job Store Tests
===============

Lifecycle rules of the SQLite job store: conditional claim, monotonic
progress and terminal transitions only from 'processing'.

Run:
    python -m unittest product_research.tests.test_job_store
"""

import os
import shutil
import tempfile
import unittest

from product_research.models import CostBreakdown, JobInputs, JobOptions, JobStatus
from product_research.storage import SQLiteJobStore


def sample_inputs(**overrides):
    data = dict(
        pdf_url="https://cdn.test/catalog.pdf",
        vendor_url=None,
        instructions="Extract pages 4-6",
        options=JobOptions(category="doors", fetch_images=False),
    )
    data.update(overrides)
    return JobInputs(**data)


class TestSQLiteJobStore(unittest.TestCase):
    """Job rows on a temporary database file."""

    @classmethod
    def setUpClass(cls):
        cls.temp_dir = tempfile.mkdtemp()

    @classmethod
    def tearDownClass(cls):
        shutil.rmtree(cls.temp_dir, ignore_errors=True)

    def setUp(self):
        self.db_path = os.path.join(self.temp_dir, f"{self._testMethodName}.db")
        self.store = SQLiteJobStore(self.db_path)

    def tearDown(self):
        self.store.close()

    def test_create(self):
        job = self.store.create(sample_inputs())

        self.assertEqual(job.status, JobStatus.QUEUED)
        self.assertEqual(job.progress, 0)
        self.assertEqual(job.errors, [])
        self.assertEqual(job.cost_breakdown, CostBreakdown())
        self.assertIsNotNone(job.created_at)
        self.assertIsNone(job.started_at)
        self.assertEqual(job.inputs.options.category, "doors")
        self.assertFalse(job.inputs.options.fetch_images)
        self.assertTrue(job.inputs.options.generate_descriptions)

    def test_get_unknown(self):
        self.assertIsNone(self.store.get("missing"))

    def test_claim_only_once(self):
        job = self.store.create(sample_inputs())

        self.assertTrue(self.store.mark_processing(job.id))
        self.assertFalse(self.store.mark_processing(job.id))

        claimed = self.store.get(job.id)
        self.assertEqual(claimed.status, JobStatus.PROCESSING)
        self.assertIsNotNone(claimed.started_at)

    def test_progress_never_decreases(self):
        job = self.store.create(sample_inputs())
        self.store.mark_processing(job.id)

        self.store.update_progress(job.id, 50, "Extracting")
        self.store.update_progress(job.id, 20, "Late update")

        current = self.store.get(job.id)
        self.assertEqual(current.progress, 50)
        self.assertEqual(current.message, "Late update")

    def test_progress_snapshot_of_errors_and_costs(self):
        job = self.store.create(sample_inputs())
        self.store.mark_processing(job.id)

        costs = CostBreakdown().plus("ocr", 0.003)
        self.store.update_progress(job.id, 20, "Parsing PDF", extra={
            "errors": ["PDF parsing failed: boom"],
            "cost_breakdown": costs,
            "total_cost": costs.total,
        })

        current = self.store.get(job.id)
        self.assertEqual(current.errors, ["PDF parsing failed: boom"])
        self.assertAlmostEqual(current.cost_breakdown.ocr, 0.003)
        self.assertAlmostEqual(current.total_cost, 0.003)

    def test_progress_rejects_unknown_columns(self):
        job = self.store.create(sample_inputs())
        with self.assertRaises(ValueError):
            self.store.update_progress(job.id, 10, "x", extra={"status": "completed"})

    def test_progress_ignored_unless_processing(self):
        job = self.store.create(sample_inputs())
        self.store.update_progress(job.id, 40, "Too early")

        current = self.store.get(job.id)
        self.assertEqual(current.progress, 0)
        self.assertEqual(current.status, JobStatus.QUEUED)

    def test_complete(self):
        job = self.store.create(sample_inputs())
        self.store.mark_processing(job.id)
        costs = CostBreakdown(extraction=0.01, ocr=0.0015, storage=0.0002)

        done = self.store.mark_completed(job.id, {"products": [{"name": "Door"}]}, costs, costs.total,
                                         errors=["Vendor page error: HTTP 500"], message="Found 1 products")

        self.assertTrue(done)
        job = self.store.get(job.id)
        self.assertEqual(job.status, JobStatus.COMPLETED)
        self.assertEqual(job.progress, 100)
        self.assertEqual(job.message, "Found 1 products")
        self.assertEqual(job.results["products"][0]["name"], "Door")
        self.assertEqual(job.errors, ["Vendor page error: HTTP 500"])
        self.assertEqual(job.cost_breakdown, costs)
        self.assertAlmostEqual(job.total_cost, 0.0117)
        self.assertIsNotNone(job.completed_at)

    def test_terminal_states_are_final(self):
        job = self.store.create(sample_inputs())
        self.store.mark_processing(job.id)
        self.store.mark_completed(job.id, {"products": []}, CostBreakdown(), 0.0)

        self.assertFalse(self.store.mark_failed(job.id, "late failure", ["late failure"]))
        self.assertFalse(self.store.mark_completed(job.id, {"products": [1]}, CostBreakdown(), 0.0))
        self.assertFalse(self.store.mark_processing(job.id))
        self.assertEqual(self.store.get(job.id).status, JobStatus.COMPLETED)

    def test_queued_job_cannot_complete(self):
        job = self.store.create(sample_inputs())

        self.assertFalse(self.store.mark_completed(job.id, {"products": []}, CostBreakdown(), 0.0))
        self.assertFalse(self.store.mark_failed(job.id, "nope", []))
        self.assertEqual(self.store.get(job.id).status, JobStatus.QUEUED)

    def test_fail(self):
        job = self.store.create(sample_inputs())
        self.store.mark_processing(job.id)
        costs = CostBreakdown(ocr=0.0015)

        self.assertTrue(self.store.mark_failed(job.id, "No data available for extraction",
                                               ["PDF parsing failed: 404", "No data available for extraction"],
                                               costs))

        job = self.store.get(job.id)
        self.assertEqual(job.status, JobStatus.FAILED)
        self.assertEqual(job.message, "No data available for extraction")
        self.assertEqual(len(job.errors), 2)
        self.assertAlmostEqual(job.total_cost, 0.0015)
        self.assertIsNone(job.results)

    def test_oldest_queued_first(self):
        first = self.store.create(sample_inputs(instructions="first"))
        second = self.store.create(sample_inputs(instructions="second"))

        self.assertEqual(self.store.find_oldest_queued().id, first.id)
        self.store.mark_processing(first.id)
        self.assertEqual(self.store.find_oldest_queued().id, second.id)
        self.store.mark_processing(second.id)
        self.assertIsNone(self.store.find_oldest_queued())

    def test_list_jobs_newest_first(self):
        ids = [self.store.create(sample_inputs(instructions=str(i))).id for i in range(3)]

        listed = [job.id for job in self.store.list_jobs(limit=2)]
        self.assertEqual(listed, [ids[2], ids[1]])

    def test_survives_reopen(self):
        job = self.store.create(sample_inputs())
        self.store.close()

        self.store = SQLiteJobStore(self.db_path)
        self.assertEqual(self.store.get(job.id).inputs.pdf_url, "https://cdn.test/catalog.pdf")

    def test_in_memory_store(self):
        store = SQLiteJobStore(":memory:")
        job = store.create(sample_inputs())
        self.assertEqual(store.get(job.id).status, JobStatus.QUEUED)
        store.close()


if __name__ == '__main__':
    unittest.main()
