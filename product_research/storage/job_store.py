"""
Job Store
=========

Durable job records for the extraction pipeline.

The job row is the only shared mutable resource. Workers coordinate through
the conditional claim in `mark_processing`: whichever worker flips the row
from 'queued' to 'processing' owns the run.
"""

import json
import sqlite3
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Any

from ..errors import JobStoreError
from ..logger import get_logger
from ..models import Job, JobInputs, JobStatus, CostBreakdown

logger = get_logger('job_store')


class JobStore(ABC):
    """Interface the job processor needs from persistence"""

    @abstractmethod
    def create(self, inputs: JobInputs) -> Job:
        pass

    @abstractmethod
    def get(self, job_id: str) -> Optional[Job]:
        pass

    @abstractmethod
    def update_progress(self, job_id: str, progress: int, message: str,
                        extra: Optional[Dict[str, Any]] = None) -> None:
        pass

    @abstractmethod
    def mark_processing(self, job_id: str) -> bool:
        pass

    @abstractmethod
    def mark_completed(self, job_id: str, results: Dict[str, Any],
                       cost_breakdown: CostBreakdown, total_cost: float,
                       errors: Optional[List[str]] = None,
                       message: Optional[str] = None) -> bool:
        pass

    @abstractmethod
    def mark_failed(self, job_id: str, message: str, errors: List[str],
                    cost_breakdown: Optional[CostBreakdown] = None) -> bool:
        pass

    @abstractmethod
    def find_oldest_queued(self) -> Optional[Job]:
        pass

    @abstractmethod
    def list_jobs(self, limit: int = 20) -> List[Job]:
        pass


class SQLiteJobStore(JobStore):
    """SQLite-backed job store"""

    # Columns `update_progress` may touch through `extra`
    EXTRA_COLUMNS = {"errors", "cost_breakdown", "total_cost"}

    def __init__(self, db_path: str = "data/product_research.db"):
        """
        Initialize SQLiteJobStore

        Args:
            db_path: Path to SQLite database file (":memory:" for tests)
        """
        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.Lock()
        try:
            self.conn = sqlite3.connect(db_path, check_same_thread=False)
            self.conn.row_factory = sqlite3.Row  # Return rows as dicts
            self._create_tables()
        except sqlite3.Error as e:
            raise JobStoreError(f"Cannot open job store at {db_path}: {e}") from e

    def _create_tables(self):
        """Create tables if they don't exist"""
        schema_path = Path(__file__).parent / "schema.sql"

        with open(schema_path, 'r') as f:
            schema_sql = f.read()

        self.conn.executescript(schema_sql)
        self.conn.commit()

    def close(self):
        self.conn.close()

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        with self._lock:
            try:
                cursor = self.conn.execute(sql, params)
                self.conn.commit()
                return cursor
            except sqlite3.Error as e:
                self.conn.rollback()
                raise JobStoreError(f"Job store error: {e}") from e

    def _job_from_row(self, row: sqlite3.Row) -> Job:
        data = dict(row)
        return Job.from_dict({
            "id": data["id"],
            "status": data["status"],
            "progress": data["progress"],
            "message": data["message"],
            "inputs": {
                "pdf_url": data["pdf_url"],
                "vendor_url": data["vendor_url"],
                "instructions": data["instructions"],
                "options": json.loads(data["options"] or "{}"),
            },
            "results": json.loads(data["results"]) if data["results"] else None,
            "errors": json.loads(data["errors"] or "[]"),
            "total_cost": data["total_cost"],
            "cost_breakdown": json.loads(data["cost_breakdown"] or "{}"),
            "created_at": data["created_at"],
            "started_at": data["started_at"],
            "completed_at": data["completed_at"],
        })

    # =========================================================================
    # JOB OPERATIONS
    # =========================================================================

    def create(self, inputs: JobInputs) -> Job:
        """Insert a new job in 'queued' state"""
        job_id = uuid.uuid4().hex
        self._execute("""
            INSERT INTO jobs (
                id, status, progress, message,
                pdf_url, vendor_url, instructions, options,
                errors, total_cost, cost_breakdown, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            job_id,
            JobStatus.QUEUED.value,
            0,
            "Queued",
            inputs.pdf_url,
            inputs.vendor_url,
            inputs.instructions,
            json.dumps(inputs.options.to_dict()),
            "[]",
            0.0,
            json.dumps(CostBreakdown().to_dict()),
            datetime.now().isoformat(),
        ))
        logger.info(f"Created job {job_id}")
        return self.get(job_id)

    def get(self, job_id: str) -> Optional[Job]:
        """Get job by ID"""
        row = self._execute("SELECT * FROM jobs WHERE id = ?", (job_id,)).fetchone()
        return self._job_from_row(row) if row else None

    def update_progress(self, job_id: str, progress: int, message: str,
                        extra: Optional[Dict[str, Any]] = None) -> None:
        """
        Record progress on a running job.

        Progress never goes down. `extra` may carry errors, cost_breakdown
        or total_cost snapshots.
        """
        assignments = ["progress = MAX(progress, ?)", "message = ?"]
        params: List[Any] = [int(progress), message]

        for key, value in (extra or {}).items():
            if key not in self.EXTRA_COLUMNS:
                raise ValueError(f"Cannot update column: {key}")
            if isinstance(value, CostBreakdown):
                value = value.to_dict()
            if isinstance(value, (dict, list)):
                value = json.dumps(value)
            assignments.append(f"{key} = ?")
            params.append(value)

        params.extend([job_id, JobStatus.PROCESSING.value])
        self._execute(
            f"UPDATE jobs SET {', '.join(assignments)} WHERE id = ? AND status = ?",
            tuple(params)
        )

    def mark_processing(self, job_id: str) -> bool:
        """Claim a queued job. Returns False if another run already owns it."""
        cursor = self._execute("""
            UPDATE jobs SET status = ?, started_at = ?
            WHERE id = ? AND status = ?
        """, (JobStatus.PROCESSING.value, datetime.now().isoformat(),
              job_id, JobStatus.QUEUED.value))
        return cursor.rowcount == 1

    def mark_completed(self, job_id: str, results: Dict[str, Any],
                       cost_breakdown: CostBreakdown, total_cost: float,
                       errors: Optional[List[str]] = None,
                       message: Optional[str] = None) -> bool:
        """Write results and the terminal status together"""
        cursor = self._execute("""
            UPDATE jobs SET
                status = ?, progress = 100, message = ?,
                results = ?, errors = ?,
                cost_breakdown = ?, total_cost = ?,
                completed_at = ?
            WHERE id = ? AND status = ?
        """, (
            JobStatus.COMPLETED.value,
            message or "Completed",
            json.dumps(results),
            json.dumps(list(errors or [])),
            json.dumps(cost_breakdown.to_dict()),
            float(total_cost),
            datetime.now().isoformat(),
            job_id,
            JobStatus.PROCESSING.value,
        ))
        return cursor.rowcount == 1

    def mark_failed(self, job_id: str, message: str, errors: List[str],
                    cost_breakdown: Optional[CostBreakdown] = None) -> bool:
        """Move a running job to 'failed', keeping the collected errors"""
        assignments = ["status = ?", "message = ?", "errors = ?", "completed_at = ?"]
        params: List[Any] = [
            JobStatus.FAILED.value,
            message,
            json.dumps(list(errors)),
            datetime.now().isoformat(),
        ]
        if cost_breakdown is not None:
            assignments.extend(["cost_breakdown = ?", "total_cost = ?"])
            params.extend([json.dumps(cost_breakdown.to_dict()), cost_breakdown.total])

        params.extend([job_id, JobStatus.PROCESSING.value])
        cursor = self._execute(
            f"UPDATE jobs SET {', '.join(assignments)} WHERE id = ? AND status = ?",
            tuple(params)
        )
        return cursor.rowcount == 1

    def find_oldest_queued(self) -> Optional[Job]:
        row = self._execute("""
            SELECT * FROM jobs WHERE status = ?
            ORDER BY created_at ASC, rowid ASC LIMIT 1
        """, (JobStatus.QUEUED.value,)).fetchone()
        return self._job_from_row(row) if row else None

    def list_jobs(self, limit: int = 20) -> List[Job]:
        """Most recent jobs first"""
        rows = self._execute(
            "SELECT * FROM jobs ORDER BY created_at DESC, rowid DESC LIMIT ?",
            (int(limit),)
        ).fetchall()
        return [self._job_from_row(row) for row in rows]
