"""
Product Research API
====================

Endpoints to queue extraction jobs, poll them, and trigger processing from
an operator or cron.
"""

import hmac
import threading
import time
import uuid
from typing import Optional

from flask import current_app, jsonify, request
from pydantic import ValidationError

from ..config import config
from ..errors import JobNotFoundError, StorageError
from ..models import LOW_CONFIDENCE_THRESHOLD, JobStatus
from ..logger import get_logger
from ..processor import JobProcessor, build_processor, estimate_processing_time, queue_job
from .schemas import StartJobRequest

logger = get_logger('api')

PROCESSOR_KEY = 'JOB_PROCESSOR'
PDF_UPLOAD_PREFIX = 'product-research'
FORM_FLAGS = ('generate_descriptions', 'fetch_images')


def get_processor() -> JobProcessor:
    """Processor attached to the app, built from config on first use"""
    processor = current_app.config.get(PROCESSOR_KEY)
    if processor is None:
        processor = build_processor()
        current_app.config[PROCESSOR_KEY] = processor
    return processor


def _is_admin() -> bool:
    token = config.ADMIN_API_TOKEN
    if not token:
        return False
    header = request.headers.get('Authorization', '')
    return hmac.compare_digest(header, f"Bearer {token}")


def _is_internal_call() -> bool:
    return request.headers.get(config.INTERNAL_CALL_HEADER, '').strip().lower() == 'true'


def _run_in_background(processor: JobProcessor, job_id: str):
    def run():
        try:
            processor.process_job(job_id)
        except Exception:
            logger.exception(f"Background processing of job {job_id} failed")

    thread = threading.Thread(target=run, daemon=True)
    thread.start()
    return thread


def _upload_path(timestamp_ms: Optional[int] = None) -> str:
    timestamp_ms = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    return f"{PDF_UPLOAD_PREFIX}/{timestamp_ms}-{uuid.uuid4().hex[:9]}.pdf"


def _form_body() -> dict:
    """Multipart fields as a StartJobRequest body; flags are on unless sent as 'false'"""
    form = request.form
    body = {
        "pdf_url": form.get("pdf_url") or None,
        "vendor_url": form.get("vendor_url") or form.get("url") or None,
        "instructions": form.get("instructions") or None,
        "category": form.get("category") or None,
    }
    for flag in FORM_FLAGS:
        body[flag] = form.get(flag, "true").strip().lower() != "false"
    return body


def _uploaded_pdf():
    return request.files.get("file") or request.files.get("pdf")


# =============================================================================
# JOBS API
# =============================================================================

def start_job():
    """
    Queue a job and start it in the background.

    Takes a JSON body, or multipart form fields with the catalog PDF uploaded
    as `file` (or `pdf`). An uploaded PDF is stored first and its public URL
    becomes the job's pdf_url.
    """
    if not _is_admin():
        return jsonify({"error": "Unauthorized"}), 401

    upload = _uploaded_pdf()
    data = _form_body() if (upload or request.form) else (request.get_json(silent=True) or {})

    try:
        processor = get_processor()

        if upload:
            if processor.object_storage is None:
                return jsonify({"error": "Storage service not available"}), 500
            path = _upload_path()
            try:
                data["pdf_url"] = processor.object_storage.upload(upload.read(), 'application/pdf', path)
            except StorageError as e:
                logger.error(f"PDF upload failed: {e}")
                return jsonify({"error": f"PDF upload failed: {e}"}), 500
            logger.info(f"PDF uploaded to {path}")

        try:
            body = StartJobRequest.model_validate(data)
        except ValidationError as e:
            messages = [err.get("msg", str(err)) for err in e.errors()]
            return jsonify({"error": "; ".join(messages)}), 400

        inputs = body.to_inputs()
        job = queue_job(processor.job_store, inputs)
        _run_in_background(processor, job.id)

        return jsonify({
            "success": True,
            "job_id": job.id,
            "status": job.status.value,
            "pdf_url": inputs.pdf_url,
            "estimated_time": estimate_processing_time(inputs),
            "message": "Job queued for processing",
        }), 202

    except Exception as e:
        logger.exception("Failed to start job")
        return jsonify({"error": str(e)}), 500


def get_job(job_id):
    """Get a job record"""
    if not _is_admin():
        return jsonify({"error": "Unauthorized"}), 401

    try:
        job = get_processor().job_store.get(job_id)
        if not job:
            return jsonify({"error": "Job not found"}), 404
        return jsonify(job.to_dict())

    except Exception as e:
        return jsonify({"error": str(e)}), 500


def get_job_status(job_id):
    """Progress of a job, with product count and elapsed time"""
    if not _is_admin():
        return jsonify({"error": "Unauthorized"}), 401

    try:
        job = get_processor().job_store.get(job_id)
        if not job:
            return jsonify({"error": "Job not found"}), 404

        record = job.to_dict()
        return jsonify({
            "job_id": job.id,
            "status": job.status.value,
            "progress": job.progress,
            "message": job.message,
            "products_found": job.products_found,
            "errors": list(job.errors),
            "elapsed_seconds": job.elapsed_seconds(),
            "created_at": record["created_at"],
            "started_at": record["started_at"],
            "completed_at": record["completed_at"],
        })

    except Exception as e:
        return jsonify({"error": str(e)}), 500


def get_job_results(job_id):
    """
    Full results of a finished job.

    Returns 400 with the current progress until the job is completed or failed.
    Products at or above the review threshold come back pre-selected.
    """
    if not _is_admin():
        return jsonify({"error": "Unauthorized"}), 401

    try:
        job = get_processor().job_store.get(job_id)
        if not job:
            return jsonify({"error": "Job not found"}), 404

        if not job.status.is_terminal:
            return jsonify({
                "error": "Job not yet completed",
                "status": job.status.value,
                "progress": job.progress,
                "message": "Poll the status endpoint until the job is complete",
            }), 400

        results = job.results or {}
        products = []
        for product in results.get("products") or []:
            confidence = product.get("confidence") or 0
            products.append({
                **product,
                "selected": confidence >= LOW_CONFIDENCE_THRESHOLD,
                "has_issues": (confidence < LOW_CONFIDENCE_THRESHOLD
                               or not product.get("name") or not product.get("price_cents")),
            })

        record = job.to_dict()
        return jsonify({
            "job_id": job.id,
            "status": job.status.value,
            "products": products,
            "errors": results.get("errors") or list(job.errors),
            "warnings": results.get("warnings") or [],
            "suggestions": results.get("suggestions") or [],
            "inputs": record["inputs"],
            "completed_at": record["completed_at"],
            "execution_time_ms": results.get("execution_time_ms"),
            "model": results.get("model"),
            "total_cost": job.total_cost,
            "cost_breakdown": record["cost_breakdown"],
        })

    except Exception as e:
        return jsonify({"error": str(e)}), 500


def process_jobs():
    """
    Trigger processing.

    With a job_id the job starts in the background and the call returns
    immediately; without one the oldest queued job is drained synchronously.
    """
    if request.method != 'POST':
        response = jsonify({"error": "Method not allowed"})
        response.headers['Allow'] = 'POST'
        return response, 405

    if not (_is_internal_call() or _is_admin()):
        return jsonify({"error": "Unauthorized"}), 401

    body = request.get_json(silent=True) or {}
    job_id = body.get("job_id") or body.get("jobId")

    try:
        processor = get_processor()

        if job_id:
            job = processor.job_store.get(job_id)
            if job is None:
                raise JobNotFoundError(job_id)
            if job.status != JobStatus.QUEUED:
                return jsonify({
                    "error": f"Job {job_id} is already {job.status.value}",
                    "job_id": job_id,
                    "status": job.status.value,
                }), 409
            _run_in_background(processor, job_id)
            return jsonify({
                "success": True,
                "job_id": job_id,
                "message": "Processing started",
            }), 202

        result = processor.process_queued_jobs()
        return jsonify({"success": True, **result})

    except JobNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception as e:
        logger.exception("Processing trigger failed")
        return jsonify({"error": str(e)}), 500


def register_routes(app, processor: JobProcessor = None):
    """Register all routes with Flask app"""
    if processor is not None:
        app.config[PROCESSOR_KEY] = processor

    prefix = config.API_PREFIX
    app.add_url_rule(f'{prefix}/product-research/start', 'start_job', start_job, methods=['POST'])
    app.add_url_rule(f'{prefix}/product-research/jobs/<job_id>', 'get_job', get_job, methods=['GET'])
    app.add_url_rule(f'{prefix}/product-research/status/<job_id>', 'get_job_status', get_job_status, methods=['GET'])
    app.add_url_rule(f'{prefix}/product-research/results/<job_id>', 'get_job_results', get_job_results,
                     methods=['GET'])
    app.add_url_rule(f'{prefix}/product-research/process', 'process_jobs', process_jobs,
                     methods=['GET', 'POST', 'PUT', 'PATCH', 'DELETE'])
