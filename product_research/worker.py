"""
Polling worker.

Drains one queued job per iteration and sleeps when the queue is empty.
Several workers can share one job store; the conditional claim in the store
keeps them from running the same job twice.
"""

import time
from typing import Optional

from .config import config
from .errors import ProcessingError
from .logger import get_logger
from .processor import JobProcessor, build_processor

logger = get_logger('worker')


def run_worker(processor: Optional[JobProcessor] = None,
               poll_interval: Optional[float] = None,
               max_iterations: Optional[int] = None,
               sleep=time.sleep) -> int:
    """
    Poll for queued jobs until interrupted.

    Args:
        processor: JobProcessor to drive (built from config if omitted)
        poll_interval: Seconds to wait when the queue is empty
        max_iterations: Stop after this many polls (None runs forever)
        sleep: Sleep function

    Returns:
        Number of jobs processed
    """
    processor = processor or build_processor()
    poll_interval = config.POLL_INTERVAL if poll_interval is None else poll_interval
    processed = 0
    iterations = 0

    logger.info(f"Worker started (poll interval {poll_interval}s)")
    try:
        while max_iterations is None or iterations < max_iterations:
            iterations += 1
            try:
                result = processor.process_queued_jobs()
            except ProcessingError as e:
                logger.error(f"Polling failed: {e}")
                sleep(poll_interval)
                continue

            if result.get("processed"):
                processed += 1
                logger.info(f"Processed job {result.get('job_id')}")
            else:
                sleep(poll_interval)
    except KeyboardInterrupt:
        logger.info("Worker interrupted")

    logger.info(f"Worker stopped after {processed} jobs")
    return processed


if __name__ == '__main__':
    run_worker()
