"""
Custom exceptions for the product research pipeline.
"""


class ProcessingError(Exception):
    """Base exception for all pipeline errors"""
    pass


class JobNotFoundError(ProcessingError):
    """Raised when processing is requested for an unknown job"""

    def __init__(self, job_id: str):
        super().__init__(f"Job not found: {job_id}")
        self.job_id = job_id


class NoExtractableInputError(ProcessingError):
    """Raised when a job has no PDF data, no page data and no instructions"""
    pass


class DownloadError(ProcessingError):
    """Raised when a PDF or image cannot be fetched"""
    pass


class ScrapeError(ProcessingError):
    """Raised when a vendor page cannot be fetched"""
    pass


class StorageError(ProcessingError):
    """Raised when an upload to object storage fails"""
    pass


class ExtractionServiceError(ProcessingError):
    """Raised when the AI extraction service is unavailable or errors"""
    pass


class OCRError(ProcessingError):
    """Raised when the OCR service fails on a page image"""
    pass


class JobStoreError(ProcessingError):
    """Raised when the job store cannot be read or written"""
    pass
