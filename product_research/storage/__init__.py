"""
Storage Package
===============

Job persistence and durable object storage.
"""

from .job_store import JobStore, SQLiteJobStore
from .object_storage import (
    ObjectStorage,
    LocalObjectStorage,
    GCSObjectStorage,
    get_object_storage,
)


def get_job_store(db_path: str = None) -> JobStore:
    """Open the configured job store"""
    from ..config import config
    return SQLiteJobStore(db_path or config.DATABASE_PATH)


__all__ = [
    'JobStore', 'SQLiteJobStore', 'get_job_store',
    'ObjectStorage', 'LocalObjectStorage', 'GCSObjectStorage', 'get_object_storage',
]
