"""
Object Storage
==============

Durable storage for ingested product images. Uploads return a public URL.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from ..errors import StorageError
from ..logger import get_logger

logger = get_logger('object_storage')


class ObjectStorage(ABC):
    """Upload a blob, get back a public URL"""

    @abstractmethod
    def upload(self, data: bytes, content_type: str, path: str) -> str:
        pass


class LocalObjectStorage(ObjectStorage):
    """Writes blobs under a local directory served at `public_base_url`"""

    def __init__(self, root_dir: str = "data/uploads",
                 public_base_url: str = "http://127.0.0.1:8090/uploads"):
        self.root_dir = Path(root_dir)
        self.public_base_url = public_base_url.rstrip('/')

    def upload(self, data: bytes, content_type: str, path: str) -> str:
        relative = path.lstrip('/')
        target = (self.root_dir / relative).resolve()
        if self.root_dir.resolve() not in target.parents:
            raise StorageError(f"Refusing to write outside storage root: {path}")

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Upload failed for {path}: {e}") from e

        logger.debug(f"Stored {len(data)} bytes ({content_type}) at {target}")
        return f"{self.public_base_url}/{relative}"


class GCSObjectStorage(ObjectStorage):
    """Google Cloud Storage bucket"""

    def __init__(self, bucket_name: str, client=None):
        if not bucket_name:
            raise StorageError("GCS_BUCKET is not configured")

        if client is None:
            from google.cloud import storage as gcs
            client = gcs.Client()

        self.bucket = client.bucket(bucket_name)
        self.bucket_name = bucket_name

    def upload(self, data: bytes, content_type: str, path: str) -> str:
        try:
            blob = self.bucket.blob(path.lstrip('/'))
            blob.upload_from_string(data, content_type=content_type)
            return blob.public_url
        except Exception as e:
            raise StorageError(f"GCS upload failed for {path}: {e}") from e


def get_object_storage(backend: Optional[str] = None) -> ObjectStorage:
    """Build the configured object storage backend"""
    from ..config import config

    backend = (backend or config.STORAGE_BACKEND).lower()
    if backend == "gcs":
        return GCSObjectStorage(config.GCS_BUCKET)
    if backend == "local":
        return LocalObjectStorage(config.LOCAL_STORAGE_DIR, config.PUBLIC_BASE_URL)
    raise ValueError(f"Unknown storage backend: {backend}")
