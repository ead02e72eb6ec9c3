from fastapi import HTTPException
import logging

from buchhaltung.core.exceptions import (
    BucketNotFound,
    DocumentNotFound,
    StorageAccessDenied,
    StorageError,
    StorageNotConfigured,
)
from buchhaltung.db.storage import DocumentStorage, storage_backend

logger = logging.getLogger(__name__)


def get_storage() -> DocumentStorage:
    """FastAPI dependency; tests override it with an in-memory bucket."""
    try:
        return storage_backend()
    except StorageNotConfigured as e:
        raise HTTPException(status_code=500, detail=str(e))


def storage_http_error(e: StorageError, operation: str) -> HTTPException:
    """Map a storage failure to the HTTP error shown to the user."""
    if isinstance(e, DocumentNotFound):
        return HTTPException(status_code=404, detail="File not found")
    if isinstance(e, StorageAccessDenied):
        return HTTPException(status_code=500, detail="S3 access denied - check credentials")
    if isinstance(e, BucketNotFound):
        return HTTPException(status_code=500, detail="S3 bucket not found")
    if isinstance(e, StorageNotConfigured):
        return HTTPException(status_code=500, detail="AWS credentials not configured")
    return HTTPException(status_code=500, detail=f"{operation} failed: {e}")
