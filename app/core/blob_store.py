"""
Blob storage for submission files
Firebase Storage in production, an in-memory store for tests
"""

import asyncio
import logging
import os
import uuid
from abc import ABC, abstractmethod
from typing import Dict, Iterable, Tuple
from urllib.parse import quote

from firebase_admin import storage

from app.core.exceptions import StorageError, ValidationError

logger = logging.getLogger(__name__)


def submission_blob_path(student_id: str, assignment_id: str, file_name: str, timestamp_ms: int) -> str:
    """submissions/{student}/{assignment}/{epoch_ms}_{file_name}"""
    safe_name = os.path.basename(file_name.replace("\\", "/"))
    return f"submissions/{student_id}/{assignment_id}/{timestamp_ms}_{safe_name}"


def validate_upload(file_name: str, size: int, allowed_extensions: Iterable[str], max_bytes: int) -> str:
    """
    Check a file before anything is written

    Returns:
        str: lower-cased extension

    Raises:
        ValidationError: empty name, unsupported type, empty or oversized file
    """
    if not file_name or not file_name.strip():
        raise ValidationError("A file is required", field="file")

    extension = os.path.splitext(file_name)[1].lower()
    allowed = {e.lower() for e in allowed_extensions}
    if extension not in allowed:
        raise ValidationError(
            f"Unsupported file type '{extension or file_name}'. Allowed: {', '.join(sorted(allowed))}",
            field="file"
        )

    if size <= 0:
        raise ValidationError("Uploaded file is empty", field="file")

    if size > max_bytes:
        raise ValidationError(
            f"File exceeds the {max_bytes // (1024 * 1024)} MB limit",
            field="file"
        )

    return extension


class BlobStore(ABC):

    @abstractmethod
    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        """Store bytes at path and return a download URL"""

    @abstractmethod
    async def delete(self, path: str) -> None:
        ...


class FirebaseBlobStore(BlobStore):
    """Firebase Storage bucket (firebase_admin must already be initialized)"""

    def __init__(self, bucket_name: str):
        self.bucket_name = bucket_name

    def _bucket(self):
        return storage.bucket(self.bucket_name)

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        token = str(uuid.uuid4())

        # Blocking bucket calls run in the default executor
        def upload_sync():
            blob = self._bucket().blob(path)
            blob.metadata = {"firebaseStorageDownloadTokens": token}
            blob.upload_from_string(data, content_type=content_type)

        try:
            await asyncio.get_event_loop().run_in_executor(None, upload_sync)
        except Exception as e:
            logger.error(f"Upload failed for {path}: {e}", exc_info=True)
            raise StorageError("File upload failed, please try again", operation="upload")

        return (
            f"https://firebasestorage.googleapis.com/v0/b/{self.bucket_name}/o/"
            f"{quote(path, safe='')}?alt=media&token={token}"
        )

    async def delete(self, path: str) -> None:
        def delete_sync():
            self._bucket().blob(path).delete()

        try:
            await asyncio.get_event_loop().run_in_executor(None, delete_sync)
        except Exception as e:
            logger.error(f"Blob delete failed for {path}: {e}")
            raise StorageError("File delete failed", operation="delete")


class InMemoryBlobStore(BlobStore):

    def __init__(self):
        self.blobs: Dict[str, Tuple[bytes, str]] = {}

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        self.blobs[path] = (data, content_type)
        return f"memory://{quote(path, safe='/')}"

    async def delete(self, path: str) -> None:
        self.blobs.pop(path, None)
