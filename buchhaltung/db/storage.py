"""
Object storage for scanned source documents.

Bucket layout::

    uldocs/<timestamp>-<name>                    uploaded, not yet assigned
    irrelevant/<name>                            marked irrelevant
    docs/<buchungId>_<name>                      assigned to a Buchung
    buchungen/buchung-<id>/<timestamp>-<name>    uploaded directly for a Buchung
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional
from urllib.parse import quote
import logging

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from buchhaltung.core.config import settings
from buchhaltung.core.exceptions import (
    BucketNotFound,
    DocumentNotFound,
    StorageAccessDenied,
    StorageError,
    StorageNotConfigured,
)

logger = logging.getLogger(__name__)

UPLOAD_PREFIX = "uldocs/"
IRRELEVANT_PREFIX = "irrelevant/"
ASSIGNED_PREFIX = "docs/"
BUCHUNG_UPLOAD_PREFIX = "buchungen/"


@dataclass
class StoredObject:
    key: str
    size: int = 0
    last_modified: Optional[datetime] = None

    @property
    def name(self) -> str:
        return self.key.split("/")[-1]


class DocumentStorage(ABC):
    bucket: str

    @abstractmethod
    def list_objects(self, prefix: str = "", max_keys: Optional[int] = None) -> List[StoredObject]:
        pass

    @abstractmethod
    def put_object(self, key: str, body: bytes, content_type: str, metadata: Dict[str, str]) -> Optional[str]:
        """Store ``body`` under ``key`` and return the ETag."""

    @abstractmethod
    def copy_object(self, source_key: str, dest_key: str) -> None:
        pass

    @abstractmethod
    def delete_object(self, key: str) -> None:
        pass

    @abstractmethod
    def signed_url(self, key: str, expires_in: int) -> str:
        pass

    @abstractmethod
    def public_url(self, key: str) -> str:
        pass

    def move_object(self, source_key: str, dest_key: str) -> None:
        # Object stores have no rename: copy, then delete the original
        if source_key == dest_key:
            return
        self.copy_object(source_key, dest_key)
        self.delete_object(source_key)


def _translate_client_error(e: ClientError) -> StorageError:
    code = e.response.get("Error", {}).get("Code", "")
    message = e.response.get("Error", {}).get("Message") or str(e)
    if code in ("NoSuchKey", "404", "NotFound"):
        return DocumentNotFound(message)
    if code == "AccessDenied":
        return StorageAccessDenied(message)
    if code == "NoSuchBucket":
        return BucketNotFound(message)
    return StorageError(message)


class S3DocumentStorage(DocumentStorage):
    def __init__(
        self,
        bucket: str,
        region: str,
        access_key_id: Optional[str],
        secret_access_key: Optional[str],
        client=None,
    ):
        self.bucket = bucket
        self.region = region
        if client is None:
            if not access_key_id or not secret_access_key:
                logger.error("Missing AWS credentials! Check your .env.local file")
                raise StorageNotConfigured("AWS credentials not configured")
            client = boto3.client(
                "s3",
                region_name=region,
                aws_access_key_id=access_key_id,
                aws_secret_access_key=secret_access_key,
            )
        self.client = client

    def _call(self, operation: str, **kwargs):
        try:
            return getattr(self.client, operation)(Bucket=self.bucket, **kwargs)
        except ClientError as e:
            raise _translate_client_error(e) from e
        except BotoCoreError as e:
            raise StorageError(str(e)) from e

    def list_objects(self, prefix: str = "", max_keys: Optional[int] = None) -> List[StoredObject]:
        kwargs = {"Prefix": prefix}
        if max_keys:
            kwargs["MaxKeys"] = max_keys
        response = self._call("list_objects_v2", **kwargs)
        return [
            StoredObject(key=obj["Key"], size=obj.get("Size", 0), last_modified=obj.get("LastModified"))
            for obj in response.get("Contents", [])
            if obj.get("Key")
        ]

    def put_object(self, key: str, body: bytes, content_type: str, metadata: Dict[str, str]) -> Optional[str]:
        response = self._call(
            "put_object",
            Key=key,
            Body=body,
            ContentType=content_type,
            ContentLength=len(body),
            Metadata=metadata,
        )
        return response.get("ETag")

    def copy_object(self, source_key: str, dest_key: str) -> None:
        # Structured CopySource lets botocore encode umlauts and spaces
        self._call(
            "copy_object",
            CopySource={"Bucket": self.bucket, "Key": source_key},
            Key=dest_key,
            MetadataDirective="COPY",
        )

    def delete_object(self, key: str) -> None:
        self._call("delete_object", Key=key)

    def signed_url(self, key: str, expires_in: int) -> str:
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(str(e)) from e

    def public_url(self, key: str) -> str:
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"


@dataclass
class _MemoryObject:
    body: bytes
    content_type: str
    metadata: Dict[str, str] = field(default_factory=dict)
    last_modified: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class InMemoryDocumentStorage(DocumentStorage):
    """Process-local bucket, used for local runs without AWS and in tests."""

    def __init__(self, bucket: str = "local"):
        self.bucket = bucket
        self._objects: Dict[str, _MemoryObject] = {}

    def list_objects(self, prefix: str = "", max_keys: Optional[int] = None) -> List[StoredObject]:
        keys = sorted(k for k in self._objects if k.startswith(prefix))
        if max_keys:
            keys = keys[:max_keys]
        return [
            StoredObject(key=k, size=len(self._objects[k].body), last_modified=self._objects[k].last_modified)
            for k in keys
        ]

    def put_object(self, key: str, body: bytes, content_type: str, metadata: Dict[str, str]) -> Optional[str]:
        self._objects[key] = _MemoryObject(body=body, content_type=content_type, metadata=dict(metadata))
        return f'"{len(body):x}"'

    def copy_object(self, source_key: str, dest_key: str) -> None:
        if source_key not in self._objects:
            raise DocumentNotFound(f"The specified key does not exist: {source_key}")
        src = self._objects[source_key]
        self._objects[dest_key] = _MemoryObject(
            body=src.body, content_type=src.content_type, metadata=dict(src.metadata)
        )

    def delete_object(self, key: str) -> None:
        # S3 semantics: deleting a missing key succeeds
        self._objects.pop(key, None)

    def get_object(self, key: str) -> _MemoryObject:
        if key not in self._objects:
            raise DocumentNotFound(f"The specified key does not exist: {key}")
        return self._objects[key]

    def signed_url(self, key: str, expires_in: int) -> str:
        return f"memory://{self.bucket}/{quote(key)}?expires={expires_in}"

    def public_url(self, key: str) -> str:
        return f"memory://{self.bucket}/{quote(key)}"


def build_storage() -> DocumentStorage:
    if settings.STORAGE_BACKEND == "memory":
        logger.warning("Using in-memory document storage; uploads are lost on restart")
        return InMemoryDocumentStorage(bucket=settings.AWS_BUCKET_NAME)
    return S3DocumentStorage(
        bucket=settings.AWS_BUCKET_NAME,
        region=settings.AWS_REGION,
        access_key_id=settings.AWS_ACCESS_KEY_ID,
        secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
    )


_storage: Optional[DocumentStorage] = None


def storage_backend() -> DocumentStorage:
    """Process-wide storage instance, built on first use."""
    global _storage
    if _storage is None:
        _storage = build_storage()
    return _storage
