"""
Object storage layer supporting both the local filesystem and AWS S3.

Backends share one contract: ``upload`` stores a byte payload under a
folder and returns an ``UploadResult`` carrying the public URL and the
opaque object identifier, or a normalised failure. Provider exceptions never
escape a backend; callers branch on ``UploadResult.success`` and
``StorageErrorCode``.
"""

import base64
import enum
import hashlib
import logging
import os
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    NoCredentialsError,
    ReadTimeoutError,
)

from intake.core.config import settings

logger = logging.getLogger(__name__)


class ResourceKind(str, enum.Enum):
    """Storage pipeline a payload goes through."""
    IMAGE = "image"  # format-constrained image pipeline
    RAW = "raw"      # opaque binary documents


class StorageErrorCode(str, enum.Enum):
    AUTH = "AUTH"
    NOT_FOUND = "NOT_FOUND"
    NETWORK = "NETWORK"
    TIMEOUT = "TIMEOUT"
    INVALID_FORMAT = "INVALID_FORMAT"
    UNKNOWN = "UNKNOWN"


ALLOWED_FORMATS = {
    ResourceKind.IMAGE: {"jpg", "jpeg", "png", "webp"},
    ResourceKind.RAW: {"pdf"},
}

FORMAT_BY_CONTENT_TYPE = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "application/pdf": "pdf",
}

# botocore error codes grouped by failure kind
_AUTH_CODES = {
    "AccessDenied",
    "InvalidAccessKeyId",
    "SignatureDoesNotMatch",
    "ExpiredToken",
    "InvalidToken",
    "AllAccessDisabled",
}
_NOT_FOUND_CODES = {"NoSuchBucket", "NoSuchKey", "404"}
_TIMEOUT_CODES = {"RequestTimeout", "RequestTimeTooSkewed"}


@dataclass
class UploadResult:
    success: bool
    url: Optional[str] = None
    object_id: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[StorageErrorCode] = None

    @classmethod
    def failed(cls, error: str, code: StorageErrorCode) -> "UploadResult":
        return cls(success=False, error=error, error_code=code)


@dataclass
class DeleteResult:
    success: bool
    error: Optional[str] = None
    error_code: Optional[StorageErrorCode] = None


def build_folder(purpose: str, prefix: Optional[str] = None) -> str:
    """Namespace a purpose under the configured prefix: ``<prefix>/<purpose>``."""
    prefix = (prefix if prefix is not None else settings.STORAGE_FOLDER_PREFIX).strip("/")
    purpose = purpose.strip("/")
    return f"{prefix}/{purpose}" if prefix else purpose


def resolve_format(filename: str, content_type: str) -> str:
    fmt = FORMAT_BY_CONTENT_TYPE.get((content_type or "").lower())
    if fmt:
        return fmt
    return Path(filename or "").suffix.lstrip(".").lower()


def check_format(resource_kind: ResourceKind, fmt: str) -> Optional[str]:
    """Return an error message if ``fmt`` is not accepted by the pipeline."""
    allowed = ALLOWED_FORMATS[resource_kind]
    if fmt not in allowed:
        return f"Format '{fmt or 'unknown'}' is not allowed for {resource_kind.value} uploads. Allowed: {', '.join(sorted(allowed))}"
    return None


def content_md5(data: bytes) -> str:
    """Base64 MD5 digest in the form S3 expects for ``ContentMD5``."""
    return base64.b64encode(hashlib.md5(data).digest()).decode("ascii")


class StorageBackend:
    """Abstract base class for storage backends"""

    def upload(
        self,
        data: bytes,
        folder: str,
        resource_kind: ResourceKind,
        filename: str = "",
        content_type: str = "application/octet-stream",
    ) -> UploadResult:
        """Upload payload and return URL + object id, or a normalised failure"""
        raise NotImplementedError

    def delete(self, object_id: str, resource_kind: ResourceKind) -> DeleteResult:
        """Delete an object previously returned by ``upload``"""
        raise NotImplementedError

    def ping(self) -> None:
        """Raise if the backend is not reachable"""
        raise NotImplementedError

    @staticmethod
    def _object_key(folder: str, fmt: str) -> str:
        # UUID naming prevents collisions and keeps user input out of keys
        return f"{folder}/{uuid.uuid4().hex}.{fmt}"


class LocalStorage(StorageBackend):
    """Local filesystem storage backend for development"""

    def __init__(self, base_dir: Optional[str] = None, base_url: Optional[str] = None):
        self.base_dir = Path(base_dir or settings.LOCAL_STORAGE_DIR)
        self.base_url = (base_url or settings.LOCAL_STORAGE_BASE_URL).rstrip("/")
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def upload(self, data, folder, resource_kind, filename="", content_type="application/octet-stream"):
        fmt = resolve_format(filename, content_type)
        format_error = check_format(resource_kind, fmt)
        if format_error:
            return UploadResult.failed(format_error, StorageErrorCode.INVALID_FORMAT)

        key = self._object_key(folder, fmt)
        path = self.base_dir / key
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "wb") as buffer:
                buffer.write(data)
        except OSError as e:
            logger.error(f"Error writing file {path}: {e}")
            return UploadResult.failed(str(e), StorageErrorCode.UNKNOWN)

        return UploadResult(success=True, url=f"{self.base_url}/{key}", object_id=key)

    def delete(self, object_id, resource_kind):
        path = self.base_dir / object_id
        try:
            if path.exists():
                os.remove(path)
                return DeleteResult(success=True)
            return DeleteResult(success=False, error="Object not found", error_code=StorageErrorCode.NOT_FOUND)
        except OSError as e:
            logger.error(f"Error deleting file {path}: {e}")
            return DeleteResult(success=False, error=str(e), error_code=StorageErrorCode.UNKNOWN)

    def ping(self) -> None:
        if not os.access(self.base_dir, os.W_OK):
            raise OSError(f"Storage directory {self.base_dir} is not writable")


class S3Storage(StorageBackend):
    """AWS S3 storage backend"""

    def __init__(self, s3_client=None):
        self.bucket_name = settings.S3_BUCKET_NAME
        self.region = settings.AWS_REGION
        self.public_base_url = settings.S3_PUBLIC_BASE_URL.rstrip("/")

        if s3_client is not None:
            self.s3_client = s3_client
            return

        # Single attempt: a failed upload surfaces to the caller immediately
        boto_config = BotoConfig(
            connect_timeout=settings.S3_CONNECT_TIMEOUT_SECONDS,
            retries={"max_attempts": 1, "mode": "standard"},
        )

        # If AWS_ACCESS_KEY_ID is not set, boto3 will use IAM roles (for EC2/ECS)
        if settings.AWS_ACCESS_KEY_ID and settings.AWS_SECRET_ACCESS_KEY:
            self.s3_client = boto3.client(
                's3',
                aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
                aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
                region_name=self.region,
                config=boto_config,
            )
        else:
            self.s3_client = boto3.client('s3', region_name=self.region, config=boto_config)

    def upload(self, data, folder, resource_kind, filename="", content_type="application/octet-stream"):
        fmt = resolve_format(filename, content_type)
        format_error = check_format(resource_kind, fmt)
        if format_error:
            return UploadResult.failed(format_error, StorageErrorCode.INVALID_FORMAT)

        key = self._object_key(folder, fmt)
        extra = {
            "ContentType": content_type,
            "ServerSideEncryption": "AES256",
        }
        if resource_kind is ResourceKind.IMAGE:
            extra["CacheControl"] = "public, max-age=31536000, immutable"
        else:
            extra["ContentDisposition"] = "attachment"

        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=data,
                ContentMD5=content_md5(data),
                **extra,
            )
        except (ClientError, BotoCoreError) as e:
            code = self.classify(e)
            logger.error(f"Error uploading to S3 ({code.value}): {e}")
            return UploadResult.failed(str(e), code)

        return UploadResult(success=True, url=self.public_url(key), object_id=key)

    def delete(self, object_id, resource_kind):
        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=object_id)
            return DeleteResult(success=True)
        except (ClientError, BotoCoreError) as e:
            code = self.classify(e)
            logger.error(f"Error deleting from S3 ({code.value}): {e}")
            return DeleteResult(success=False, error=str(e), error_code=code)

    def ping(self) -> None:
        self.s3_client.head_bucket(Bucket=self.bucket_name)

    def public_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        return f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/{key}"

    @staticmethod
    def classify(error: Exception) -> StorageErrorCode:
        """Map a botocore exception to a StorageErrorCode"""
        if isinstance(error, ClientError):
            code = error.response.get("Error", {}).get("Code", "")
            if code in _AUTH_CODES:
                return StorageErrorCode.AUTH
            if code in _NOT_FOUND_CODES:
                return StorageErrorCode.NOT_FOUND
            if code in _TIMEOUT_CODES:
                return StorageErrorCode.TIMEOUT
            return StorageErrorCode.UNKNOWN
        if isinstance(error, (ConnectTimeoutError, ReadTimeoutError)):
            return StorageErrorCode.TIMEOUT
        if isinstance(error, EndpointConnectionError):
            return StorageErrorCode.NETWORK
        if isinstance(error, NoCredentialsError):
            return StorageErrorCode.AUTH
        return StorageErrorCode.UNKNOWN


# Storage factory - returns appropriate backend based on settings
def get_storage() -> StorageBackend:
    """Get storage backend based on USE_S3 setting"""
    if settings.USE_S3:
        return S3Storage()
    return LocalStorage()


_storage: Optional[StorageBackend] = None


def get_storage_backend() -> StorageBackend:
    """FastAPI dependency returning the process-wide storage backend"""
    global _storage
    if _storage is None:
        _storage = get_storage()
    return _storage
