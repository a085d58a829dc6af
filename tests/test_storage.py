"""
Unit tests for the object storage backends.

Tests:
- S3 uploads (mocked client): key layout, integrity digest, encryption
- Provider error classification
- Format constraints per resource kind
- Local filesystem backend
"""

import base64
import hashlib
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, ConnectTimeoutError, EndpointConnectionError, NoCredentialsError

from conftest import jpeg_bytes, pdf_bytes
from intake.core.config import settings
from intake.core.storage import (
    LocalStorage,
    ResourceKind,
    S3Storage,
    StorageErrorCode,
    build_folder,
    content_md5,
)


@pytest.fixture
def s3(monkeypatch):
    monkeypatch.setattr(settings, "S3_BUCKET_NAME", "intake-test-bucket")
    monkeypatch.setattr(settings, "AWS_REGION", "eu-west-1")
    monkeypatch.setattr(settings, "S3_PUBLIC_BASE_URL", "")
    client = MagicMock()
    return S3Storage(s3_client=client)


def client_error(code):
    return ClientError({"Error": {"Code": code, "Message": f"{code} raised"}}, "PutObject")


class TestBuildFolder:
    def test_prefix_and_purpose(self):
        assert build_folder("applications/resumes", "uploads") == "uploads/applications/resumes"

    def test_slashes_trimmed(self):
        assert build_folder("/photos/", "/root-prefix/") == "root-prefix/photos"

    def test_empty_prefix(self):
        assert build_folder("photos", "") == "photos"


class TestS3Upload:
    """put_object call shape"""

    def test_upload_image(self, s3):
        data = jpeg_bytes(2048)
        result = s3.upload(data, "uploads/applications/photographs", ResourceKind.IMAGE, "photo.jpg", "image/jpeg")

        assert result.success
        assert result.object_id.startswith("uploads/applications/photographs/")
        assert result.object_id.endswith(".jpg")
        assert result.url == f"https://intake-test-bucket.s3.eu-west-1.amazonaws.com/{result.object_id}"

        kwargs = s3.s3_client.put_object.call_args.kwargs
        assert kwargs["Bucket"] == "intake-test-bucket"
        assert kwargs["Key"] == result.object_id
        assert kwargs["Body"] == data
        assert kwargs["ContentMD5"] == base64.b64encode(hashlib.md5(data).digest()).decode()
        assert kwargs["ServerSideEncryption"] == "AES256"
        assert "CacheControl" in kwargs

    def test_upload_raw_document(self, s3):
        result = s3.upload(pdf_bytes(2048), "uploads/applications/resumes", ResourceKind.RAW, "cv.pdf", "application/pdf")

        assert result.success
        assert result.object_id.endswith(".pdf")
        assert s3.s3_client.put_object.call_args.kwargs["ContentDisposition"] == "attachment"

    def test_object_keys_are_unique(self, s3):
        first = s3.upload(jpeg_bytes(64), "f", ResourceKind.IMAGE, "a.jpg", "image/jpeg")
        second = s3.upload(jpeg_bytes(64), "f", ResourceKind.IMAGE, "a.jpg", "image/jpeg")
        assert first.object_id != second.object_id

    def test_public_base_url(self, s3):
        s3.public_base_url = "https://cdn.example.org"
        result = s3.upload(jpeg_bytes(64), "f", ResourceKind.IMAGE, "a.jpg", "image/jpeg")
        assert result.url == f"https://cdn.example.org/{result.object_id}"

    def test_pdf_rejected_by_image_pipeline(self, s3):
        result = s3.upload(pdf_bytes(64), "f", ResourceKind.IMAGE, "cv.pdf", "application/pdf")

        assert not result.success
        assert result.error_code is StorageErrorCode.INVALID_FORMAT
        s3.s3_client.put_object.assert_not_called()

    def test_image_rejected_by_raw_pipeline(self, s3):
        result = s3.upload(jpeg_bytes(64), "f", ResourceKind.RAW, "a.jpg", "image/jpeg")
        assert result.error_code is StorageErrorCode.INVALID_FORMAT

    def test_single_attempt_on_failure(self, s3):
        s3.s3_client.put_object.side_effect = client_error("InternalError")
        result = s3.upload(jpeg_bytes(64), "f", ResourceKind.IMAGE, "a.jpg", "image/jpeg")

        assert not result.success
        assert result.error_code is StorageErrorCode.UNKNOWN
        assert "InternalError" in result.error
        assert s3.s3_client.put_object.call_count == 1


class TestS3ErrorClassification:
    @pytest.mark.parametrize(
        "error,expected",
        [
            (client_error("AccessDenied"), StorageErrorCode.AUTH),
            (client_error("InvalidAccessKeyId"), StorageErrorCode.AUTH),
            (client_error("NoSuchBucket"), StorageErrorCode.NOT_FOUND),
            (client_error("RequestTimeout"), StorageErrorCode.TIMEOUT),
            (client_error("SlowDown"), StorageErrorCode.UNKNOWN),
            (EndpointConnectionError(endpoint_url="https://s3.eu-west-1.amazonaws.com"), StorageErrorCode.NETWORK),
            (ConnectTimeoutError(endpoint_url="https://s3.eu-west-1.amazonaws.com"), StorageErrorCode.TIMEOUT),
            (NoCredentialsError(), StorageErrorCode.AUTH),
        ],
    )
    def test_classify(self, error, expected):
        assert S3Storage.classify(error) is expected

    def test_upload_reports_classified_code(self, s3):
        s3.s3_client.put_object.side_effect = client_error("AccessDenied")
        result = s3.upload(jpeg_bytes(64), "f", ResourceKind.IMAGE, "a.jpg", "image/jpeg")
        assert result.error_code is StorageErrorCode.AUTH

    def test_delete_failure_classified(self, s3):
        s3.s3_client.delete_object.side_effect = client_error("NoSuchKey")
        result = s3.delete("f/missing.jpg", ResourceKind.IMAGE)
        assert not result.success
        assert result.error_code is StorageErrorCode.NOT_FOUND


class TestLocalStorage:
    def test_upload_and_delete(self, tmp_path):
        backend = LocalStorage(base_dir=str(tmp_path), base_url="http://localhost:8000/uploads/")
        data = pdf_bytes(1024)

        result = backend.upload(data, "uploads/applications/resumes", ResourceKind.RAW, "cv.pdf", "application/pdf")

        assert result.success
        assert (tmp_path / result.object_id).read_bytes() == data
        assert result.url == f"http://localhost:8000/uploads/{result.object_id}"

        assert backend.delete(result.object_id, ResourceKind.RAW).success
        assert not (tmp_path / result.object_id).exists()

    def test_delete_missing_object(self, tmp_path):
        backend = LocalStorage(base_dir=str(tmp_path), base_url="http://localhost:8000/uploads")
        result = backend.delete("nope/missing.pdf", ResourceKind.RAW)
        assert result.error_code is StorageErrorCode.NOT_FOUND


def test_content_md5_is_base64_digest():
    assert content_md5(b"") == "1B2M2Y8AsgTpgAmY7PhCfg=="
