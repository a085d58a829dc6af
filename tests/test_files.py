"""
Tests for file metadata records: CRUD functions and the /files endpoints.

Tests:
- Record validation (storage domain, size bounds, MIME enum)
- Duplicate object identifiers
- Best-effort batch writes
- Listing, stats, soft delete and purge
- Single-file upload endpoint
"""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import MIB, jpeg_bytes, pdf_bytes, png_bytes
from intake import crud
from intake.api.endpoints import files as files_api
from intake.core.errors import ErrorCode, IntakeError
from intake.core.uploads import FileCategory
from intake.models.file_upload import FileStatus, FileUpload


def record_data(**overrides):
    data = {
        "storage_url": "http://localhost:8000/uploads/uploads/general/abc123.pdf",
        "storage_object_id": "uploads/general/abc123.pdf",
        "storage_resource_kind": "raw",
        "original_filename": "resume.pdf",
        "sanitized_filename": "resume.pdf",
        "file_type": "application/pdf",
        "file_category": FileCategory.PDF,
        "file_size": 2621440,
        "uploaded_by": "asha.verma@gmail.com",
    }
    data.update(overrides)
    return data


def make_record(db, index, **overrides):
    return crud.file_upload.create(
        db,
        record_data(
            storage_url=f"http://localhost:8000/uploads/obj{index}.pdf",
            storage_object_id=f"obj{index}",
            **overrides,
        ),
    )


class TestCreateRecord:
    def test_create(self, db_session):
        record = crud.file_upload.create(db_session, record_data())

        assert record.id is not None
        assert record.status is FileStatus.ACTIVE
        assert record.file_size_formatted == "2.5 MB"
        assert record.upload_purpose == "general"
        assert record.file_extension == "pdf"
        assert record.deleted_at is None

    def test_storage_url_must_be_in_storage_domain(self, db_session):
        with pytest.raises(IntakeError) as exc_info:
            crud.file_upload.create(db_session, record_data(storage_url="https://evil.example.net/x.pdf"))

        assert exc_info.value.code is ErrorCode.VALIDATION_FAILED
        assert "Only object storage URLs are allowed" in exc_info.value.message

    def test_lookalike_domain_rejected(self, db_session):
        with pytest.raises(IntakeError):
            crud.file_upload.create(db_session, record_data(storage_url="http://localhost.evil.net/x.pdf"))

    @pytest.mark.parametrize("size", [0, 10 * MIB + 1])
    def test_size_bounds(self, db_session, size):
        with pytest.raises(IntakeError) as exc_info:
            crud.file_upload.create(db_session, record_data(file_size=size))
        assert exc_info.value.code is ErrorCode.VALIDATION_FAILED

    def test_size_upper_bound_inclusive(self, db_session):
        assert crud.file_upload.create(db_session, record_data(file_size=10 * MIB)).id

    def test_mime_type_enum(self, db_session):
        with pytest.raises(IntakeError):
            crud.file_upload.create(db_session, record_data(file_type="text/html"))

    def test_long_user_agent_clipped(self, db_session):
        record = crud.file_upload.create(db_session, record_data(user_agent="x" * 2000))
        assert len(record.user_agent) == 512

    def test_duplicate_object_id(self, db_session):
        crud.file_upload.create(db_session, record_data())

        with pytest.raises(IntakeError) as exc_info:
            crud.file_upload.create(db_session, record_data())

        assert exc_info.value.code is ErrorCode.DUPLICATE_OBJECT
        assert exc_info.value.status_code == 409
        assert db_session.query(FileUpload).count() == 1


class TestRecordMany:
    def test_partial_failure_is_reported_not_raised(self, db_session):
        outcomes = crud.file_upload.record_many(
            db_session,
            [
                record_data(),
                record_data(),  # same object id
                record_data(storage_object_id="other", storage_url="https://evil.example.net/x.pdf"),
                record_data(storage_object_id="third", storage_url="http://localhost:8000/uploads/third.pdf"),
            ],
        )

        assert [o.saved for o in outcomes] == [True, False, False, True]
        assert outcomes[1].error.code is ErrorCode.DUPLICATE_OBJECT
        assert outcomes[2].error.code is ErrorCode.VALIDATION_FAILED
        assert db_session.query(FileUpload).count() == 2


class TestQueries:
    def test_list_active_newest_first(self, db_session):
        first = make_record(db_session, 1)
        second = make_record(db_session, 2)
        deleted = make_record(db_session, 3)
        crud.file_upload.soft_delete(db_session, deleted.id)

        records = crud.file_upload.list_active(db_session)
        assert [r.id for r in records] == [second.id, first.id]

    def test_list_filters(self, db_session):
        make_record(db_session, 1, uploaded_by="a@gmail.com")
        make_record(db_session, 2, uploaded_by="b@gmail.com")
        make_record(
            db_session,
            3,
            uploaded_by="a@gmail.com",
            file_type="image/png",
            file_category=FileCategory.IMAGE,
            storage_resource_kind="image",
            original_filename="photo.png",
        )

        assert len(crud.file_upload.list_active(db_session, uploaded_by="a@gmail.com")) == 2
        images = crud.file_upload.list_active(db_session, uploaded_by="a@gmail.com", category=FileCategory.IMAGE)
        assert [r.original_filename for r in images] == ["photo.png"]
        assert len(crud.file_upload.list_active(db_session, limit=1)) == 1

    def test_upload_stats(self, db_session):
        make_record(db_session, 1, file_size=1000)
        make_record(db_session, 2, file_size=3000)

        stats = crud.file_upload.upload_stats(db_session)
        assert stats == [{"category": "pdf", "count": 2, "totalSize": 4000, "averageSize": 2000.0}]

    def test_soft_delete(self, db_session):
        record = make_record(db_session, 1)
        deleted = crud.file_upload.soft_delete(db_session, record.id)

        assert deleted.status is FileStatus.DELETED
        assert deleted.deleted_at is not None
        assert crud.file_upload.soft_delete(db_session, 9999) is None

    def test_purge_deleted(self, db_session):
        old = make_record(db_session, 1)
        recent = make_record(db_session, 2)
        active = make_record(db_session, 3)
        crud.file_upload.soft_delete(db_session, old.id)
        crud.file_upload.soft_delete(db_session, recent.id)

        old.deleted_at = datetime.now(timezone.utc) - timedelta(days=45)
        db_session.commit()

        assert crud.file_upload.purge_deleted(db_session, older_than_days=30) == 1
        remaining = {r.id for r in db_session.query(FileUpload).all()}
        assert remaining == {recent.id, active.id}


class TestFileEndpoints:
    def test_get_summary(self, client, db_session):
        record = make_record(db_session, 1)
        response = client.get(f"/api/files/{record.id}")

        assert response.status_code == 200
        summary = response.json()["data"]
        assert set(summary) == {"id", "fileName", "fileSize", "fileType", "url", "uploadedAt", "status"}
        assert summary["fileName"] == "resume.pdf"
        assert summary["fileSize"] == "2.5 MB"
        assert summary["status"] == "active"

    def test_get_missing(self, client):
        response = client.get("/api/files/424242")

        assert response.status_code == 404
        assert response.json()["error"] == "NOT_FOUND"

    def test_list(self, client, db_session):
        make_record(db_session, 1, uploaded_by="a@gmail.com")
        make_record(db_session, 2, uploaded_by="b@gmail.com")

        response = client.get("/api/files", params={"uploadedBy": "a@gmail.com", "category": "pdf"})

        body = response.json()
        assert response.status_code == 200
        assert body["count"] == 1
        assert body["data"][0]["url"] == "http://localhost:8000/uploads/obj1.pdf"

    def test_stats(self, client, db_session):
        make_record(db_session, 1, file_size=2048)
        response = client.get("/api/files/stats")

        assert response.status_code == 200
        assert response.json()["data"][0]["count"] == 1

    def test_delete(self, client, db_session):
        record = make_record(db_session, 1)
        response = client.delete(f"/api/files/{record.id}")

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "deleted"
        assert client.get("/api/files").json()["count"] == 0

    def test_upload_image(self, client, storage):
        response = client.post(
            "/api/files",
            files={"file": ("my photo.png", png_bytes(2048), "image/png")},
            data={"category": "image", "purpose": "profile", "uploadedBy": "a@gmail.com"},
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["fileName"] == "my photo.png"
        assert data["fileSize"] == "2 KB"
        assert data["objectId"].startswith("uploads/profile/")
        assert storage.uploaded_folders == ["uploads/profile"]

    def test_upload_pdf(self, client):
        response = client.post(
            "/api/files",
            files={"file": ("cv.pdf", pdf_bytes(4096), "application/pdf")},
            data={"category": "pdf"},
        )
        assert response.status_code == 201
        assert response.json()["data"]["fileType"] == "application/pdf"

    def test_upload_rejects_spoofed_content(self, client, storage):
        response = client.post(
            "/api/files",
            files={"file": ("photo.jpg", pdf_bytes(4096), "image/jpeg")},
            data={"category": "image"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_FILE_TYPE"
        assert response.json()["field"] == "file"
        assert storage.uploaded_folders == []

    def test_upload_oversized_part_not_read(self, client, monkeypatch, storage):
        seen = []
        original = files_api.validate_file

        def recording_validate(candidate, category):
            seen.append(candidate)
            return original(candidate, category)

        monkeypatch.setattr(files_api, "validate_file", recording_validate)
        response = client.post(
            "/api/files",
            files={"file": ("cv.pdf", pdf_bytes(11 * MIB), "application/pdf")},
            data={"category": "pdf"},
        )

        assert response.status_code == 413
        assert response.json()["error"] == "FILE_TOO_LARGE"
        assert seen[0].size == 11 * MIB
        assert len(seen[0].data) <= 10 * MIB + 1
        assert storage.uploaded_folders == []

    def test_upload_storage_failure(self, client, storage):
        storage.fail_on("general")
        response = client.post(
            "/api/files",
            files={"file": ("photo.jpg", jpeg_bytes(2048), "image/jpeg")},
        )

        assert response.status_code == 500
        assert response.json()["error"] == "UPLOAD_FAILED"

    def test_upload_requires_origin_in_production(self, client, production):
        response = client.post(
            "/api/files",
            files={"file": ("photo.jpg", jpeg_bytes(2048), "image/jpeg")},
        )
        assert response.status_code == 401


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_detailed_health(self, client):
        response = client.get("/health/detailed")

        assert response.status_code == 200
        checks = response.json()["checks"]
        assert checks["database"]["status"] == "healthy"
        assert checks["storage"]["status"] == "healthy"
