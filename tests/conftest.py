"""
Pytest configuration and fixtures for testing.

This file provides reusable test fixtures for:
- Database setup/teardown
- FastAPI test client
- In-memory object storage
- Sample application form data and file payloads
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from intake.core.database import Base, get_db, get_session_factory, init_db
from intake.core.storage import (
    DeleteResult,
    StorageBackend,
    StorageErrorCode,
    UploadResult,
    check_format,
    get_storage_backend,
    resolve_format,
)
from main import app

MIB = 1024 * 1024

# Use in-memory SQLite for testing (fast, isolated)
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

init_db()


class FakeStorage(StorageBackend):
    """
    In-memory storage backend.

    Records every upload and delete; ``fail_on`` makes uploads into a
    matching folder fail with the given error code.
    """

    base_url = "http://localhost:8000/uploads"

    def __init__(self):
        self.objects = {}
        self.uploaded_folders = []
        self.deleted = []
        self._failures = {}

    def fail_on(self, folder_part, code=StorageErrorCode.NETWORK):
        self._failures[folder_part] = code

    def upload(self, data, folder, resource_kind, filename="", content_type="application/octet-stream"):
        self.uploaded_folders.append(folder)
        for part, code in self._failures.items():
            if part in folder:
                return UploadResult.failed(f"Simulated {code.value.lower()} failure", code)

        fmt = resolve_format(filename, content_type)
        format_error = check_format(resource_kind, fmt)
        if format_error:
            return UploadResult.failed(format_error, StorageErrorCode.INVALID_FORMAT)

        key = self._object_key(folder, fmt)
        self.objects[key] = data
        return UploadResult(success=True, url=f"{self.base_url}/{key}", object_id=key)

    def delete(self, object_id, resource_kind):
        self.deleted.append(object_id)
        if self.objects.pop(object_id, None) is None:
            return DeleteResult(success=False, error="Object not found", error_code=StorageErrorCode.NOT_FOUND)
        return DeleteResult(success=True)

    def ping(self):
        return None


@pytest.fixture
def db_session():
    """
    Create a fresh database session for each test.
    Tables are dropped after the test completes.
    """
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def client(db_session, storage):
    """
    FastAPI test client with overridden database and storage dependencies.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal
    app.dependency_overrides[get_storage_backend] = lambda: storage

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def production(monkeypatch):
    """Run the app with production origin checks and without error details."""
    from intake.core.config import settings

    monkeypatch.setattr(settings, "ENVIRONMENT", "production")
    monkeypatch.setattr(settings, "APP_URL", "https://careers.example.org")
    return settings


def jpeg_bytes(size=2 * MIB):
    """JPEG payload of exactly ``size`` bytes with a valid signature."""
    header = b"\xFF\xD8\xFF\xE0\x00\x10JFIF\x00"
    return header + b"\x00" * (size - len(header))


def png_bytes(size=1024):
    header = b"\x89PNG\r\n\x1a\n"
    return header + b"\x00" * (size - len(header))


def pdf_bytes(size=3 * MIB):
    header = b"%PDF-1.4\n"
    return header + b"0" * (size - len(header))


@pytest.fixture
def sample_form():
    """Form fields as the browser sends them"""
    return {
        "fullName": "Asha Verma",
        "age": "27",
        "gender": "Female",
        "mobileNumber": "9876543210",
        "emailAddress": "  Asha.Verma@Gmail.com ",
        "city": "Pune",
        "state": "Maharashtra",
        "highestQualification": "B.Tech",
        "specialization": "Computer Science",
        "collegeName": "College of Engineering Pune",
        "yearOfPassing": "2020",
        "careerGap": "0",
        "roleAppliedFor": "Backend Engineer",
        "primarySkillSet": "Python, FastAPI, PostgreSQL",
        "totalExperience": "3 years",
        "linkedinUrl": "https://www.linkedin.com/in/ashaverma",
        "githubUrl": "",
        "availability": "Immediate",
        "declarationAccepted": "true",
    }


@pytest.fixture
def sample_files():
    """Valid photograph and resume parts"""
    return {
        "photograph": ("passport photo.jpg", jpeg_bytes(), "image/jpeg"),
        "resume": ("Asha Verma - CV.pdf", pdf_bytes(), "application/pdf"),
    }
