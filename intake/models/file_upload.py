"""
File upload metadata model.

An auxiliary index of objects placed in object storage. Only URLs and
metadata are stored here, never file content. Rows are soft-deleted; a
separate sweep purges them once they pass the retention window.
"""

import enum
import math
from datetime import datetime, timezone
from pathlib import PurePosixPath

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Enum, Index, Integer, String, func

from intake.core.database import Base
from intake.core.uploads import FileCategory, format_file_size

MAX_RECORD_FILE_SIZE = 10 * 1024 * 1024


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _values(enum_cls):
    return [member.value for member in enum_cls]


class FileStatus(str, enum.Enum):
    ACTIVE = "active"
    DELETED = "deleted"
    ARCHIVED = "archived"


class UploadSource(str, enum.Enum):
    WEB = "web"
    MOBILE = "mobile"
    API = "api"


class FileUpload(Base):
    __tablename__ = "file_uploads"
    __table_args__ = (
        CheckConstraint(
            f"file_size >= 1 AND file_size <= {MAX_RECORD_FILE_SIZE}",
            name="ck_file_uploads_file_size_range",
        ),
        Index("ix_file_uploads_uploaded_by_uploaded_at", "uploaded_by", "uploaded_at"),
        Index("ix_file_uploads_status_uploaded_at", "status", "uploaded_at"),
        Index("ix_file_uploads_related_entity", "related_entity_id", "related_entity_type"),
        Index("ix_file_uploads_category_uploaded_at", "file_category", "uploaded_at"),
    )

    id = Column(Integer, primary_key=True, index=True)

    # Object storage
    storage_url = Column(String(2048), nullable=False)
    storage_object_id = Column(String(512), nullable=False, unique=True)
    storage_resource_kind = Column(String(16), nullable=False, default="image")

    # File metadata
    original_filename = Column(String(255), nullable=False)
    sanitized_filename = Column(String(255), nullable=True)
    file_type = Column(String(64), nullable=False)
    file_category = Column(
        Enum(FileCategory, name="file_category", values_callable=_values),
        nullable=False,
    )
    file_size = Column(Integer, nullable=False)
    file_size_formatted = Column(String(32), nullable=True)

    # Upload context
    uploaded_by = Column(String(254), nullable=True)
    upload_purpose = Column(String(100), nullable=False, default="general")
    related_entity_id = Column(Integer, nullable=True)
    related_entity_type = Column(String(50), nullable=True)

    # Request metadata
    upload_source = Column(
        Enum(UploadSource, name="upload_source", values_callable=_values),
        nullable=False,
        default=UploadSource.WEB,
    )
    upload_ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)

    # Lifecycle
    status = Column(
        Enum(FileStatus, name="file_status", values_callable=_values),
        nullable=False,
        default=FileStatus.ACTIVE,
    )
    validation_passed = Column(Boolean, nullable=False, default=True)
    uploaded_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    @property
    def file_extension(self) -> str:
        return PurePosixPath(self.original_filename or "").suffix.lstrip(".").lower()

    @property
    def file_age_in_days(self) -> int:
        if not self.uploaded_at:
            return 0
        uploaded_at = self.uploaded_at
        if uploaded_at.tzinfo is None:
            # SQLite hands back naive datetimes
            uploaded_at = uploaded_at.replace(tzinfo=timezone.utc)
        delta = _utcnow() - uploaded_at
        return math.ceil(abs(delta.total_seconds()) / 86400)

    def soft_delete(self) -> None:
        """Mark the record deleted; the caller commits."""
        self.status = FileStatus.DELETED
        self.deleted_at = _utcnow()

    def to_summary(self) -> dict:
        return {
            "id": self.id,
            "fileName": self.original_filename,
            "fileSize": self.file_size_formatted or format_file_size(self.file_size or 0),
            "fileType": self.file_type,
            "url": self.storage_url,
            "uploadedAt": self.uploaded_at.isoformat() if self.uploaded_at else None,
            "status": self.status.value if self.status else None,
        }

    def __repr__(self):
        return f"<FileUpload(id={self.id}, object_id='{self.storage_object_id}', status={self.status})>"
