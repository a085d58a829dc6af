"""
API endpoints for stored file metadata.

Single-file uploads, lookups, listing, per-category stats and soft delete.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from sqlalchemy.orm import Session

from intake import crud
from intake.core.config import settings
from intake.core.database import get_db
from intake.core.errors import ErrorCode, IntakeError, classify_file_validation, classify_storage_failure
from intake.core.storage import ResourceKind, StorageBackend, build_folder, get_storage_backend
from intake.core.uploads import CandidateFile, FileCategory, normalize_content_type, read_limit, validate_file
from intake.middleware.logging import client_ip
from intake.models.file_upload import FileUpload, UploadSource
from intake.services.guards import require_origin

router = APIRouter(prefix="/files", tags=["Files"])
logger = logging.getLogger(__name__)


def _get_or_404(db: Session, file_id: int) -> FileUpload:
    record = crud.file_upload.get_by_id(db, file_id)
    if record is None:
        raise IntakeError(ErrorCode.NOT_FOUND, f"File {file_id} not found")
    return record


@router.post("", status_code=status.HTTP_201_CREATED)
def upload_file(
    request: Request,
    file: UploadFile = File(...),
    category: FileCategory = Form(FileCategory.IMAGE),
    purpose: str = Form("general"),
    uploaded_by: Optional[str] = Form(None, alias="uploadedBy"),
    related_entity_id: Optional[int] = Form(None, alias="relatedEntityId"),
    related_entity_type: Optional[str] = Form(None, alias="relatedEntityType"),
    db: Session = Depends(get_db),
    storage: StorageBackend = Depends(get_storage_backend),
):
    """
    Upload one file and record its metadata.

    Unlike application submissions, the metadata record is the point of
    this endpoint: if it cannot be written the request fails.
    """
    require_origin(
        request.headers.get("origin"),
        request.headers.get("referer"),
        settings.APP_URL,
        settings.is_production,
    )

    limit = read_limit(category)
    oversized = file.size is not None and file.size >= limit
    candidate = CandidateFile(
        filename=file.filename or "",
        content_type=file.content_type or "",
        data=b"" if oversized else file.file.read(limit),
        declared_size=file.size,
    )
    result = validate_file(candidate, category)
    if not result.valid:
        raise classify_file_validation(result, "file")

    resource_kind = ResourceKind.IMAGE if category is FileCategory.IMAGE else ResourceKind.RAW
    content_type = normalize_content_type(candidate.content_type)
    stored = storage.upload(
        result.data,
        build_folder(purpose, settings.STORAGE_FOLDER_PREFIX),
        resource_kind,
        filename=result.sanitized_name,
        content_type=content_type,
    )
    if not stored.success:
        raise classify_storage_failure(stored, "file")

    try:
        record = crud.file_upload.create(
            db,
            {
                "storage_url": stored.url,
                "storage_object_id": stored.object_id,
                "storage_resource_kind": resource_kind.value,
                "original_filename": candidate.filename or result.sanitized_name,
                "sanitized_filename": result.sanitized_name,
                "file_type": content_type,
                "file_category": category,
                "file_size": result.size,
                "uploaded_by": uploaded_by,
                "upload_purpose": purpose,
                "related_entity_id": related_entity_id,
                "related_entity_type": related_entity_type,
                "upload_source": UploadSource.API,
                "upload_ip_address": client_ip(request),
                "user_agent": request.headers.get("user-agent"),
            },
        )
    except IntakeError:
        if settings.STORAGE_COMPENSATE_ON_FAILURE:
            storage.delete(stored.object_id, resource_kind)
        else:
            logger.warning(f"Orphaned storage object left in place: {stored.object_id}")
        raise

    return {
        "success": True,
        "data": {
            "fileId": record.id,
            "fileName": record.original_filename,
            "fileUrl": record.storage_url,
            "fileSize": record.file_size_formatted,
            "fileType": record.file_type,
            "uploadedAt": record.uploaded_at.isoformat(),
            "objectId": record.storage_object_id,
        },
    }


@router.get("")
def list_files(
    uploaded_by: Optional[str] = Query(None, alias="uploadedBy"),
    category: Optional[FileCategory] = None,
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    """List active files, newest first."""
    records = crud.file_upload.list_active(db, uploaded_by=uploaded_by, category=category, limit=limit)
    return {
        "success": True,
        "count": len(records),
        "data": [record.to_summary() for record in records],
    }


@router.get("/stats")
def file_stats(db: Session = Depends(get_db)):
    return {"success": True, "data": crud.file_upload.upload_stats(db)}


@router.get("/{file_id}")
def get_file(file_id: int, db: Session = Depends(get_db)):
    return {"success": True, "data": _get_or_404(db, file_id).to_summary()}


@router.delete("/{file_id}")
def delete_file(file_id: int, request: Request, db: Session = Depends(get_db)):
    """
    Soft-delete a file record.

    The stored object is left alone; the purge sweep removes the record
    after the retention window.
    """
    require_origin(
        request.headers.get("origin"),
        request.headers.get("referer"),
        settings.APP_URL,
        settings.is_production,
    )
    _get_or_404(db, file_id)
    record = crud.file_upload.soft_delete(db, file_id)
    return {"success": True, "data": record.to_summary()}
