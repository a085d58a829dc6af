"""
CRUD operations for FileUpload model.

``record_many`` is the best-effort writer used by the submission pipeline:
it reports one outcome per record and never raises, so a metadata failure
cannot undo or block the application it belongs to.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Union

from pydantic import ValidationError
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from intake.core.errors import ErrorCode, IntakeError, classify_database_error
from intake.core.uploads import FileCategory
from intake.models.file_upload import FileStatus, FileUpload
from intake.schemas.application import summarize_validation_error
from intake.schemas.file_upload import FileUploadCreate

logger = logging.getLogger(__name__)


@dataclass
class RecordOutcome:
    object_id: str
    record_id: Optional[int] = None
    error: Optional[IntakeError] = None

    @property
    def saved(self) -> bool:
        return self.record_id is not None


def create(db: Session, data: Union[FileUploadCreate, Dict]) -> FileUpload:
    """
    Validate and insert a file metadata record.

    Raises:
        IntakeError: VALIDATION_FAILED, DUPLICATE_OBJECT or STORE_UNAVAILABLE
    """
    try:
        payload = data if isinstance(data, FileUploadCreate) else FileUploadCreate.model_validate(data)
    except ValidationError as e:
        summary = summarize_validation_error(e)
        raise IntakeError(
            ErrorCode.VALIDATION_FAILED,
            f"Validation error: {summary['message']}",
            details={"errors": summary["errors"]},
        ) from e

    record = FileUpload(**payload.model_dump())

    try:
        db.add(record)
        db.commit()
        db.refresh(record)
    except SQLAlchemyError as e:
        db.rollback()
        raise classify_database_error(e, unique_violation=ErrorCode.DUPLICATE_OBJECT) from e

    logger.info(f"File saved to database: {record.original_filename} ({record.file_size_formatted})")
    return record


def record_many(db: Session, items: Sequence[Union[FileUploadCreate, Dict]]) -> List[RecordOutcome]:
    """
    Insert several metadata records independently.

    Each record commits on its own; a failed record is rolled back, logged
    and reported in its outcome while the rest continue.
    """
    outcomes: List[RecordOutcome] = []
    for item in items:
        object_id = item.storage_object_id if isinstance(item, FileUploadCreate) else str(item.get("storage_object_id"))
        try:
            record = create(db, item)
            outcomes.append(RecordOutcome(object_id=object_id, record_id=record.id))
        except IntakeError as e:
            logger.warning(f"Non-critical: failed to save file record for {object_id}: {e.code.value} {e.message}")
            outcomes.append(RecordOutcome(object_id=object_id, error=e))
        except Exception as e:
            db.rollback()
            logger.exception(f"Non-critical: unexpected error saving file record for {object_id}")
            outcomes.append(RecordOutcome(object_id=object_id, error=IntakeError(ErrorCode.INTERNAL_ERROR, details={"error": str(e)})))
    return outcomes


def get_by_id(db: Session, file_id: int) -> Optional[FileUpload]:
    return db.query(FileUpload).filter(FileUpload.id == file_id).first()


def list_active(
    db: Session,
    uploaded_by: Optional[str] = None,
    category: Optional[FileCategory] = None,
    limit: int = 50,
) -> List[FileUpload]:
    """
    Active records, newest first, optionally filtered by uploader and category.
    """
    query = db.query(FileUpload).filter(FileUpload.status == FileStatus.ACTIVE)

    if uploaded_by:
        query = query.filter(FileUpload.uploaded_by == uploaded_by)
    if category:
        query = query.filter(FileUpload.file_category == FileCategory(category))

    return query.order_by(FileUpload.uploaded_at.desc(), FileUpload.id.desc()).limit(limit).all()


def soft_delete(db: Session, file_id: int) -> Optional[FileUpload]:
    """
    Flip a record to DELETED and stamp deleted_at.

    Returns:
        The updated record, or None if it does not exist
    """
    record = get_by_id(db, file_id)
    if record is None:
        return None
    if record.status != FileStatus.DELETED:
        record.soft_delete()
        db.commit()
        db.refresh(record)
        logger.info(f"Soft-deleted file record {file_id}")
    return record


def upload_stats(db: Session) -> List[Dict]:
    """Per-category count and size totals over active records."""
    rows = (
        db.query(
            FileUpload.file_category,
            func.count(FileUpload.id),
            func.sum(FileUpload.file_size),
            func.avg(FileUpload.file_size),
        )
        .filter(FileUpload.status == FileStatus.ACTIVE)
        .group_by(FileUpload.file_category)
        .all()
    )
    return [
        {
            "category": category.value,
            "count": count,
            "totalSize": int(total or 0),
            "averageSize": float(average or 0),
        }
        for category, count, total, average in rows
    ]


def purge_deleted(db: Session, older_than_days: int = 30) -> int:
    """
    Permanently remove records soft-deleted more than ``older_than_days`` ago.

    Returns:
        Number of rows removed
    """
    cutoff = datetime.now(timezone.utc) - timedelta(days=older_than_days)
    removed = (
        db.query(FileUpload)
        .filter(FileUpload.status == FileStatus.DELETED, FileUpload.deleted_at < cutoff)
        .delete(synchronize_session=False)
    )
    db.commit()
    logger.info(f"Purged {removed} soft-deleted file records older than {older_than_days} days")
    return removed
