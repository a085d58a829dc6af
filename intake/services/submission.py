"""
Submission pipeline for candidate applications.

One request walks a fixed sequence of states:

    START -> ORIGIN_CHECKED -> PARSED -> DUPLICATE_CHECKED -> FILES_VALIDATED
          -> FILES_UPLOADED -> APPLICATION_SAVED -> FILE_RECORDS_SAVED -> RESPONDED

Any step before APPLICATION_SAVED may end the run in FAILED, raising an
``IntakeError`` that ``main.py`` turns into the failure body. Once the
application row exists the run always reaches RESPONDED: file metadata
records are an auxiliary index and their failures are only logged.

The async part of the pipeline is limited to reading the request body;
database and storage calls are blocking and run in Starlette's threadpool.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from fastapi import Request
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from intake import crud
from intake.core.config import Settings
from intake.core.errors import (
    ErrorCode,
    IntakeError,
    classify_database_error,
    classify_file_validation,
    classify_storage_failure,
)
from intake.core.storage import ResourceKind, StorageBackend, build_folder
from intake.core.uploads import (
    CandidateFile,
    FileCategory,
    is_external_url,
    normalize_content_type,
    read_limit,
    validate_file,
)
from intake.middleware.logging import client_ip
from intake.models.file_upload import UploadSource
from intake.schemas.application import ApplicationForm, ApplicationSubmitted, summarize_validation_error
from intake.services.guards import check_content_type, is_duplicate_email, require_origin

logger = logging.getLogger(__name__)

# Form keys allowed to carry links; any other value that is a link is rejected
URL_FIELDS = frozenset({"linkedinUrl", "githubUrl", "portfolioUrl"})

RELATED_ENTITY_TYPE = "application"


class SubmissionState(str, enum.Enum):
    START = "START"
    ORIGIN_CHECKED = "ORIGIN_CHECKED"
    PARSED = "PARSED"
    DUPLICATE_CHECKED = "DUPLICATE_CHECKED"
    FILES_VALIDATED = "FILES_VALIDATED"
    FILES_UPLOADED = "FILES_UPLOADED"
    APPLICATION_SAVED = "APPLICATION_SAVED"
    FILE_RECORDS_SAVED = "FILE_RECORDS_SAVED"
    RESPONDED = "RESPONDED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class FileSlot:
    """A required file part of the application form."""
    field: str
    category: FileCategory
    resource_kind: ResourceKind
    purpose: str


FILE_SLOTS: Tuple[FileSlot, ...] = (
    FileSlot("photograph", FileCategory.IMAGE, ResourceKind.IMAGE, "applications/photographs"),
    FileSlot("resume", FileCategory.PDF, ResourceKind.RAW, "applications/resumes"),
)


@dataclass
class ValidatedFile:
    slot: FileSlot
    original_name: str
    sanitized_name: str
    content_type: str
    data: bytes
    size: int


@dataclass
class StoredFile:
    file: ValidatedFile
    url: str
    object_id: str


@dataclass
class ParsedSubmission:
    form: ApplicationForm
    files: Dict[str, CandidateFile]
    ip_address: Optional[str]
    user_agent: Optional[str]


class SubmissionPipeline:
    """
    Runs a single application submission.

    A pipeline instance holds the state of one run and is not reused.
    ``session_factory`` is only called once the request has passed the
    origin and parsing checks.
    """

    def __init__(self, session_factory: Callable[[], Session], storage: StorageBackend, settings: Settings):
        self.session_factory = session_factory
        self.storage = storage
        self.settings = settings
        self.state = SubmissionState.START
        self.history: List[SubmissionState] = [SubmissionState.START]
        self.failure: Optional[ErrorCode] = None

    def _advance(self, state: SubmissionState) -> None:
        self.state = state
        self.history.append(state)
        logger.info(f"Submission state: {state.value}")

    def _fail(self, code: ErrorCode) -> None:
        self.failure = code
        self.state = SubmissionState.FAILED
        self.history.append(SubmissionState.FAILED)
        logger.warning(f"Submission failed with {code.value}")

    async def run(self, request: Request) -> ApplicationSubmitted:
        try:
            require_origin(
                request.headers.get("origin"),
                request.headers.get("referer"),
                self.settings.APP_URL,
                self.settings.is_production,
            )
            self._advance(SubmissionState.ORIGIN_CHECKED)

            check_content_type(request.headers.get("content-type"))
            parsed = await self.parse(request)
            self._advance(SubmissionState.PARSED)

            return await run_in_threadpool(self._process, parsed)
        except IntakeError as e:
            if self.state is not SubmissionState.FAILED:
                self._fail(e.code)
            raise
        except Exception as e:
            logger.exception("Unexpected error during submission")
            self._fail(ErrorCode.INTERNAL_ERROR)
            raise IntakeError(ErrorCode.INTERNAL_ERROR, details={"error": str(e)}) from e

    async def parse(self, request: Request) -> ParsedSubmission:
        """
        Read the multipart body into a typed form plus the raw file parts.

        Blank scalar values are treated as absent so declared defaults apply
        and required fields fail validation instead of being stored empty.
        File parts are read at most one byte past their size ceiling.
        """
        try:
            form_data = await request.form()
        except Exception as e:
            raise IntakeError(
                ErrorCode.MALFORMED_REQUEST,
                "Could not parse multipart form data",
                details={"error": str(e)},
            ) from e

        scalars: Dict[str, str] = {}
        files: Dict[str, CandidateFile] = {}
        uploads: Dict[str, UploadFile] = {}

        for key, value in form_data.multi_items():
            if isinstance(value, UploadFile):
                uploads.setdefault(key, value)
                continue
            value = value.strip()
            if not value:
                continue
            if key not in URL_FIELDS and is_external_url(value):
                raise IntakeError(
                    ErrorCode.MALFORMED_REQUEST,
                    f"Links are not allowed in {key}",
                    field=key,
                    hint="Only the LinkedIn, GitHub and portfolio fields accept URLs",
                )
            scalars.setdefault(key, value)

        for slot in FILE_SLOTS:
            upload = uploads.get(slot.field)
            if upload is None:
                raise IntakeError(
                    ErrorCode.MISSING_FILES,
                    f"Missing required file: {slot.field}",
                    field=slot.field,
                )
            limit = read_limit(slot.category)
            if upload.size is not None and upload.size >= limit:
                data = b""
            else:
                data = await upload.read(limit)
            files[slot.field] = CandidateFile(
                filename=upload.filename or "",
                content_type=upload.content_type or "",
                data=data,
                declared_size=upload.size,
            )

        try:
            form = ApplicationForm.model_validate(scalars)
        except ValidationError as e:
            summary = summarize_validation_error(e)
            raise IntakeError(
                ErrorCode.VALIDATION_FAILED,
                f"Validation error: {summary['message']}",
                details={"errors": summary["errors"]},
            ) from e

        return ParsedSubmission(
            form=form,
            files=files,
            ip_address=client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )

    def _process(self, parsed: ParsedSubmission) -> ApplicationSubmitted:
        try:
            db = self.session_factory()
        except SQLAlchemyError as e:
            raise classify_database_error(e) from e

        try:
            try:
                duplicate = is_duplicate_email(db, parsed.form.email)
            except SQLAlchemyError as e:
                raise classify_database_error(e) from e
            if duplicate:
                logger.info("Rejected submission for an email that already applied")
                raise IntakeError(ErrorCode.DUPLICATE_EMAIL)
            self._advance(SubmissionState.DUPLICATE_CHECKED)

            validated = self.validate_files(parsed.files)
            self._advance(SubmissionState.FILES_VALIDATED)

            stored = self.upload_files(validated)
            self._advance(SubmissionState.FILES_UPLOADED)

            by_field = {item.file.slot.field: item for item in stored}
            try:
                application = crud.application.create(
                    db,
                    parsed.form,
                    photograph_url=by_field["photograph"].url,
                    resume_url=by_field["resume"].url,
                )
            except IntakeError:
                self.compensate(stored)
                raise
            self._advance(SubmissionState.APPLICATION_SAVED)

            # Read while the row is fresh; later commits expire it
            response = ApplicationSubmitted(
                application_id=application.id,
                full_name=application.full_name,
                email=application.email,
                role=application.role_applied_for,
                submitted_at=application.submitted_at,
            )

            self.record_files(db, response, stored, parsed)
            self._advance(SubmissionState.FILE_RECORDS_SAVED)

            self._advance(SubmissionState.RESPONDED)
            return response
        finally:
            db.close()

    def validate_files(self, files: Dict[str, CandidateFile]) -> List[ValidatedFile]:
        validated: List[ValidatedFile] = []
        for slot in FILE_SLOTS:
            candidate = files.get(slot.field)
            result = validate_file(candidate, slot.category)
            if not result.valid:
                raise classify_file_validation(result, slot.field)
            validated.append(
                ValidatedFile(
                    slot=slot,
                    original_name=candidate.filename,
                    sanitized_name=result.sanitized_name,
                    content_type=normalize_content_type(candidate.content_type),
                    data=result.data,
                    size=result.size,
                )
            )
        return validated

    def upload_files(self, validated: List[ValidatedFile]) -> List[StoredFile]:
        """
        Upload each file in order; the first failure ends the run.

        Objects uploaded before the failure stay in storage unless
        compensation is enabled.
        """
        stored: List[StoredFile] = []
        for item in validated:
            folder = build_folder(item.slot.purpose, self.settings.STORAGE_FOLDER_PREFIX)
            result = self.storage.upload(
                item.data,
                folder,
                item.slot.resource_kind,
                filename=item.sanitized_name,
                content_type=item.content_type,
            )
            if not result.success:
                logger.error(f"Upload of {item.slot.field} failed: {result.error_code} {result.error}")
                self.compensate(stored)
                raise classify_storage_failure(result, item.slot.field)
            logger.info(f"Uploaded {item.slot.field} ({item.size} bytes) as {result.object_id}")
            stored.append(StoredFile(file=item, url=result.url, object_id=result.object_id))
        return stored

    def compensate(self, stored: List[StoredFile]) -> None:
        if not stored:
            return
        if not self.settings.STORAGE_COMPENSATE_ON_FAILURE:
            for item in stored:
                logger.warning(f"Orphaned storage object left in place: {item.object_id}")
            return
        for item in stored:
            outcome = self.storage.delete(item.object_id, item.file.slot.resource_kind)
            if outcome.success:
                logger.info(f"Removed orphaned storage object {item.object_id}")
            else:
                logger.error(f"Could not remove orphaned storage object {item.object_id}: {outcome.error}")

    def record_files(
        self,
        db: Session,
        submitted: ApplicationSubmitted,
        stored: List[StoredFile],
        parsed: ParsedSubmission,
    ) -> None:
        """Best-effort metadata writes; outcomes are logged, never raised."""
        items = [
            {
                "storage_url": item.url,
                "storage_object_id": item.object_id,
                "storage_resource_kind": item.file.slot.resource_kind.value,
                "original_filename": item.file.original_name or item.file.sanitized_name,
                "sanitized_filename": item.file.sanitized_name,
                "file_type": item.file.content_type,
                "file_category": item.file.slot.category,
                "file_size": item.file.size,
                "uploaded_by": submitted.email,
                "upload_purpose": f"application_{item.file.slot.field}",
                "related_entity_id": submitted.application_id,
                "related_entity_type": RELATED_ENTITY_TYPE,
                "upload_source": UploadSource.WEB,
                "upload_ip_address": parsed.ip_address,
                "user_agent": parsed.user_agent,
            }
            for item in stored
        ]
        try:
            outcomes = crud.file_upload.record_many(db, items)
        except Exception:
            logger.exception(f"Non-critical: file records for application {submitted.application_id} were not saved")
            return

        saved = sum(1 for outcome in outcomes if outcome.saved)
        if saved < len(outcomes):
            logger.warning(f"Saved {saved}/{len(outcomes)} file records for application {submitted.application_id}")
        else:
            logger.info(f"Saved {saved} file records for application {submitted.application_id}")
