"""
API endpoint for candidate application submissions.

Only POST is served; every other method gets a fixed 405 body so the web
form has a single, predictable contract.
"""

import logging
from typing import Callable

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from intake.core.config import settings
from intake.core.database import get_session_factory
from intake.core.errors import ErrorCode
from intake.core.storage import StorageBackend, get_storage_backend
from intake.services.submission import SubmissionPipeline

router = APIRouter(prefix="/applications", tags=["Applications"])
logger = logging.getLogger(__name__)

METHOD_NOT_ALLOWED_BODY = {
    "success": False,
    "error": ErrorCode.METHOD_NOT_ALLOWED.value,
    "message": "Method not allowed. Use POST to submit applications.",
}


@router.post("", status_code=status.HTTP_201_CREATED)
async def submit_application(
    request: Request,
    session_factory: Callable[[], Session] = Depends(get_session_factory),
    storage: StorageBackend = Depends(get_storage_backend),
):
    """
    Submit a candidate application.

    Expects multipart/form-data with the candidate's details and two files:
    ``photograph`` (JPEG, PNG or WEBP, up to 5MB) and ``resume`` (PDF, up to
    10MB).

    Flow:
    1. Check Origin/Referer (production only)
    2. Parse the form into typed fields
    3. Reject emails that already applied
    4. Validate both files (type, extension, size, byte signature)
    5. Upload both files to object storage
    6. Save the application
    7. Save file metadata records (best-effort)

    Returns:
        201 with ``applicationId``, ``fullName``, ``email``, ``role`` and ``submittedAt``

    Raises:
        IntakeError: rendered as ``{success: false, error, message, hint?, field?}``
    """
    pipeline = SubmissionPipeline(session_factory, storage, settings)
    submitted = await pipeline.run(request)

    logger.info(f"Application {submitted.application_id} submitted")
    return {"success": True, "data": submitted.model_dump(by_alias=True, mode="json")}


@router.api_route("", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def applications_method_not_allowed():
    return JSONResponse(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        content=METHOD_NOT_ALLOWED_BODY,
        headers={"Allow": "POST"},
    )
