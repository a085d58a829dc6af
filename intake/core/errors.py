"""
Error taxonomy for the intake pipeline.

Every expected failure is raised as an ``IntakeError`` carrying a stable
``ErrorCode``; ``main.py`` turns it into the public failure body. Low-level
storage and database failures are classified here by exception type and
driver/provider error code, never by parsing human-readable messages.
"""

import enum
import logging
from typing import Any, Dict, Optional

from sqlalchemy import exc as sa_exc

from intake.core.storage import StorageErrorCode, UploadResult
from intake.core.uploads import FileValidationResult, ValidationErrorCode

logger = logging.getLogger(__name__)


class ErrorCode(str, enum.Enum):
    ORIGIN_REJECTED = "ORIGIN_REJECTED"
    MALFORMED_REQUEST = "MALFORMED_REQUEST"
    MISSING_FILES = "MISSING_FILES"
    INVALID_FILE_TYPE = "INVALID_FILE_TYPE"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    UPLOAD_FAILED = "UPLOAD_FAILED"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    DUPLICATE_EMAIL = "DUPLICATE_EMAIL"
    DUPLICATE_OBJECT = "DUPLICATE_OBJECT"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    NOT_FOUND = "NOT_FOUND"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


ERROR_STATUS: Dict[ErrorCode, int] = {
    ErrorCode.ORIGIN_REJECTED: 403,
    ErrorCode.MALFORMED_REQUEST: 400,
    ErrorCode.MISSING_FILES: 400,
    ErrorCode.INVALID_FILE_TYPE: 400,
    ErrorCode.FILE_TOO_LARGE: 413,
    ErrorCode.UPLOAD_FAILED: 500,
    ErrorCode.VALIDATION_FAILED: 400,
    ErrorCode.DUPLICATE_EMAIL: 409,
    ErrorCode.DUPLICATE_OBJECT: 409,
    ErrorCode.STORE_UNAVAILABLE: 503,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.METHOD_NOT_ALLOWED: 405,
    ErrorCode.INTERNAL_ERROR: 500,
}

DEFAULT_MESSAGES: Dict[ErrorCode, str] = {
    ErrorCode.ORIGIN_REJECTED: "Unauthorized origin",
    ErrorCode.MALFORMED_REQUEST: "Invalid request format",
    ErrorCode.MISSING_FILES: "Required files are missing",
    ErrorCode.INVALID_FILE_TYPE: "Invalid file type",
    ErrorCode.FILE_TOO_LARGE: "File size exceeds limit",
    ErrorCode.UPLOAD_FAILED: "File upload failed",
    ErrorCode.VALIDATION_FAILED: "Validation failed",
    ErrorCode.DUPLICATE_EMAIL: "An application with this email address already exists",
    ErrorCode.DUPLICATE_OBJECT: "A file with this storage identifier already exists",
    ErrorCode.STORE_UNAVAILABLE: "Database is temporarily unavailable",
    ErrorCode.NOT_FOUND: "Resource not found",
    ErrorCode.METHOD_NOT_ALLOWED: "Method not allowed",
    ErrorCode.INTERNAL_ERROR: "An unexpected error occurred",
}

DEFAULT_HINTS: Dict[ErrorCode, str] = {
    ErrorCode.ORIGIN_REJECTED: "Submissions must be made from the application form",
    ErrorCode.MALFORMED_REQUEST: "Ensure Content-Type is multipart/form-data",
    ErrorCode.MISSING_FILES: "Attach both a photograph and a resume",
    ErrorCode.VALIDATION_FAILED: "Check that all required fields are filled correctly",
    ErrorCode.DUPLICATE_EMAIL: "Each email address can only be used for one application",
    ErrorCode.UPLOAD_FAILED: "Please try again in a few moments",
    ErrorCode.INTERNAL_ERROR: "Check server logs for details",
}

# Hints for the database failure sub-kinds
HINT_DB_AUTH = "Check the database user credentials and access rules"
HINT_DB_NETWORK = "Verify the database server is running and reachable from this host"
HINT_DB_TIMEOUT = "Check database server status and network connectivity"

# PostgreSQL SQLSTATE codes
PG_UNIQUE_VIOLATION = "23505"
PG_AUTH_CODES = {"28000", "28P01"}
PG_CONNECTION_CLASS = "08"

# sqlite3 extended result codes
SQLITE_CONSTRAINT_UNIQUE = 2067
SQLITE_CONSTRAINT_PRIMARYKEY = 1555

STORAGE_HINTS: Dict[StorageErrorCode, str] = {
    StorageErrorCode.AUTH: "Object storage rejected the service credentials",
    StorageErrorCode.NOT_FOUND: "Object storage bucket is not configured correctly",
    StorageErrorCode.NETWORK: "Object storage is unreachable, please try again shortly",
    StorageErrorCode.TIMEOUT: "Object storage timed out, please try again shortly",
    StorageErrorCode.INVALID_FORMAT: "The file format is not accepted by the storage pipeline",
}


class IntakeError(Exception):
    """An expected, classified failure with its public response shape."""

    def __init__(
        self,
        code: ErrorCode,
        message: Optional[str] = None,
        *,
        status_code: Optional[int] = None,
        hint: Optional[str] = None,
        field: Optional[str] = None,
        provider_error: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.code = code
        self.message = message or DEFAULT_MESSAGES[code]
        self.status_code = status_code or ERROR_STATUS[code]
        self.hint = hint if hint is not None else DEFAULT_HINTS.get(code)
        self.field = field
        self.provider_error = provider_error
        self.details = details
        super().__init__(self.message)

    def to_body(self, include_details: bool = False) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "success": False,
            "error": self.code.value,
            "message": self.message,
        }
        if self.hint:
            body["hint"] = self.hint
        if self.field:
            body["field"] = self.field
        if self.provider_error:
            body["providerError"] = self.provider_error
        if include_details and self.details:
            body["details"] = self.details
        return body

    def __repr__(self) -> str:
        return f"IntakeError({self.code.value}, {self.message!r})"


def _driver_code(exc: sa_exc.DBAPIError) -> Optional[str]:
    orig = getattr(exc, "orig", None)
    pgcode = getattr(orig, "pgcode", None)
    if pgcode:
        return str(pgcode)
    sqlite_code = getattr(orig, "sqlite_errorcode", None)
    if sqlite_code is not None:
        return f"sqlite:{sqlite_code}"
    return None


def is_unique_violation(exc: Exception) -> bool:
    """True when an IntegrityError was raised by a unique/primary key index."""
    if not isinstance(exc, sa_exc.IntegrityError):
        return False
    code = _driver_code(exc)
    return code in {
        PG_UNIQUE_VIOLATION,
        f"sqlite:{SQLITE_CONSTRAINT_UNIQUE}",
        f"sqlite:{SQLITE_CONSTRAINT_PRIMARYKEY}",
    }


def classify_database_error(
    exc: Exception,
    *,
    unique_violation: ErrorCode = ErrorCode.DUPLICATE_EMAIL,
) -> IntakeError:
    """
    Map a SQLAlchemy/DBAPI failure to the intake taxonomy.

    Args:
        exc: The exception raised by the session or engine
        unique_violation: Code to report when a unique index rejected the write

    Returns:
        IntakeError ready to be raised
    """
    details = {"exception": type(exc).__name__, "error": str(exc)}

    if isinstance(exc, IntakeError):
        return exc

    if isinstance(exc, sa_exc.IntegrityError):
        if is_unique_violation(exc):
            return IntakeError(unique_violation, details=details)
        return IntakeError(
            ErrorCode.VALIDATION_FAILED,
            "Record violates a database constraint",
            details=details,
        )

    if isinstance(exc, sa_exc.DataError):
        return IntakeError(ErrorCode.VALIDATION_FAILED, "Record contains invalid data", details=details)

    if isinstance(exc, sa_exc.TimeoutError):
        return IntakeError(
            ErrorCode.STORE_UNAVAILABLE,
            "Database connection timed out",
            hint=HINT_DB_TIMEOUT,
            details=details,
        )

    if isinstance(exc, (sa_exc.OperationalError, sa_exc.InterfaceError)):
        code = _driver_code(exc)
        if code in PG_AUTH_CODES:
            return IntakeError(
                ErrorCode.STORE_UNAVAILABLE,
                "Database authentication failed",
                status_code=401,
                hint=HINT_DB_AUTH,
                details=details,
            )
        if code and code.startswith(PG_CONNECTION_CLASS):
            return IntakeError(
                ErrorCode.STORE_UNAVAILABLE,
                "Database connection was lost",
                hint=HINT_DB_NETWORK,
                details=details,
            )
        return IntakeError(
            ErrorCode.STORE_UNAVAILABLE,
            "Cannot reach the database",
            hint=HINT_DB_NETWORK,
            details=details,
        )

    if isinstance(exc, sa_exc.DisconnectionError):
        return IntakeError(ErrorCode.STORE_UNAVAILABLE, hint=HINT_DB_NETWORK, details=details)

    logger.error(f"Unclassified database error: {type(exc).__name__}: {exc}")
    return IntakeError(ErrorCode.INTERNAL_ERROR, details=details)


def classify_storage_failure(result: UploadResult, field: str) -> IntakeError:
    """Turn a failed UploadResult into an UPLOAD_FAILED error for ``field``."""
    if result.error_code is StorageErrorCode.INVALID_FORMAT:
        return IntakeError(
            ErrorCode.INVALID_FILE_TYPE,
            result.error,
            field=field,
            hint=STORAGE_HINTS[StorageErrorCode.INVALID_FORMAT],
        )
    return IntakeError(
        ErrorCode.UPLOAD_FAILED,
        f"Failed to upload {field}",
        field=field,
        hint=STORAGE_HINTS.get(result.error_code, DEFAULT_HINTS[ErrorCode.UPLOAD_FAILED]),
        provider_error=result.error,
        details={"storageErrorCode": result.error_code.value if result.error_code else None},
    )


def classify_file_validation(result: FileValidationResult, field: str) -> IntakeError:
    """Turn a failed FileValidationResult into the error for ``field``."""
    if result.error_code is ValidationErrorCode.MISSING:
        return IntakeError(ErrorCode.MISSING_FILES, f"{field}: {result.error}", field=field)
    if result.error_code is ValidationErrorCode.TOO_LARGE:
        return IntakeError(ErrorCode.FILE_TOO_LARGE, result.error, field=field)
    return IntakeError(ErrorCode.INVALID_FILE_TYPE, result.error, field=field)
