"""
File validation for candidate uploads.

Pure functions: no I/O, no state kept between calls. A file is checked
against its category profile in a fixed order and the first failure wins.
"""

import enum
import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Dict, FrozenSet, Optional, Tuple

MAX_FILENAME_LENGTH = 100
DEFAULT_FILENAME = "file"

MIB = 1024 * 1024


class FileCategory(str, enum.Enum):
    IMAGE = "image"
    PDF = "pdf"
    DOCUMENT = "document"


class ValidationErrorCode(str, enum.Enum):
    MISSING = "MISSING"
    INVALID_TYPE = "INVALID_TYPE"
    TOO_LARGE = "TOO_LARGE"
    SIGNATURE_MISMATCH = "SIGNATURE_MISMATCH"


@dataclass(frozen=True)
class CategoryProfile:
    label: str
    allowed_types: FrozenSet[str]
    allowed_extensions: Tuple[str, ...]
    max_size: int


PROFILES: Dict[FileCategory, CategoryProfile] = {
    FileCategory.IMAGE: CategoryProfile(
        label="Image",
        allowed_types=frozenset({"image/jpeg", "image/jpg", "image/png", "image/webp"}),
        allowed_extensions=(".jpg", ".jpeg", ".png", ".webp"),
        max_size=5 * MIB,
    ),
    FileCategory.PDF: CategoryProfile(
        label="PDF Document",
        allowed_types=frozenset({"application/pdf"}),
        allowed_extensions=(".pdf",),
        max_size=10 * MIB,
    ),
}
# Generic documents share the PDF profile until other formats are accepted
PROFILES[FileCategory.DOCUMENT] = PROFILES[FileCategory.PDF]

# Leading bytes identifying each accepted format
FILE_SIGNATURES: Dict[str, Tuple[bytes, ...]] = {
    "image/jpeg": (b"\xFF\xD8\xFF",),
    "image/jpg": (b"\xFF\xD8\xFF",),
    "image/png": (b"\x89\x50\x4E\x47",),
    "image/webp": (b"\x52\x49\x46\x46",),  # RIFF container header
    "application/pdf": (b"\x25\x50\x44\x46",),  # %PDF
}

_TRAVERSAL_RE = re.compile(r"\.\.[/\\]")
_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9._-]")
_DOT_RUN_RE = re.compile(r"\.{2,}")
_EXTERNAL_URL_RE = re.compile(r"^https?://", re.IGNORECASE)


@dataclass(frozen=True)
class CandidateFile:
    filename: str
    content_type: str
    data: bytes
    # Part size from the multipart parser; data may hold fewer bytes
    declared_size: Optional[int] = None

    @property
    def size(self) -> int:
        if self.declared_size is not None:
            return self.declared_size
        return len(self.data)


@dataclass(frozen=True)
class FileValidationResult:
    valid: bool
    error: Optional[str] = None
    error_code: Optional[ValidationErrorCode] = None
    sanitized_name: Optional[str] = None
    data: Optional[bytes] = None
    size: int = 0


def normalize_content_type(raw: Optional[str]) -> str:
    content_type = (raw or "").strip().lower()
    if ";" in content_type:
        content_type = content_type.split(";", 1)[0].strip()
    return content_type


def is_external_url(value: Optional[str]) -> bool:
    """True when the value itself is an http(s) link, not when it merely mentions one."""
    return bool(value) and _EXTERNAL_URL_RE.match(value.strip()) is not None


def read_limit(category: FileCategory) -> int:
    """Bytes worth reading from an upload: one past the ceiling is enough to reject it."""
    return PROFILES[FileCategory(category)].max_size + 1


def sanitize_filename(raw: Optional[str]) -> str:
    """
    Make a client-supplied filename safe to store.

    Strips traversal sequences, replaces anything outside [A-Za-z0-9._-]
    with "_", collapses runs of dots and truncates to 100 characters while
    keeping the extension. Applying it twice gives the same result.
    """
    name = (raw or "").strip()
    name = _TRAVERSAL_RE.sub("", name)
    name = _UNSAFE_CHARS_RE.sub("_", name)
    name = _DOT_RUN_RE.sub(".", name)

    if len(name) > MAX_FILENAME_LENGTH:
        suffix = PurePosixPath(name).suffix
        if suffix and len(suffix) < MAX_FILENAME_LENGTH:
            name = name[: MAX_FILENAME_LENGTH - len(suffix)] + suffix
        else:
            name = name[:MAX_FILENAME_LENGTH]
        # Truncation can butt a trailing dot against the extension
        name = _DOT_RUN_RE.sub(".", name)

    return name or DEFAULT_FILENAME


def has_valid_signature(data: bytes, content_type: str) -> bool:
    signatures = FILE_SIGNATURES.get(content_type)
    if not signatures:
        return False
    return any(data.startswith(signature) for signature in signatures)


def format_file_size(num_bytes: int) -> str:
    """Human readable size, e.g. ``2.5 MB``."""
    if num_bytes <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    index = 0
    while index < len(units) - 1 and num_bytes >= 1024 ** (index + 1):
        index += 1
    value = round(num_bytes / (1024 ** index), 2)
    if value == int(value):
        value = int(value)
    return f"{value} {units[index]}"


def _fail(code: ValidationErrorCode, message: str) -> FileValidationResult:
    return FileValidationResult(valid=False, error=message, error_code=code)


def validate_file(candidate: Optional[CandidateFile], category: FileCategory) -> FileValidationResult:
    """
    Validate one uploaded file against a category profile.

    Checks run in order and stop at the first failure: presence, a filename
    that is itself a link, declared MIME type and extension, size ceiling,
    byte signature. On success the result carries the sanitized name and
    the bytes already read.
    """
    profile = PROFILES[FileCategory(category)]

    if candidate is None or candidate.size == 0:
        return _fail(ValidationErrorCode.MISSING, "File is empty or missing. Please select a valid file.")

    if is_external_url(candidate.filename):
        return _fail(ValidationErrorCode.INVALID_TYPE, "External URLs not allowed")

    content_type = normalize_content_type(candidate.content_type)
    if content_type not in profile.allowed_types:
        return _fail(
            ValidationErrorCode.INVALID_TYPE,
            f"Invalid file type. Please upload {profile.label} files only. "
            f"Allowed formats: {', '.join(profile.allowed_extensions)}",
        )

    if not (candidate.filename or "").lower().endswith(profile.allowed_extensions):
        return _fail(
            ValidationErrorCode.INVALID_TYPE,
            f"Invalid file extension. Allowed extensions: {', '.join(profile.allowed_extensions)}",
        )

    if candidate.size > profile.max_size:
        return _fail(
            ValidationErrorCode.TOO_LARGE,
            f"File size exceeds limit. Maximum allowed: {profile.max_size // MIB}MB. "
            f"Your file: {candidate.size / MIB:.2f}MB",
        )

    if not has_valid_signature(candidate.data, content_type):
        return _fail(ValidationErrorCode.SIGNATURE_MISMATCH, "File content does not match declared type")

    return FileValidationResult(
        valid=True,
        sanitized_name=sanitize_filename(candidate.filename),
        data=candidate.data,
        size=candidate.size,
    )
