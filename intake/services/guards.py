"""
Cheap first-line checks run before the submission pipeline does any real work.
"""

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from sqlalchemy.orm import Session

from intake import crud
from intake.core.errors import ErrorCode, IntakeError

logger = logging.getLogger(__name__)

MISSING_HEADERS_REASON = "Missing origin and referer headers"
UNAUTHORIZED_ORIGIN_REASON = "Unauthorized origin"

_DEFAULT_PORTS = {"http": 80, "https": 443}


@dataclass(frozen=True)
class OriginCheck:
    valid: bool
    reason: Optional[str] = None
    missing_headers: bool = False


def _origin_of(url: str) -> Optional[tuple]:
    try:
        parsed = urlparse(url.strip())
        port = parsed.port
    except ValueError:
        return None
    scheme = parsed.scheme.lower()
    host = (parsed.hostname or "").lower()
    if scheme not in _DEFAULT_PORTS or not host:
        return None
    return scheme, host, port or _DEFAULT_PORTS[scheme]


def check_origin(
    origin: Optional[str],
    referer: Optional[str],
    app_url: str,
    production: bool,
) -> OriginCheck:
    """
    Decide whether a request came from the application's own pages.

    Outside production every request passes. In production the Origin
    header is compared (falling back to Referer) against the scheme, host
    and port of ``app_url``.
    """
    if not production:
        return OriginCheck(valid=True)

    if not origin and not referer:
        return OriginCheck(valid=False, reason=MISSING_HEADERS_REASON, missing_headers=True)

    expected = _origin_of(app_url)
    actual = _origin_of(origin or referer)
    if expected is None or actual is None or actual != expected:
        return OriginCheck(valid=False, reason=UNAUTHORIZED_ORIGIN_REASON)

    return OriginCheck(valid=True)


def require_origin(origin: Optional[str], referer: Optional[str], app_url: str, production: bool) -> None:
    """Raise ORIGIN_REJECTED (401 when headers are absent, 403 on mismatch)."""
    result = check_origin(origin, referer, app_url, production)
    if result.valid:
        return
    logger.warning(f"Rejected request origin: {result.reason} (origin={origin!r}, referer={referer!r})")
    raise IntakeError(
        ErrorCode.ORIGIN_REJECTED,
        result.reason,
        status_code=401 if result.missing_headers else 403,
    )


def check_content_type(content_type: Optional[str]) -> None:
    """Raise MALFORMED_REQUEST unless the body is multipart/form-data."""
    media_type = (content_type or "").split(";", 1)[0].strip().lower()
    if media_type != "multipart/form-data":
        raise IntakeError(
            ErrorCode.MALFORMED_REQUEST,
            "Invalid request format. Expected multipart/form-data",
            details={"contentType": content_type},
        )


def is_duplicate_email(db: Session, email: str) -> bool:
    return crud.application.get_by_email(db, email) is not None
