"""
Health check and monitoring endpoints.

Provides detailed health status for the database and object storage.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from intake.core.database import get_session_factory
from intake.core.storage import StorageBackend, get_storage_backend

router = APIRouter(tags=["Health"])
logger = logging.getLogger(__name__)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check() -> Dict[str, str]:
    """
    Basic health check endpoint.

    Returns 200 OK if the service is running.
    Use this for simple uptime monitoring and load balancer health checks.
    """
    return {
        "status": "healthy",
        "timestamp": _timestamp(),
    }


@router.get("/health/detailed")
def detailed_health_check(
    session_factory: Callable[[], Session] = Depends(get_session_factory),
    storage: StorageBackend = Depends(get_storage_backend),
):
    """
    Detailed health check with dependency status.

    Checks:
    - Database connectivity
    - Object storage availability

    Returns 200 if all systems are operational, 503 otherwise, with the
    status of each component.
    """
    health_status: Dict[str, Any] = {
        "status": "healthy",
        "timestamp": _timestamp(),
        "checks": {},
    }

    # Check database connectivity
    try:
        db = session_factory()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
        health_status["checks"]["database"] = {
            "status": "healthy",
            "message": "Database connection successful",
        }
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = {
            "status": "unhealthy",
            "message": f"Database error: {type(e).__name__}",
        }

    # Check object storage availability
    try:
        storage.ping()
        health_status["checks"]["storage"] = {
            "status": "healthy",
            "message": f"{type(storage).__name__} accessible",
        }
    except Exception as e:
        logger.error(f"Storage health check failed: {e}")
        health_status["status"] = "unhealthy"
        health_status["checks"]["storage"] = {
            "status": "unhealthy",
            "message": f"Storage error: {type(e).__name__}",
        }

    code = status.HTTP_200_OK if health_status["status"] == "healthy" else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=code, content=health_status)
