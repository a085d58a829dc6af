"""
CRUD operations for Application model.
"""

import logging
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from intake.core.errors import ErrorCode, IntakeError, classify_database_error
from intake.models.application import Application
from intake.schemas.application import ApplicationCreate, ApplicationForm, summarize_validation_error

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def get_by_email(db: Session, email: str) -> Optional[Application]:
    """
    Retrieve an application by its (normalised) email address.

    Args:
        db: Database session
        email: Email address as submitted; trimmed and lower-cased here

    Returns:
        Application instance if found, None otherwise
    """
    return db.query(Application).filter(Application.email == normalize_email(email)).first()


def get_by_id(db: Session, application_id: int) -> Optional[Application]:
    return db.query(Application).filter(Application.id == application_id).first()


def build_record(form: ApplicationForm, photograph_url: str, resume_url: str) -> ApplicationCreate:
    """
    Validate the complete record against the schema invariants.

    Raises:
        IntakeError VALIDATION_FAILED with every field-level message
    """
    try:
        return ApplicationCreate.model_validate(
            {**form.model_dump(), "photograph_url": photograph_url, "resume_url": resume_url}
        )
    except ValidationError as e:
        summary = summarize_validation_error(e)
        raise IntakeError(
            ErrorCode.VALIDATION_FAILED,
            f"Validation error: {summary['message']}",
            details={"errors": summary["errors"]},
        ) from e


def create(db: Session, form: ApplicationForm, photograph_url: str, resume_url: str) -> Application:
    """
    Validate and insert an application.

    The unique index on ``email`` is the final authority on duplicates: a
    concurrent submission that slipped past the pre-check is reported as
    DUPLICATE_EMAIL here.

    Raises:
        IntakeError: VALIDATION_FAILED, DUPLICATE_EMAIL or STORE_UNAVAILABLE
    """
    record = build_record(form, photograph_url, resume_url)

    email = normalize_email(record.email)
    application = Application(
        full_name=record.full_name,
        age=record.age,
        gender=record.gender.value,
        mobile_number=record.mobile_number,
        email=email,
        city=record.city,
        state=record.state,
        highest_qualification=record.highest_qualification,
        specialization=record.specialization,
        college_name=record.college_name,
        year_of_passing=record.year_of_passing,
        career_gap=record.career_gap,
        role_applied_for=record.role_applied_for,
        primary_skill_set=record.primary_skill_set,
        total_experience=record.total_experience,
        linkedin_url=record.linkedin_url,
        github_url=record.github_url,
        photograph_url=record.photograph_url,
        resume_url=record.resume_url,
        availability=record.availability,
        declaration_accepted=record.declaration_accepted,
    )

    try:
        db.add(application)
        db.commit()
        db.refresh(application)
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Application insert rejected by constraint: {e.orig}")
        # Older drivers do not expose error codes; the email lookup settles it
        if get_by_email(db, email) is not None:
            raise IntakeError(ErrorCode.DUPLICATE_EMAIL) from e
        raise classify_database_error(e) from e
    except SQLAlchemyError as e:
        db.rollback()
        raise classify_database_error(e) from e

    logger.info(f"Created application {application.id} for role '{application.role_applied_for}'")
    return application
