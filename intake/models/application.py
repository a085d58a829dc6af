"""
Application database model.

One row per candidate submission. Rows are written once, after the
photograph and resume are already in object storage, and only their
review status changes afterwards.
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Enum, Float, Integer, String, Text, func

from intake.core.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ApplicationStatus(str, enum.Enum):
    """
    Review lifecycle of an application:

    PENDING -> REVIEWED -> SHORTLISTED
                   ↓
               REJECTED
    """
    PENDING = "pending"
    REVIEWED = "reviewed"
    SHORTLISTED = "shortlisted"
    REJECTED = "rejected"


class Gender(str, enum.Enum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"
    UNDISCLOSED = "Prefer not to say"
    UNSPECIFIED = ""


class Application(Base):
    __tablename__ = "applications"
    __table_args__ = (
        CheckConstraint("age >= 18 AND age <= 100", name="ck_applications_age_range"),
        CheckConstraint("career_gap >= 0", name="ck_applications_career_gap_non_negative"),
        CheckConstraint("year_of_passing >= 1950", name="ck_applications_year_of_passing_min"),
    )

    id = Column(Integer, primary_key=True, index=True)

    # Personal
    full_name = Column(String(100), nullable=False)
    age = Column(Integer, nullable=False)
    gender = Column(String(32), nullable=False, default=Gender.UNSPECIFIED.value)

    # Contact - email is the natural key of an application
    mobile_number = Column(String(10), nullable=False)
    email = Column(String(254), nullable=False, unique=True, index=True)
    city = Column(String(100), nullable=False)
    state = Column(String(100), nullable=False)

    # Education
    highest_qualification = Column(String(200), nullable=False)
    specialization = Column(String(200), nullable=False)
    college_name = Column(String(255), nullable=False)
    year_of_passing = Column(Integer, nullable=False)
    career_gap = Column(Float, nullable=False, default=0)

    # Professional
    role_applied_for = Column(String(200), nullable=False, index=True)
    primary_skill_set = Column(Text, nullable=False)
    total_experience = Column(String(100), nullable=False)
    linkedin_url = Column(String(2048), nullable=False, default="")
    github_url = Column(String(2048), nullable=False, default="")

    # Object storage URLs (never file bytes)
    photograph_url = Column(String(2048), nullable=False)
    resume_url = Column(String(2048), nullable=False)

    availability = Column(String(200), nullable=False)
    declaration_accepted = Column(Boolean, nullable=False)

    status = Column(
        Enum(
            ApplicationStatus,
            name="application_status",
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        default=ApplicationStatus.PENDING,
        nullable=False,
        index=True,
    )

    submitted_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Application(id={self.id}, email='{self.email}', status={self.status.value})>"
