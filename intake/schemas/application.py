"""
Pydantic schemas for candidate applications.

``ApplicationForm`` is the typed view of the submitted form fields;
``ApplicationCreate`` adds the object-storage URLs and is what the
persistence layer accepts. Field aliases match the browser form keys.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StringConstraints, ValidationError, field_validator
from pydantic_core import PydanticCustomError

from intake.models.application import Gender

RequiredText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

MIN_AGE = 18
MAX_AGE = 100
MIN_YEAR_OF_PASSING = 1950
MAX_YEARS_AHEAD = 5


def max_year_of_passing() -> int:
    return datetime.now(timezone.utc).year + MAX_YEARS_AHEAD


def _check_http_url(value: str, label: str) -> str:
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise PydanticCustomError("url", "{label} must be a valid http or https URL", {"label": label})
    return value


class ApplicationForm(BaseModel):
    """Candidate-supplied fields of an application."""
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True, extra="ignore")

    # Personal
    full_name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)] = Field(
        alias="fullName"
    )
    age: int
    gender: Gender = Gender.UNSPECIFIED

    # Contact
    mobile_number: str = Field(alias="mobileNumber")
    email: EmailStr = Field(alias="emailAddress")
    city: RequiredText
    state: RequiredText

    # Education
    highest_qualification: RequiredText = Field(alias="highestQualification")
    specialization: RequiredText
    college_name: RequiredText = Field(alias="collegeName")
    year_of_passing: int = Field(alias="yearOfPassing")
    career_gap: float = Field(default=0, alias="careerGap")

    # Professional
    role_applied_for: RequiredText = Field(alias="roleAppliedFor")
    primary_skill_set: RequiredText = Field(alias="primarySkillSet")
    total_experience: RequiredText = Field(alias="totalExperience")
    linkedin_url: str = Field(default="", alias="linkedinUrl")
    github_url: str = Field(default="", alias="githubUrl")

    availability: RequiredText
    declaration_accepted: bool = Field(alias="declarationAccepted")

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("age")
    @classmethod
    def check_age(cls, v: int) -> int:
        if v < MIN_AGE:
            raise PydanticCustomError("age_range", "Minimum age is {min_age}", {"min_age": MIN_AGE})
        if v > MAX_AGE:
            raise PydanticCustomError("age_range", "Maximum age is {max_age}", {"max_age": MAX_AGE})
        return v

    @field_validator("mobile_number")
    @classmethod
    def check_mobile_number(cls, v: str) -> str:
        if not (len(v) == 10 and v.isascii() and v.isdigit()):
            raise PydanticCustomError("mobile_number", "Please enter a valid 10-digit mobile number")
        return v

    @field_validator("year_of_passing")
    @classmethod
    def check_year_of_passing(cls, v: int) -> int:
        if v < MIN_YEAR_OF_PASSING:
            raise PydanticCustomError("year_range", "Year must be after {min_year}", {"min_year": MIN_YEAR_OF_PASSING})
        if v > max_year_of_passing():
            raise PydanticCustomError("year_range", "Year cannot be more than 5 years in the future")
        return v

    @field_validator("career_gap")
    @classmethod
    def check_career_gap(cls, v: float) -> float:
        if v < 0:
            raise PydanticCustomError("career_gap", "Career gap cannot be negative")
        return v

    @field_validator("linkedin_url", "github_url")
    @classmethod
    def check_profile_url(cls, v: str, info) -> str:
        if not v:
            return ""
        return _check_http_url(v, "LinkedIn URL" if info.field_name == "linkedin_url" else "GitHub URL")

    @field_validator("declaration_accepted")
    @classmethod
    def check_declaration(cls, v: bool) -> bool:
        if v is not True:
            raise PydanticCustomError("declaration", "Declaration must be accepted to submit the application")
        return v


class ApplicationCreate(ApplicationForm):
    """A complete application record, ready to be written."""
    photograph_url: RequiredText = Field(alias="photographUrl")
    resume_url: RequiredText = Field(alias="resumeUrl")

    @field_validator("photograph_url", "resume_url")
    @classmethod
    def check_storage_url(cls, v: str, info) -> str:
        return _check_http_url(v, "Photograph URL" if info.field_name == "photograph_url" else "Resume URL")


class ApplicationSubmitted(BaseModel):
    """Payload returned after a successful submission."""
    model_config = ConfigDict(populate_by_name=True)

    application_id: int = Field(serialization_alias="applicationId")
    full_name: str = Field(serialization_alias="fullName")
    email: str
    role: str
    submitted_at: datetime = Field(serialization_alias="submittedAt")


def summarize_validation_error(exc: ValidationError) -> Dict[str, Any]:
    """
    Flatten a pydantic ValidationError into a single message plus per-field
    entries, keyed by the form field names the client sent.
    """
    errors: List[Dict[str, Optional[str]]] = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ())) or None
        errors.append({"field": field, "message": error.get("msg")})

    message = "; ".join(
        f"{item['field']}: {item['message']}" if item["field"] else str(item["message"])
        for item in errors
    )
    return {"message": message, "errors": errors}
