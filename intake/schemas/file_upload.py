"""
Pydantic schemas for file upload metadata records.
"""

from typing import Literal, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_core import PydanticCustomError

from intake.core.config import settings
from intake.core.uploads import FileCategory, format_file_size
from intake.models.file_upload import MAX_RECORD_FILE_SIZE, UploadSource

AllowedFileType = Literal["image/jpeg", "image/jpg", "image/png", "image/webp", "application/pdf"]


def url_in_domain(url: str, domain: str) -> bool:
    host = (urlparse(url).hostname or "").lower()
    domain = domain.lower()
    return bool(domain) and (host == domain or host.endswith("." + domain))


class FileUploadCreate(BaseModel):
    """Metadata for an object that is already stored."""
    storage_url: str
    storage_object_id: str = Field(min_length=1, max_length=512)
    storage_resource_kind: Literal["image", "raw"] = "image"

    original_filename: str = Field(min_length=1, max_length=255)
    sanitized_filename: Optional[str] = Field(default=None, max_length=255)
    file_type: AllowedFileType
    file_category: FileCategory
    file_size: int = Field(ge=1, le=MAX_RECORD_FILE_SIZE)
    file_size_formatted: Optional[str] = None

    uploaded_by: Optional[str] = None
    upload_purpose: str = "general"
    related_entity_id: Optional[int] = None
    related_entity_type: Optional[str] = None

    upload_source: UploadSource = UploadSource.WEB
    upload_ip_address: Optional[str] = None
    user_agent: Optional[str] = Field(default=None, max_length=512)

    @field_validator("storage_url")
    @classmethod
    def check_storage_domain(cls, v: str) -> str:
        if not url_in_domain(v, settings.STORAGE_URL_DOMAIN):
            raise PydanticCustomError(
                "storage_url",
                "Only object storage URLs are allowed. Direct external URLs are not permitted.",
            )
        return v

    @field_validator("user_agent", mode="before")
    @classmethod
    def clip_user_agent(cls, v):
        return v[:512] if isinstance(v, str) else v

    @model_validator(mode="after")
    def fill_formatted_size(self) -> "FileUploadCreate":
        if not self.file_size_formatted:
            self.file_size_formatted = format_file_size(self.file_size)
        return self

