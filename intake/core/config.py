from pydantic_settings import BaseSettings
from typing import List, Optional, Union
from urllib.parse import urlparse
from pydantic import field_validator, model_validator
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # API Settings
    API_PREFIX: str = "/api"
    PROJECT_NAME: str = "Candidate Intake API"
    ENVIRONMENT: str = "development"

    # Canonical URL of the web form; submissions must originate here in production
    APP_URL: str = "http://localhost:3000"

    # Database Settings
    POSTGRES_USER: str = "user"
    POSTGRES_PASSWORD: str = "password"
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: str = "5432"
    POSTGRES_DB: str = "intake_db"
    DATABASE_URL_OVERRIDE: Optional[str] = None

    DB_CONNECT_TIMEOUT_SECONDS: int = 10
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    @property
    def DATABASE_URL(self) -> str:
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # Object Storage Settings
    USE_S3: bool = False
    S3_BUCKET_NAME: str = ""
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_REGION: str = "us-east-1"
    S3_PUBLIC_BASE_URL: str = ""  # e.g. a CloudFront distribution in front of the bucket
    S3_CONNECT_TIMEOUT_SECONDS: int = 5

    LOCAL_STORAGE_DIR: str = "uploads"
    LOCAL_STORAGE_BASE_URL: str = "http://localhost:8000/uploads"

    STORAGE_FOLDER_PREFIX: str = "uploads"
    STORAGE_COMPENSATE_ON_FAILURE: bool = False

    @property
    def STORAGE_URL_DOMAIN(self) -> str:
        """Host that every persisted storage URL must belong to."""
        if self.USE_S3:
            if self.S3_PUBLIC_BASE_URL:
                return urlparse(self.S3_PUBLIC_BASE_URL).hostname or ""
            return "amazonaws.com"
        return urlparse(self.LOCAL_STORAGE_BASE_URL).hostname or ""

    # Retention for soft-deleted file records
    DELETED_FILE_RETENTION_DAYS: int = 30

    # Logging
    LOG_LEVEL: str = "INFO"
    JSON_LOGS: bool = False

    # CORS Settings - can be set as JSON string in .env
    BACKEND_CORS_ORIGINS: Union[List[str], str] = ["http://localhost:3000"]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.strip().lower() == "production"

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: Union[List[str], str]) -> List[str]:
        """Parse CORS origins from JSON string or list"""
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                # If not valid JSON, split by comma
                return [origin.strip() for origin in v.split(",")]
        return v

    @field_validator("APP_URL")
    @classmethod
    def validate_app_url(cls, v: str) -> str:
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("APP_URL must be an absolute http(s) URL")
        return v.rstrip("/")

    @model_validator(mode="after")
    def validate_storage(self) -> "Settings":
        if self.USE_S3 and not self.S3_BUCKET_NAME:
            raise ValueError("S3_BUCKET_NAME must be set when USE_S3=True")
        return self

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
