from pathlib import Path

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load env values for components that read os.environ directly.
_project_root = Path(__file__).resolve().parents[1]
load_dotenv(_project_root / ".env", override=False)


class Settings(BaseSettings):
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str
    DB_POOL_SIZE: int = 20
    DB_POOL_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30

    BACKEND_CORS_ORIGINS: list[str] | str = ["http://localhost:8080", "http://localhost:5173"]

    # Bearer token for the internal admin endpoints (dashboard, manual cleanup).
    INTERNAL_API_TOKEN: str | None = None

    GEMINI_API_KEY: str | None = None
    GEMINI_API_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    GEMINI_IMAGE_MODEL: str = "gemini-2.5-flash-image"
    GEMINI_REQUEST_TIMEOUT_SECONDS: float = 120.0

    IMAGE_RETENTION_HOURS: int = 6
    REFERENCE_LOOKUP_MAX_WORKERS: int = 7

    # GCS through its S3-compatible XML API (HMAC keys).
    MEDIA_STORAGE_BUCKET: str | None = None
    MEDIA_STORAGE_ENDPOINT: str = "https://storage.googleapis.com"
    MEDIA_STORAGE_REGION: str = "auto"
    MEDIA_STORAGE_ACCESS_KEY: str | None = None
    MEDIA_STORAGE_SECRET_KEY: str | None = None
    MEDIA_STORAGE_PUBLIC_BASE_URL: str = "https://storage.googleapis.com"
    MEDIA_STORAGE_PRESIGN_TTL_SECONDS: int = 60 * 60
    MEDIA_STORAGE_USE_SSL: bool = True
    MEDIA_STORAGE_FORCE_PATH_STYLE: bool = True

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def split_origins(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("IMAGE_RETENTION_HOURS")
    @classmethod
    def validate_retention(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("IMAGE_RETENTION_HOURS must be greater than zero")
        return value

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
