from pydantic import field_validator
from pydantic_settings import BaseSettings
from typing import List, Any

class Settings(BaseSettings):
    PROJECT_NAME: str = "Product Image Ingestion"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"

    # Storage
    UPLOAD_DIR: str = "uploads"
    COMPRESSED_DIR: str = "compressed"
    REQUESTS_DIR: str = "data/requests"
    PUBLIC_BASE_URL: str = "http://localhost:8080"
    PORT: int = 8080

    # Fetching & compression
    FETCH_TIMEOUT_SECONDS: float = 15.0
    MAX_IMAGE_BYTES: int = 20 * 1024 * 1024
    MAX_CONCURRENT_FETCHES: int = 8
    JPEG_QUALITY: int = 50
    MANIFEST_CHUNK_SIZE: int = 500

    # Persistence
    PERSISTENCE_BACKEND: str = "json"  # "json" or "memory"
    PERSIST_MAX_ATTEMPTS: int = 3
    PERSIST_RETRY_DELAY_SECONDS: float = 0.5

    # Security
    ALLOWED_CONTENT_TYPES: Any = ["text/csv"]

    @field_validator("ALLOWED_CONTENT_TYPES", mode="before")
    @classmethod
    def assemble_content_types(cls, v: Any) -> List[str]:
        if isinstance(v, str):
            return [i.strip() for i in v.split(",") if i.strip()]
        return v

    @field_validator("PERSISTENCE_BACKEND")
    @classmethod
    def check_backend(cls, v: str) -> str:
        if v not in ("json", "memory"):
            raise ValueError(f"Unknown persistence backend: {v}")
        return v

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        case_sensitive = True
        env_file = ".env"

settings = Settings()
