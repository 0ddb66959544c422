from pydantic_settings import BaseSettings
from typing import List, Any, Optional
import json
from pathlib import Path


def parse_cors_origins(v: Any) -> List[str]:
    """Parse CORS origins from string or list"""
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        # Try JSON parsing first
        if v.startswith('['):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        # Fall back to comma-separated
        return [origin.strip() for origin in v.split(',') if origin.strip()]
    return []


def parse_page_order(v: Any) -> List[str]:
    """Parse a default page order from a comma-separated string"""
    if isinstance(v, list):
        return [str(item).strip() for item in v if str(item).strip()]
    if isinstance(v, str):
        return [section.strip() for section in v.split(',') if section.strip()]
    return []


class Settings(BaseSettings):
    """Application settings - all configurable via environment variables"""

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "Graduation Booklets"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    API_VERSION: str = "v1"

    # Server Configuration
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 8000

    # ==========================================
    # Document store (SQLAlchemy)
    # ==========================================
    DATABASE_URL: str = "sqlite+aiosqlite:///./graduations.db"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 0
    DB_ECHO: bool = False
    # Poll interval for snapshot listeners to see writes from other processes (0 = off)
    DOCUMENT_POLL_SECONDS: float = 0.0

    # ==========================================
    # Redis
    # ==========================================
    REDIS_URL: str = ""

    # ==========================================
    # Celery
    # ==========================================
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"
    CELERY_TASK_TIME_LIMIT: int = 1800  # 30 minutes
    CELERY_TASK_SOFT_TIME_LIMIT: int = 1500
    CELERY_RESULT_EXPIRES: int = 86400  # 24 hours

    # ==========================================
    # Storage Configuration
    # ==========================================
    STORAGE_MODE: str = "local"  # "local", "s3", or "minio"

    # AWS S3 / MinIO
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_REGION: str = "us-east-1"
    S3_BUCKET_NAME: str = "graduation-assets"
    MINIO_ENDPOINT: str = "localhost:9000"
    MINIO_SECURE: bool = False
    # Public base for asset URLs; derived from bucket/endpoint when empty
    ASSET_PUBLIC_BASE_URL: str = ""

    # Local storage
    LOCAL_STORAGE_DIR: str = "./storage/assets"
    LOCAL_ASSET_BASE_URL: str = "http://localhost:8000/assets"

    # ==========================================
    # Booklet generation
    # ==========================================
    BOOKLET_FETCH_TIMEOUT: float = 30.0  # seconds per student PDF
    BOOKLET_MAX_STUDENT_PDF_BYTES: int = 50 * 1024 * 1024  # 50MB
    BOOKLET_MAX_OUTPUT_BYTES: int = 100 * 1024 * 1024  # 100MB
    BOOKLET_FETCH_CONCURRENCY: int = 1  # 1 = strictly sequential; raise to fan out
    BOOKLET_SORT_STUDENTS_BY_ORDER: bool = False
    BOOKLET_FOLDER: str = "graduation-booklets"
    BOOKLET_USER_AGENT: str = "Graduation-Creator-Bot/1.0"
    BOOKLET_DEFAULT_PAGE_ORDER: str = "students,messages,speeches"
    GRADUATION_ID_PATTERN: str = r"^[a-zA-Z0-9_-]{1,50}$"

    # ==========================================
    # Collaboration
    # ==========================================
    PRESENCE_HEARTBEAT_SECONDS: float = 60.0
    PRESENCE_STALE_SECONDS: float = 300.0  # 5 minutes
    LOCK_STALE_SECONDS: float = 300.0  # 5 minutes
    LOCK_CLEANUP_SECONDS: float = 120.0  # 2 minutes

    # ==========================================
    # Security
    # ==========================================
    BCRYPT_ROUNDS: int = 12
    STUDENT_PASSWORD_MIN_LENGTH: int = 4
    SITE_PASSWORD_MIN_LENGTH: int = 6

    # ==========================================
    # Maintenance
    # ==========================================
    AUTO_DELETE_AFTER_DAYS: int = 365
    ASSET_SWEEP_BATCH_SIZE: int = 200

    # ==========================================
    # Rate limiting
    # ==========================================
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_DEFAULT: str = "120/minute"
    DOWNLOAD_RATE_LIMIT: str = "10/minute"
    GENERATE_RATE_LIMIT: str = "5/minute"

    # ==========================================
    # HTTP
    # ==========================================
    # CORS (stored as comma-separated string, parsed to list)
    CORS_ORIGINS_STR: str = "http://localhost:3000,http://127.0.0.1:3000"
    MAX_REQUEST_SIZE: int = 1 * 1024 * 1024  # JSON bodies only

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return parse_cors_origins(self.CORS_ORIGINS_STR)

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env that aren't defined in Settings

    # ==========================================
    # Helper Methods
    # ==========================================
    @property
    def default_page_order(self) -> List[str]:
        return parse_page_order(self.BOOKLET_DEFAULT_PAGE_ORDER)

    @property
    def local_storage_path(self) -> Path:
        return Path(self.LOCAL_STORAGE_DIR)

    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    def is_dev_mode(self) -> bool:
        """Check if running in development mode"""
        return self.ENVIRONMENT == "development" or self.DEBUG


# Create settings instance
settings = Settings()
