"""
Application configuration settings.
"""
import ast
from typing import List, Optional
from pydantic import validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Application
    PROJECT_NAME: str = "KneeCare Backend API"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Security
    SECRET_KEY: str = "kneecare-development-secret-key-change-me-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 7 * 24 * 60  # 7 days
    PASSWORD_BCRYPT_ROUNDS: int = 12
    ADMIN_REGISTRATION_SECRET: str = "admin123secret"

    # Database
    DATABASE_URL: str = "sqlite:///./kneecare.db"

    # CORS
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8000"]

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_WINDOW_SECONDS: int = 15 * 60
    RATE_LIMIT_MAX_REQUESTS: int = 100

    # File Storage
    UPLOAD_DIR: str = "./uploads"
    MAX_UPLOAD_SIZE: int = 10 * 1024 * 1024  # 10MB
    USE_S3: bool = False
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    AWS_REGION: str = "us-east-1"
    AWS_S3_BUCKET: Optional[str] = None

    # Redis/Celery
    REDIS_URL: str = "redis://localhost:6379/0"
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"

    # Logging
    LOG_FILE: str = "./logs/app.log"
    LOG_MAX_SIZE: int = 10 * 1024 * 1024  # 10MB
    LOG_BACKUP_COUNT: int = 5

    # Audit retention
    AUDIT_LOG_RETENTION_DAYS: int = 730  # 2 years

    # Development
    SHOW_DOCS: bool = True
    SEED_REFERENCE_DATA: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = True

    @validator('ALLOWED_ORIGINS', pre=True)
    def parse_allowed_origins(cls, v):
        """Parse allowed origins from string or list."""
        if isinstance(v, str):
            if v.startswith('[') and v.endswith(']'):
                return ast.literal_eval(v)
            return [origin.strip() for origin in v.split(',') if origin.strip()]
        return v

    @validator('SECRET_KEY')
    def validate_secret_key(cls, v):
        """Validate secret key length."""
        if len(v) < 32:
            raise ValueError('SECRET_KEY must be at least 32 characters long')
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.DEBUG

    @property
    def database_url_safe(self) -> str:
        """Get safe database URL for logging (hides password)."""
        if "@" in self.DATABASE_URL:
            scheme, rest = self.DATABASE_URL.split("://", 1)
            return f"{scheme}://***@{rest.split('@', 1)[1]}"
        return self.DATABASE_URL


# Default settings instance
settings = Settings()
