"""Application settings and configuration."""

from decimal import Decimal
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Environment
    env: str = Field(default="dev", alias="ENV")
    timezone: str = Field(default="America/Edmonton", alias="TZ")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database
    postgres_host: str = Field(default="localhost", alias="POSTGRES_HOST")
    postgres_port: int = Field(default=5432, alias="POSTGRES_PORT")
    postgres_db: str = Field(default="daycare", alias="POSTGRES_DB")
    postgres_user: str = Field(default="daycare", alias="POSTGRES_USER")
    postgres_password: str = Field(default="daycare", alias="POSTGRES_PASSWORD")
    database_url_override: Optional[str] = Field(default=None, alias="DATABASE_URL")

    # Security
    secret_key: str = Field(default="change-me", alias="SECRET_KEY")
    access_token_expire_minutes: int = Field(
        default=10080, alias="ACCESS_TOKEN_EXPIRE_MINUTES"
    )

    # Bootstrap admin credentials
    admin_email: str = Field(default="admin@daycare.local", alias="ADMIN_EMAIL")
    admin_password: str = Field(default="admin123", alias="ADMIN_PASSWORD")

    # Uploads
    upload_dir: str = Field(default="uploads", alias="UPLOAD_DIR")
    max_document_mb: int = Field(default=20, alias="MAX_DOCUMENT_MB")
    max_photo_mb: int = Field(default=10, alias="MAX_PHOTO_MB")

    # Billing
    default_tax_rate: Decimal = Field(default=Decimal("0.05"), alias="DEFAULT_TAX_RATE")
    invoice_due_days: int = Field(default=15, alias="INVOICE_DUE_DAYS")

    # Ratio compliance (kids per staff)
    ratio_kids: int = Field(default=4, alias="RATIO_KIDS")
    ratio_staff: int = Field(default=1, alias="RATIO_STAFF")

    # Background jobs
    scheduler_enabled: bool = Field(default=True, alias="SCHEDULER_ENABLED")

    # CORS
    cors_origins: str = Field(default="*", alias="CORS_ORIGINS")

    @property
    def database_url(self) -> str:
        """Get async database URL."""
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
