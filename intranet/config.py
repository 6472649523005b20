"""Application configuration using Pydantic settings."""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from ``INTRANET_*`` environment variables or ``.env``."""

    model_config = SettingsConfigDict(
        env_prefix="INTRANET_",
        env_file=".env",
        extra="ignore",
    )

    # Runtime
    environment: str = "production"
    log_level: str = "INFO"
    api_prefix: str = "/api/v1"
    cors_origins: List[str] = Field(default_factory=list)

    # Database
    database_url: str = "sqlite:///./intranet.db"

    # Authentication
    jwt_secret: str = "CHANGE_THIS_SECRET_IN_REAL_DEPLOYMENTS"
    jwt_algorithm: str = "HS256"
    jwt_issuer: str = "intranet-portal"
    jwt_audience: str = "intranet-portal-clients"
    access_token_expire_minutes: int = 60
    refresh_token_expire_days: int = 7
    refresh_cookie_name: str = "refreshToken"
    refresh_cookie_secure: bool = True
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    # File uploads
    upload_dir: str = "./uploads"
    max_upload_bytes: int = 104857600  # 100MB

    # Rate limiting
    rate_limit_enabled: bool = True
    rate_limit_default: str = "120/minute"
    login_rate_limit: str = "10/minute"

    # First admin account, created at startup when missing
    bootstrap_admin_username: Optional[str] = None
    bootstrap_admin_password: Optional[str] = None
    bootstrap_admin_email: Optional[str] = None

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    return Settings()
