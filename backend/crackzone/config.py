"""Application configuration."""
from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # App
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = 5000
    app_debug: bool = True
    log_level: str = "DEBUG"
    uvicorn_workers: int = Field(
        default=1,
        description="Number of Uvicorn workers",
    )

    # Database
    database_url: str = Field(
        ...,
        description="Database connection URL (required)",
    )
    db_pool_size: int = Field(
        default=20,
        description="DB connection pool size (ignored for SQLite)",
    )
    db_max_overflow: int = Field(
        default=10,
        description="Max overflow connections (ignored for SQLite)",
    )
    db_pool_timeout: int = Field(
        default=30,
        description="Pool connection timeout in seconds",
    )
    db_pool_recycle: int = Field(
        default=1800,
        description="Connection recycle time in seconds",
    )
    db_create_tables: bool = Field(
        default=False,
        description="Create missing tables on startup",
    )

    # Cache
    cache_backend: Literal["memory", "redis"] = Field(
        default="memory",
        description="Cache backend: process-local 'memory' or shared 'redis'",
    )
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis connection URL (required when cache_backend=redis)",
    )
    redis_max_connections: int = 50
    redis_socket_timeout: float = 5.0
    redis_socket_connect_timeout: float = 5.0
    redis_health_check_interval: int = 30

    # Cache lifetimes (seconds)
    user_cache_ttl: int = 3600
    user_profile_cache_ttl: int = 300
    verification_code_ttl: int = 1800
    verification_resend_ttl: int = 600
    password_reset_ttl: int = 1800

    # JWT
    jwt_secret_key: str = Field(
        ...,
        description="JWT secret key (required, minimum 32 characters)",
    )
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 60 * 24 * 7
    jwt_refresh_token_expire_days: int = 30

    # CORS
    cors_origins: str = "http://localhost:3000"

    # Frontend (links in emails)
    frontend_url: str = "http://localhost:3000"

    # SMTP
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_from: str = "CrackZone <noreply@crackzone.gg>"
    smtp_use_tls: bool = True
    smtp_timeout: float = 10.0

    # Images
    image_backend: Literal["local", "cloudinary"] = "local"
    media_root: str = "./media"
    media_base_url: str = "http://localhost:5000/media"
    max_image_bytes: int = 10 * 1024 * 1024
    max_match_screenshots: int = 5
    cloudinary_cloud_name: Optional[str] = None
    cloudinary_api_key: Optional[str] = None
    cloudinary_api_secret: Optional[str] = None

    # Rate limiting
    rate_limit_enabled: bool = True

    # WebSocket Connection Limits
    ws_max_connections: int = Field(
        default=2000,
        description="Maximum WebSocket connections per instance",
    )
    ws_max_connections_per_user: int = Field(
        default=5,
        description="Maximum WebSocket connections per user",
    )
    ws_auth_timeout_seconds: float = 5.0

    @field_validator("jwt_secret_key")
    @classmethod
    def validate_jwt_secret_key(cls, v: str) -> str:
        """Validate JWT secret key length."""
        if len(v) < 32:
            raise ValueError(
                "jwt_secret_key must be at least 32 characters long"
            )

        weak_patterns = [
            "change-this",
            "secret",
            "password",
            "12345",
            "qwerty",
            "admin",
        ]
        lower_v = v.lower()
        for pattern in weak_patterns:
            if pattern in lower_v:
                raise ValueError(
                    f"jwt_secret_key contains weak pattern '{pattern}'. "
                    "Use a strong, random secret key."
                )

        return v

    @model_validator(mode="after")
    def validate_backends(self) -> "Settings":
        """Validate that selected backends have their connection settings."""
        if self.cache_backend == "redis" and not self.redis_url:
            raise ValueError("redis_url is required when cache_backend is 'redis'")

        if self.image_backend == "cloudinary":
            missing = [
                name
                for name in (
                    "cloudinary_cloud_name",
                    "cloudinary_api_key",
                    "cloudinary_api_secret",
                )
                if not getattr(self, name)
            ]
            if missing:
                raise ValueError(
                    f"{', '.join(missing)} required when image_backend is 'cloudinary'"
                )

        return self

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Validate settings for production environment."""
        if self.app_env == "production":
            if self.app_debug:
                raise ValueError(
                    "app_debug must be False in production environment"
                )

            origins = [o.strip() for o in self.cors_origins.split(",")]
            if "*" in origins:
                raise ValueError(
                    "CORS wildcard '*' is not allowed in production environment. "
                    "Specify explicit allowed origins."
                )

        return self

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host)

    model_config = {
        "env_file": ".env",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
