import os
from functools import lru_cache

from typing import Literal, Optional

from pydantic import Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_required_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


class Settings(BaseSettings):
    """Strongly typed configuration sourced from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = Field(default="AI Maturity Assessment API")
    environment: Literal["dev", "test", "staging", "prod"] = Field(default="dev")
    debug: bool = Field(default=False)
    database_url: str = Field(default="sqlite+pysqlite:///./maturity.db")

    run_startup_seed: bool = Field(default=True)
    run_startup_ddl: bool = Field(default=True)

    # Database connection pooling settings
    db_pool_size: int = Field(default=5, ge=1, le=50, description="Number of connections to keep in the pool")
    db_max_overflow: int = Field(default=10, ge=0, le=100, description="Max connections to create beyond pool_size")
    db_pool_timeout: int = Field(default=30, ge=1, le=300, description="Seconds to wait for connection from pool")
    db_pool_recycle: int = Field(default=3600, ge=300, description="Seconds before recycling a connection")
    db_pool_pre_ping: bool = Field(default=True, description="Enable connection health checks before use")

    # Admin gate
    admin_password: str = Field(default="changeme123", min_length=1)
    admin_password_hash: Optional[str] = Field(default=None, description="passlib hash; overrides admin_password")
    jwt_secret_key: str = Field(default_factory=lambda: _load_required_env("JWT_SECRET_KEY"), min_length=8, description="Symmetric key for HS256 admin tokens")
    jwt_algorithm: Literal["HS256"] = Field(default="HS256")
    jwt_issuer: str = Field(default="maturity-api")
    jwt_audience: str = Field(default="maturity-admin")
    admin_token_expire_minutes: int = Field(default=120, ge=1)

    # Scoring and respondent input
    weight_tolerance: float = Field(default=0.001, gt=0, lt=0.1)
    answer_min: int = Field(default=0, ge=0)
    answer_max: int = Field(default=5, ge=1)
    data_retention_days: int = Field(default=730, ge=1)
    access_token_bytes: int = Field(default=32, ge=16, description="Random bytes behind each assessment token")

    # Report delivery (PDF + email)
    delivery_mode: Literal["background", "inline", "disabled"] = Field(default="background")
    delivery_max_attempts: int = Field(default=3, ge=1, le=10)
    delivery_backoff_seconds: float = Field(default=5.0, ge=0)
    delivery_backoff_factor: float = Field(default=2.0, ge=1.0)
    smtp_host: Optional[str] = Field(default=None)
    smtp_port: int = Field(default=587, ge=1, le=65535)
    smtp_user: Optional[str] = Field(default=None)
    smtp_password: Optional[str] = Field(default=None)
    smtp_from: Optional[str] = Field(default=None)
    smtp_timeout_seconds: float = Field(default=15.0, gt=0)
    email_subject: str = Field(default="Il tuo AI Maturity Assessment - Report Completo")

    @field_validator("smtp_host", "smtp_user", "smtp_password", "smtp_from", "admin_password_hash", mode="before")
    @classmethod
    def _normalize_blank(cls, value: object) -> Optional[str]:
        if value in (None, "", b""):
            return None
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        raise TypeError("Expected a string value")

    @field_validator("answer_max")
    @classmethod
    def _answer_range(cls, value: int, info) -> int:
        lower = info.data.get("answer_min", 0)
        if value <= lower:
            raise ValueError("ANSWER_MAX must be greater than ANSWER_MIN")
        return value

    @computed_field(return_type=bool)
    def is_production(self) -> bool:
        return self.environment == "prod"

    @computed_field(return_type=bool)
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_password)


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
