"""Application configuration."""
from collections import Counter
from functools import lru_cache
import math

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    app_name: str = "Switchkeeper"
    app_base_url: str = "https://switchkeeper.app"
    debug: bool = False
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite:///./data/switchkeeper.db"

    # Session tokens issued by the identity provider
    secret_key: str
    algorithm: str = "HS256"

    # Scheduler trigger
    cron_secret: str | None = None

    # Outbound email
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: str | None = None
    smtp_use_tls: bool = True
    smtp_timeout: int = 30
    email_from: str | None = None
    email_reply_to: str | None = None
    message_stream: str = "alerts"

    # Evaluator
    failure_sample_limit: int = 25
    owner_reminders_enabled: bool = True
    complete_on_trigger: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @field_validator("secret_key")
    @classmethod
    def validate_secret_key(cls, value: str) -> str:
        """Fail closed if SECRET_KEY is weak or placeholder quality."""
        if not value:
            raise ValueError("SECRET_KEY must be set.")

        if len(value) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")

        weak_values = {"changeme", "changeme-in-production", "secret", "password", "test"}
        lowered = value.lower()
        if lowered in weak_values or "changeme" in lowered:
            raise ValueError("SECRET_KEY must not be a placeholder value.")

        counts = Counter(value)
        entropy_per_char = -sum((count / len(value)) * math.log2(count / len(value)) for count in counts.values())
        estimated_entropy_bits = entropy_per_char * len(value)
        if estimated_entropy_bits < 100:
            raise ValueError("SECRET_KEY entropy is too low; use a cryptographically random value.")

        return value

    @field_validator("failure_sample_limit")
    @classmethod
    def validate_failure_sample_limit(cls, value: int) -> int:
        """Keep run summaries bounded."""
        if value < 0:
            raise ValueError("FAILURE_SAMPLE_LIMIT must not be negative.")
        return value

    @property
    def email_configured(self) -> bool:
        """Whether every credential the outbound transport needs is present."""
        return bool(self.smtp_host and self.email_from and self.email_reply_to)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
