"""Application configuration via environment variables.

Uses pydantic-settings to load config from env vars with CIVIC_ prefix.
Every component also takes its collaborators explicitly, so tests and
embedding applications never need to touch the environment.

Learn: pydantic-settings auto-loads from environment, validates types,
provides defaults.
"""

from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings

DEFAULT_SESSION_SECRET = "change-me-in-production"


class Settings(BaseSettings):
    """All portal configuration. Set via CIVIC_* env vars."""

    # REST backend (users, issues, departments collections)
    api_base_url: str = "http://localhost:5000"
    request_timeout_seconds: float = 10.0

    # Session tokens
    session_secret: str = DEFAULT_SESSION_SECRET
    session_algorithm: str = "HS256"
    session_expire_minutes: int = 60 * 24 * 7

    # Password hashing
    bcrypt_rounds: int = 12

    # Local session storage
    storage_backend: Literal["file", "memory", "redis"] = "file"
    storage_path: str = "~/.civicportal/session.json"
    redis_url: str = "redis://localhost:6379/0"
    user_storage_key: str = "civic_user"
    token_storage_key: str = "civic_token"

    # Runtime
    environment: str = "development"
    debug: bool = False

    model_config = {"env_prefix": "CIVIC_"}

    @field_validator("api_base_url")
    @classmethod
    def validate_api_base_url(cls, v: str) -> str:
        s = v.strip()
        if not (s.startswith("http://") or s.startswith("https://")):
            raise ValueError(
                "CIVIC_API_BASE_URL must use http or https (e.g. http://localhost:5000)"
            )
        return s.rstrip("/")

    @field_validator("request_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0 or v > 120:
            raise ValueError(
                "CIVIC_REQUEST_TIMEOUT_SECONDS must be greater than 0 and at most 120"
            )
        return v

    @field_validator("session_expire_minutes")
    @classmethod
    def validate_expire_minutes(cls, v: int) -> int:
        if v < 1 or v > 60 * 24 * 30:
            raise ValueError(
                "CIVIC_SESSION_EXPIRE_MINUTES must be between 1 and 43200 (30 days)"
            )
        return v

    @field_validator("bcrypt_rounds")
    @classmethod
    def validate_bcrypt_rounds(cls, v: int) -> int:
        # bcrypt accepts 4..31; below 10 is only sensible for tests
        if v < 4 or v > 31:
            raise ValueError("CIVIC_BCRYPT_ROUNDS must be between 4 and 31")
        return v

    @model_validator(mode="after")
    def validate_production_settings(self):
        """Ensure sensitive defaults are changed in non-development environments."""
        if (
            self.environment != "development"
            and self.session_secret == DEFAULT_SESSION_SECRET
        ):
            raise ValueError(
                "CIVIC_SESSION_SECRET must be set to a secure value in "
                "non-development environments. Generate one with: "
                'python -c "import secrets; print(secrets.token_urlsafe(32))"'
            )
        return self


# Singleton defaults; components accept explicit overrides
settings = Settings()
