"""Runtime configuration passed explicitly into the gateway, engine and store."""

import os

from pydantic import BaseModel, Field

from interview_coach.core.constants import (
    DEFAULT_DATABASE_URL,
    DEFAULT_LLM_BASE_DELAY,
    DEFAULT_LLM_MAX_DELAY,
    DEFAULT_LLM_MAX_RETRIES,
    DEFAULT_LLM_TIMEOUT,
    DEFAULT_MAX_CONFLICT_RETRIES,
    DEFAULT_MODEL_ID,
)


class GatewaySettings(BaseModel):
    """Retry and timeout budget for calls to the generative model."""

    max_retries: int = Field(default=DEFAULT_LLM_MAX_RETRIES, ge=0, le=5)
    base_delay: float = Field(default=DEFAULT_LLM_BASE_DELAY, ge=0)
    max_delay: float = Field(default=DEFAULT_LLM_MAX_DELAY, ge=0)
    request_timeout_seconds: float = Field(default=DEFAULT_LLM_TIMEOUT, gt=0)


class EngineSettings(BaseModel):
    max_conflict_retries: int = Field(default=DEFAULT_MAX_CONFLICT_RETRIES, ge=0)


class Settings(BaseModel):
    database_url: str = DEFAULT_DATABASE_URL
    model_id: str = DEFAULT_MODEL_ID
    jwt_secret: str | None = None
    jwt_algorithm: str = "HS256"
    allowed_origins: list[str] = ["http://localhost:8080", "http://127.0.0.1:8080"]
    gateway: GatewaySettings = Field(default_factory=GatewaySettings)
    engine: EngineSettings = Field(default_factory=EngineSettings)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from `INTERVIEW_COACH_*` environment variables."""
        gateway = GatewaySettings(
            max_retries=int(os.getenv("INTERVIEW_COACH_LLM_MAX_RETRIES", DEFAULT_LLM_MAX_RETRIES)),
            request_timeout_seconds=float(os.getenv("INTERVIEW_COACH_LLM_TIMEOUT", DEFAULT_LLM_TIMEOUT)),
        )
        origins = os.getenv("ALLOWED_ORIGINS")
        settings = cls(
            database_url=os.getenv("INTERVIEW_COACH_DATABASE_URL", DEFAULT_DATABASE_URL),
            model_id=os.getenv("INTERVIEW_COACH_MODEL", DEFAULT_MODEL_ID),
            jwt_secret=os.getenv("INTERVIEW_COACH_JWT_SECRET"),
            gateway=gateway,
        )
        if origins:
            settings.allowed_origins = [origin.strip() for origin in origins.split(",") if origin.strip()]
        return settings
