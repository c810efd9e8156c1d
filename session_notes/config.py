"""Editor configuration loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Notes backend (opaque RPC endpoint)
    notes_backend_url: str = "http://localhost:8080/exec"
    backend_timeout: float = 30.0

    # Redis (save-lock persistence)
    redis_url: str = "redis://localhost:6379"

    # Editor behaviour
    save_lock_seconds: int = 10
    max_pinned_notes: int = 10
    image_placeholder_url: str = "/images/image-unavailable.svg"


settings = Settings()
