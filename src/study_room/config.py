"""Application configuration."""

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    api_base_url: str = "http://localhost:8000/api"
    api_access_token: str | None = None
    supabase_url: str
    supabase_key: str
    chat_table: str = "chat_messages"
    identity_path: Path = Path.home() / ".study_room" / "user.json"
    poll_interval_seconds: float = 2.0
    max_polls: int = 20
    request_timeout_seconds: float = 15.0
    beacon_timeout_seconds: float = 2.0
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def session_url(base_url: str, session_id: str, action: str | None = None) -> str:
    """Build a session endpoint URL with the backend's trailing-slash style."""
    url = f"{base_url.rstrip('/')}/sessions/{session_id}/"
    if action:
        url = f"{url}{action}/"
    return url
