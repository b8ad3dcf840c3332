"""Configuration loaded from environment variables."""

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from .models import AuthCredentials


class Settings(BaseModel):
    """Runtime settings for the wholesale servers."""

    supabase_url: str = Field(description="Base URL of the Supabase project")
    supabase_anon_key: str = Field(description="Anon (public) API key")
    email: Optional[str] = None
    password: Optional[str] = None
    session_file: str = Field(default_factory=lambda: str(Path.home() / ".wholesale_session.json"))
    storage_file: str = Field(default_factory=lambda: str(Path.home() / ".wholesale_storage.json"))
    confirmation_seconds: float = Field(default=3.0, ge=0)
    log_level: str = "INFO"

    @property
    def credentials(self) -> Optional[AuthCredentials]:
        """Credentials configured for auto-login, if both are set."""
        if self.email and self.password:
            return AuthCredentials(email=self.email, password=self.password)
        return None


def load_settings() -> Settings:
    """
    Build settings from the process environment.

    Raises:
        ValueError: If SUPABASE_URL or SUPABASE_ANON_KEY is not set
    """
    url = os.environ.get("SUPABASE_URL")
    key = os.environ.get("SUPABASE_ANON_KEY")
    if not url or not key:
        raise ValueError("SUPABASE_URL and SUPABASE_ANON_KEY must be set")

    values: dict[str, object] = {
        "supabase_url": url,
        "supabase_anon_key": key,
        "email": os.environ.get("WHOLESALE_EMAIL"),
        "password": os.environ.get("WHOLESALE_PASSWORD"),
        "log_level": os.environ.get("WHOLESALE_LOG_LEVEL", "INFO").upper(),
    }

    optional = {
        "session_file": "WHOLESALE_SESSION_FILE",
        "storage_file": "WHOLESALE_STORAGE_FILE",
        "confirmation_seconds": "WHOLESALE_CONFIRMATION_SECONDS",
    }
    for field, env_name in optional.items():
        value = os.environ.get(env_name)
        if value:
            values[field] = value

    return Settings(**values)
