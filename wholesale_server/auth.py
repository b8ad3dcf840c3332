"""Authentication session persistence."""

import json
import os
from pathlib import Path
from typing import Optional
import logging

from .models import SessionData

logger = logging.getLogger(__name__)


class AuthManager:
    """Manages authentication state and session persistence."""

    def __init__(self, session_file: Optional[str] = None) -> None:
        """
        Initialize the authentication manager.

        Args:
            session_file: Path to store session data. Defaults to ~/.wholesale_session.json
        """
        if session_file is None:
            session_file = str(Path.home() / ".wholesale_session.json")
        self.session_file = session_file
        self.session: SessionData = self._load_session()

    def _load_session(self) -> SessionData:
        """Load session data from file if it exists."""
        if os.path.exists(self.session_file):
            try:
                with open(self.session_file, "r") as f:
                    data = json.load(f)
                    return SessionData(**data)
            except (json.JSONDecodeError, TypeError, ValueError) as e:
                # If file is corrupted, start fresh
                logger.warning(f"Could not load session: {e}")
        return SessionData()

    def _save_session(self) -> None:
        """Save session data to file."""
        with open(self.session_file, "w") as f:
            json.dump(self.session.model_dump(), f, default=str)
        # Set restrictive permissions on session file
        os.chmod(self.session_file, 0o600)

    def save_session(
        self,
        access_token: str,
        user_id: str,
        user_email: Optional[str] = None,
        refresh_token: Optional[str] = None,
    ) -> None:
        """
        Save authentication session.

        Args:
            access_token: Bearer token returned by sign-in
            user_id: Authenticated user's ID
            user_email: User's email address
            refresh_token: Refresh token returned by sign-in
        """
        self.session = SessionData(
            access_token=access_token,
            refresh_token=refresh_token,
            user_id=user_id,
            user_email=user_email,
            is_authenticated=True,
        )
        self._save_session()
        logger.info(f"Session saved to {self.session_file}")

    def get_session(self) -> SessionData:
        """Get current session data."""
        return self.session

    def clear_session(self) -> None:
        """Clear the current session."""
        self.session = SessionData()
        if os.path.exists(self.session_file):
            os.remove(self.session_file)

    def is_authenticated(self) -> bool:
        """Check if there's an active authenticated session."""
        return self.session.is_authenticated and bool(self.session.access_token)

    def get_access_token(self) -> Optional[str]:
        """Get the bearer token of the current session."""
        return self.session.access_token if self.is_authenticated() else None

    @property
    def user_id(self) -> Optional[str]:
        return self.session.user_id if self.is_authenticated() else None
