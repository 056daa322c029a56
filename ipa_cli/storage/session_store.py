"""
Persists the account session between runs as a JSON file.
"""

import json
import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Optional

from ipa_cli.exceptions import ConfigurationError
from ipa_cli.models.session import Session, create_guid

log = logging.getLogger(__name__)


class SessionStore:
    """
    Reads and writes the serialized session.

    The file holds the session token and cookies but never the password.
    """

    def __init__(self, session_file_path: Path):
        self.session_file_path = session_file_path

    def exists(self) -> bool:
        return self.session_file_path.is_file()

    def load(self, guid_factory: Callable[[], str] = create_guid) -> Optional[Session]:
        """
        Restores the saved session.

        Returns:
            The session, or None if no session has been saved yet.

        Raises:
            ConfigurationError: If the session file exists but is unreadable.
        """
        if not self.exists():
            return None

        try:
            with open(self.session_file_path, encoding="utf-8") as f:
                data = json.load(f)
            return Session.from_dict(data, guid_factory=guid_factory)
        except (json.JSONDecodeError, OSError, KeyError, TypeError, AttributeError) as e:
            raise ConfigurationError(
                f"Session file '{self.session_file_path}' is corrupt: {e}. "
                "Run 'ipa-cli login' again."
            ) from e

    def save(self, session: Session) -> None:
        """Writes the session, readable by the current user only."""
        try:
            self.session_file_path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(
                self.session_file_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600
            )
            with open(fd, "w", encoding="utf-8") as f:
                json.dump(session.to_dict(), f, indent=2)
        except OSError as e:
            raise ConfigurationError(f"Failed to save session file: {e}") from e
        log.debug(f"Session saved to '{self.session_file_path}'.")

    def clear(self) -> bool:
        """Removes the saved session. Returns True if a file was removed."""
        try:
            self.session_file_path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            log.error(f"Failed to remove session file: {e}")
            return False
