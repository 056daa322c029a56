"""
Storage Layer.

This package handles all data persistence: the configuration file and the
saved account session.
"""

from .config_manager import ConfigManager
from .session_store import SessionStore

__all__ = ["ConfigManager", "SessionStore"]
