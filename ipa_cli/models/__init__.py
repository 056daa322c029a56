"""
Data Models Layer.

This package contains the data structures used throughout the application:
session state, the storefront table, license data and configuration.
"""

from .config import AppConfig
from .license import (
    Authenticated,
    AuthOutcome,
    ChallengeRequired,
    Credential,
    DownloadEntry,
    LicenseGrant,
    LicenseRequest,
    SinfRecord,
)
from .session import Identity, Session, create_guid
from .storefronts import STOREFRONTS, get_storefront_id

__all__ = [
    "STOREFRONTS",
    "AppConfig",
    "AuthOutcome",
    "Authenticated",
    "ChallengeRequired",
    "Credential",
    "DownloadEntry",
    "Identity",
    "LicenseGrant",
    "LicenseRequest",
    "Session",
    "SinfRecord",
    "create_guid",
    "get_storefront_id",
]
