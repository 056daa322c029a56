"""
Data models for credentials, authentication outcomes and license grants.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Union

from pydantic import BaseModel, Field

from ipa_cli.exceptions import DownloadUnavailableError

from .session import Identity
from .storefronts import get_storefront_id


@dataclass(frozen=True)
class Credential:
    """Account credential for one sign-in attempt. Never persisted."""

    email: str
    password: str = field(repr=False)
    code: str = field(default="", repr=False)

    @property
    def has_code(self) -> bool:
        return bool(self.code)


@dataclass(frozen=True)
class ChallengeRequired:
    """The server asked for a second-factor code before completing sign-in."""


@dataclass(frozen=True)
class Authenticated:
    """Sign-in completed and the session now carries `identity`."""

    identity: Identity
    account_name: Optional[str] = None
    display_name: Optional[str] = None


AuthOutcome = Union[ChallengeRequired, Authenticated]


@dataclass(frozen=True)
class LicenseRequest:
    """
    Identifies a package to license in a given storefront.

    The country code is checked against the storefront table on construction,
    so an unknown code never reaches the network.
    """

    package_id: int
    version_id: str = "0"
    country: str = "US"
    is_arcade: bool = False

    def __post_init__(self) -> None:
        get_storefront_id(self.country)

    @property
    def storefront_id(self) -> str:
        return get_storefront_id(self.country)


class SinfRecord(BaseModel):
    """A DRM record the platform checks at install time."""

    id: int
    sinf: bytes


class DownloadEntry(BaseModel):
    """One downloadable item of a license grant."""

    url: str = Field(alias="URL")
    md5: str = ""
    sinfs: list[SinfRecord] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    class Config:
        """Pydantic model configuration."""

        populate_by_name = True
        extra = "ignore"

    @property
    def bundle_id(self) -> str:
        return str(self.metadata.get("softwareVersionBundleId", ""))

    @property
    def display_name(self) -> str:
        return str(
            self.metadata.get("bundleDisplayName")
            or self.metadata.get("itemName")
            or self.bundle_id
        )

    @property
    def version(self) -> str:
        return str(self.metadata.get("bundleShortVersionString", ""))


class LicenseGrant(BaseModel):
    """The license metadata returned by a successful permit."""

    entries: list[DownloadEntry] = Field(default_factory=list)
    metrics: dict[str, Any] = Field(default_factory=dict)

    @property
    def primary_entry(self) -> DownloadEntry:
        """
        The entry consumed by the payload patcher.

        Raises:
            DownloadUnavailableError: If the grant carries no entries.
        """
        if not self.entries:
            raise DownloadUnavailableError("No downloadable content was found.")
        return self.entries[0]
