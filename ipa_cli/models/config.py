"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from pydantic import BaseModel, Field, field_validator

from .session import DEFAULT_GUID_SEED
from .storefronts import is_supported_country


class AppConfig(BaseModel):
    """A validated configuration model for the application."""

    # Account
    email: str = ""
    country: str = "US"

    # License Settings
    allow_purchase: bool = False

    # Download Settings
    output_dir: str = "."
    verify_md5: bool = True

    # Device emulation
    guid_seed: int = DEFAULT_GUID_SEED

    # Internal fields not loaded from INI file
    config_path: str = Field(..., repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("country")
    @classmethod
    def validate_country(cls, v: str) -> str:
        """Ensures the country is a known storefront and normalizes its case."""
        if not is_supported_country(v):
            raise ValueError(
                f"Unknown country code '{v}'. Use a two-letter storefront code."
            )
        return v.upper()

    @field_validator("guid_seed")
    @classmethod
    def validate_guid_seed(cls, v: int) -> int:
        """Ensures the machine identifier sampling range is not empty."""
        if v < 1:
            raise ValueError("guid_seed must be a positive integer.")
        return v

    @field_validator("output_dir")
    @classmethod
    def validate_output_dir(cls, v: str) -> str:
        if not v:
            raise ValueError("Output directory cannot be empty.")
        return v

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
