"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class IpaCliError(Exception):
    """Base exception for all application-specific errors."""


class StorefrontError(IpaCliError):
    """
    Raised when the storefront answers a request with a failure response.

    Carries the raw vendor failure code and customer-facing message so callers
    can tell the kind of failure (the subclass) apart from its diagnostics.
    """

    def __init__(
        self,
        message: str,
        failure_type: str | None = None,
        customer_message: str | None = None,
    ):
        super().__init__(message)
        self.failure_type = failure_type
        self.customer_message = customer_message


class InvalidCredentialsError(StorefrontError):
    """Raised when the account email or password is rejected."""


class ServiceUnavailableError(StorefrontError):
    """Raised when the storefront reports a transient failure. Callers may retry."""


class SessionExpiredError(StorefrontError):
    """Raised when the session token was invalidated mid-flow."""


class LicenseUnavailableError(StorefrontError):
    """Raised when the account holds no license and purchasing is not allowed."""


class LicenseAlreadyExistsError(StorefrontError):
    """Raised when a purchase is rejected because the license already exists."""


class UnknownFailureError(StorefrontError):
    """Raised for any vendor failure code without a known mapping."""

    def __init__(self, raw_code: str, customer_message: str | None = None):
        super().__init__(
            f"Unknown storefront failure: {raw_code}",
            failure_type=raw_code,
            customer_message=customer_message,
        )
        self.raw_code = raw_code


class SessionUnavailableError(IpaCliError):
    """Raised when a protocol call is made on a session that is not signed in."""


class UnknownStorefrontError(IpaCliError, ValueError):
    """Raised when a country code is not part of the storefront table."""


class DownloadUnavailableError(IpaCliError):
    """Raised when a license grant carries no downloadable entry."""


class ConfigurationError(IpaCliError):
    """Raised for issues related to configuration or session file loading."""


class PayloadError(IpaCliError):
    """Base exception for archives that cannot be patched."""


class PayloadFormatError(PayloadError):
    """Raised when the archive or an embedded property list cannot be decoded."""


class PayloadBundleNameUnavailableError(PayloadError):
    """Raised when the archive has no top-level application descriptor."""


class PayloadSinfUnavailableError(PayloadError):
    """Raised when a sinf record has no matching manifest path."""


class PayloadInfoUnavailableError(PayloadError):
    """Raised when the executable name needed for a sinf path is unknown."""


class PayloadIntegrityError(PayloadError):
    """Raised when a downloaded archive fails its checksum."""
