"""
Storefront API Layer.

This package handles all communication with the storefront: transport,
sign-in, license negotiation and response decoding.
"""

from .auth import StorefrontAuthenticator
from .client import StorefrontClient, TransportResponse
from .license import LicenseNegotiator

__all__ = [
    "LicenseNegotiator",
    "StorefrontAuthenticator",
    "StorefrontClient",
    "TransportResponse",
]
