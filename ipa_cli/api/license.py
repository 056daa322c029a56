"""
Drives license acquisition: permit, purchase when allowed, then permit again.
"""

import logging
from typing import TYPE_CHECKING, Any

from ipa_cli.exceptions import (
    LicenseAlreadyExistsError,
    LicenseUnavailableError,
    ServiceUnavailableError,
    SessionExpiredError,
    StorefrontError,
    UnknownFailureError,
)
from ipa_cli.models.license import LicenseGrant, LicenseRequest

from .responses import FailureResponse, decode_permit, decode_purchase

if TYPE_CHECKING:
    from .client import StorefrontClient

log = logging.getLogger(__name__)

PERMIT_PATH = "WebObjects/MZFinance.woa/wa/volumeStoreDownloadProduct"
PURCHASE_PATH = "WebObjects/MZBuy.woa/wa/buyProduct"

FAILURE_PASSWORD_TOKEN_EXPIRED = "2034"
FAILURE_LICENSE_NOT_FOUND = "9610"
FAILURE_TEMPORARILY_UNAVAILABLE = "2059"

# Purchase status reported for a concurrent or duplicate purchase
PURCHASE_STATUS_ALREADY_EXISTS = 500

PRICING_ARCADE = "GAME"
PRICING_STANDARD = "STDQ"


class LicenseNegotiator:
    """
    Requests licenses for packages on behalf of an authenticated session.

    `acquire_license` runs a two-state machine: Permitting, optionally
    Purchasing, then Permitting once more. The second permit is never
    followed by another purchase, which bounds the flow when the server's
    post-purchase state is inconsistent.
    """

    def __init__(self, api_client: "StorefrontClient"):
        self._api_client = api_client

    def _identity_headers(self) -> dict[str, str]:
        identity = self._api_client.session.require_identity()
        return {
            "iCloud-DSID": identity.person_id,
            "X-Dsid": identity.person_id,
        }

    async def acquire_license(
        self, request: LicenseRequest, allow_purchase: bool = False
    ) -> LicenseGrant:
        """
        Obtains the license metadata for a package.

        Args:
            request: The package, version and storefront to license.
            allow_purchase: Whether a missing license may be purchased.

        Returns:
            The license grant from the first successful permit.

        Raises:
            SessionUnavailableError: If the session is not signed in.
            LicenseUnavailableError: If no license exists and purchasing is
                not allowed.
            LicenseAlreadyExistsError: If the purchase step reports a
                duplicate purchase.
            SessionExpiredError: If the session token expired. The session
                must be signed in again and the whole flow restarted.
        """
        try:
            return await self.permit(request)
        except LicenseUnavailableError:
            if not allow_purchase:
                raise
            log.debug(f"No license for {request.package_id}, purchasing.")

        await self.purchase(request)

        log.debug(f"Purchased {request.package_id}, retrying permit.")
        return await self.permit(request)

    async def permit(self, request: LicenseRequest) -> LicenseGrant:
        """
        Asks for the license of a package without charging anything.

        Raises:
            SessionUnavailableError: If the session is not signed in.
            SessionExpiredError: If the session token expired.
            LicenseUnavailableError: If the account holds no license.
            UnknownFailureError: For any other failure code.
        """
        headers = self._identity_headers()
        session = self._api_client.session

        data = await self._api_client.post_plist(
            self._api_client.AUTH_WITHOUT_CODE_URL + PERMIT_PATH,
            {
                "creditDisplay": "",
                "guid": session.machine_id,
                "salableAdamId": request.package_id,
                "appExtVrsId": request.version_id,
            },
            headers=headers,
            params={"guid": session.machine_id},
        )

        result = decode_permit(data)
        if isinstance(result, FailureResponse):
            raise self._map_permit_failure(result)

        log.debug(
            f"Permit for {request.package_id} returned {len(result.entries)} entries."
        )
        return result

    async def purchase(self, request: LicenseRequest) -> dict[str, Any]:
        """
        Creates or re-affirms ownership of a package in the request storefront.

        Returns:
            The purchase metrics reported by the server.

        Raises:
            SessionUnavailableError: If the session is not signed in.
            LicenseAlreadyExistsError: If a duplicate purchase was detected.
            ServiceUnavailableError: If the storefront is temporarily down.
            SessionExpiredError: If the session token expired.
            UnknownFailureError: For any other failure code.
        """
        session = self._api_client.session
        headers = {
            **self._identity_headers(),
            "X-Apple-Store-Front": request.storefront_id,
            "X-Token": session.require_identity().token,
        }

        data = await self._api_client.post_plist(
            self._api_client.BUY_URL + PURCHASE_PATH,
            {
                "appExtVrsId": "0",
                "hasAskedToFulfillPreorder": "true",
                "buyWithoutAuthorization": "true",
                "hasDoneAgeCheck": "true",
                "guid": session.machine_id,
                "needDiv": "0",
                "origPage": f"Software-{request.package_id}",
                "origPageLocation": "Buy",
                "price": "0",
                "pricingParameters": (
                    PRICING_ARCADE if request.is_arcade else PRICING_STANDARD
                ),
                "productType": "C",
                "salableAdamId": request.package_id,
            },
            headers=headers,
        )

        result = decode_purchase(data)
        if isinstance(result, FailureResponse):
            raise self._map_purchase_failure(result)

        return result.metrics

    def _map_permit_failure(self, failure: FailureResponse) -> StorefrontError:
        if failure.failure_type == FAILURE_PASSWORD_TOKEN_EXPIRED:
            self._api_client.session.invalidate()
            return SessionExpiredError(
                "The session has expired. Sign in again.",
                failure.failure_type,
                failure.customer_message,
            )
        if failure.failure_type == FAILURE_LICENSE_NOT_FOUND:
            return LicenseUnavailableError(
                "The account does not hold a license for this package.",
                failure.failure_type,
                failure.customer_message,
            )
        return UnknownFailureError(failure.failure_type or "", failure.customer_message)

    def _map_purchase_failure(self, failure: FailureResponse) -> StorefrontError:
        if failure.status == PURCHASE_STATUS_ALREADY_EXISTS:
            return LicenseAlreadyExistsError(
                "A license for this package already exists.",
                failure.failure_type,
                failure.customer_message,
            )
        if failure.failure_type == FAILURE_TEMPORARILY_UNAVAILABLE:
            return ServiceUnavailableError(
                "The storefront is temporarily unavailable.",
                failure.failure_type,
                failure.customer_message,
            )
        if failure.failure_type == FAILURE_PASSWORD_TOKEN_EXPIRED:
            self._api_client.session.invalidate()
            return SessionExpiredError(
                "The session has expired. Sign in again.",
                failure.failure_type,
                failure.customer_message,
            )
        return UnknownFailureError(
            f"{failure.failure_type or ''}:{failure.status}", failure.customer_message
        )
