"""
Handles sign-in with the storefront, including the second-factor round trip.
"""

import logging
from typing import TYPE_CHECKING

from ipa_cli.exceptions import (
    InvalidCredentialsError,
    ServiceUnavailableError,
    StorefrontError,
    UnknownFailureError,
)
from ipa_cli.models.license import (
    Authenticated,
    AuthOutcome,
    ChallengeRequired,
    Credential,
)
from ipa_cli.models.session import Identity

from .responses import FailureResponse, decode_sign_in

if TYPE_CHECKING:
    from .client import StorefrontClient

log = logging.getLogger(__name__)

AUTHENTICATE_PATH = "WebObjects/MZFinance.woa/wa/authenticate"

FAILURE_INVALID_CREDENTIALS = "-5000"
FAILURE_TEMPORARILY_UNAVAILABLE = "2059"


class StorefrontAuthenticator:
    """
    Manages the sign-in flow for the storefront client.
    """

    def __init__(self, api_client: "StorefrontClient"):
        """
        Initializes the authenticator.

        Args:
            api_client: A reference to the main StorefrontClient instance.
        """
        self._api_client = api_client

    async def authenticate(self, credential: Credential) -> AuthOutcome:
        """
        Signs in with an account credential.

        The first call is made without a second-factor code. When the server
        asks for one, `ChallengeRequired` is returned and the caller repeats
        the call with `credential.code` filled in. Cookies set by the server
        stay in the session between the two calls.

        Args:
            credential: The account email, password and optional code.

        Returns:
            `Authenticated` with the new identity, or `ChallengeRequired`.

        Raises:
            InvalidCredentialsError: If the email or password is wrong.
            ServiceUnavailableError: If the storefront is temporarily down.
            UnknownFailureError: For any other failure code.
        """
        session = self._api_client.session
        log.debug(
            f"Signing in as {credential.email} "
            f"({'with' if credential.has_code else 'without'} second factor)."
        )

        # The server tells first-factor and completed-factor flows apart by host
        base_url = (
            self._api_client.AUTH_WITH_CODE_URL
            if credential.has_code
            else self._api_client.AUTH_WITHOUT_CODE_URL
        )

        data = await self._api_client.post_plist(
            base_url + AUTHENTICATE_PATH,
            {
                "appleId": credential.email,
                "attempt": 2 if credential.has_code else 4,
                "createSession": "true",
                "guid": session.machine_id,
                "password": f"{credential.password}{credential.code}",
                "rmp": "0",
                "why": "signIn",
            },
            params={"guid": session.machine_id},
            content_type=self._api_client.FORM_CONTENT_TYPE,
        )

        result = decode_sign_in(data)

        if isinstance(result, FailureResponse):
            if result.is_challenge:
                log.debug("Storefront requested a second-factor code.")
                return ChallengeRequired()
            raise self._map_failure(result)

        identity = Identity(person_id=result.person_id, token=result.token)
        session.sign_in(identity)
        log.debug(
            f"Authenticated as: {result.account_name or credential.email}"
        )

        return Authenticated(
            identity=identity,
            account_name=result.account_name,
            display_name=result.display_name,
        )

    @staticmethod
    def _map_failure(failure: FailureResponse) -> StorefrontError:
        if failure.failure_type == FAILURE_INVALID_CREDENTIALS:
            return InvalidCredentialsError(
                "Invalid account email or password.",
                failure.failure_type,
                failure.customer_message,
            )
        if failure.failure_type == FAILURE_TEMPORARILY_UNAVAILABLE:
            return ServiceUnavailableError(
                "The storefront is temporarily unavailable.",
                failure.failure_type,
                failure.customer_message,
            )
        return UnknownFailureError(failure.failure_type or "", failure.customer_message)
