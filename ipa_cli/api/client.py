"""
Async transport for the storefront endpoints, bound to one account session.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

import aiohttp
from rich.progress import Progress, TaskID

from ipa_cli.exceptions import PayloadFormatError, StorefrontError
from ipa_cli.models.session import Session
from ipa_cli.models.storefronts import get_storefront_id
from ipa_cli.payload import plist_codec

from .auth import StorefrontAuthenticator
from .license import LicenseNegotiator

log = logging.getLogger(__name__)


@dataclass
class TransportResponse:
    """The status and raw body of a completed request."""

    status: int
    body: bytes


class StorefrontClient:
    """
    Async client for the storefront's private endpoints and public catalog.

    All requests share the cookie jar of `session`, so cookies set by the
    server during sign-in are sent again on later license requests. Like the
    session itself, a client must not be used by two flows at once.
    """

    CATALOG_URL = "https://itunes.apple.com/"
    BUY_URL = "https://buy.itunes.apple.com/"
    AUTH_WITH_CODE_URL = "https://p25-buy.itunes.apple.com/"
    AUTH_WITHOUT_CODE_URL = "https://p71-buy.itunes.apple.com/"

    USER_AGENT = (
        "Configurator/2.15 (Macintosh; OperatingSystem X 11.0.0; 16G29) "
        "AppleWebKit/2603.3.8"
    )
    PLIST_CONTENT_TYPE = "application/x-apple-plist"
    FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

    DOWNLOAD_CHUNK_SIZE = 262144  # 256 KB

    def __init__(self, session: Session, user_agent: str = USER_AGENT):
        """
        Initializes the client.

        Args:
            session: The account session whose cookies and identity are used.
            user_agent: The User-Agent sent with every request.
        """
        self.session = session
        self.user_agent = user_agent

        self._http: Optional[aiohttp.ClientSession] = None
        self._authenticator = StorefrontAuthenticator(self)
        self._negotiator = LicenseNegotiator(self)

    @property
    def authenticator(self) -> StorefrontAuthenticator:
        """Provides access to the sign-in protocol."""
        return self._authenticator

    @property
    def licenses(self) -> LicenseNegotiator:
        """Provides access to the permit/purchase protocol."""
        return self._negotiator

    async def __aenter__(self) -> "StorefrontClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _initialize_session(self) -> aiohttp.ClientSession:
        """Ensures an active aiohttp session bound to the account cookie jar."""
        if self._http is None or self._http.closed:
            self._http = aiohttp.ClientSession(
                cookie_jar=self.session.cookie_jar,
                headers={"User-Agent": self.user_agent},
                timeout=aiohttp.ClientTimeout(total=None, sock_connect=30),
            )
        return self._http

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._http and not self._http.closed:
            await self._http.close()

    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[dict[str, str]] = None,
        params: Optional[dict[str, Any]] = None,
        data: Optional[bytes] = None,
    ) -> TransportResponse:
        """Issues a single request and returns its status and body."""
        http = await self._initialize_session()
        log.debug(f"{method} {url}")
        async with http.request(
            method, url, headers=headers, params=params, data=data
        ) as r:
            body = await r.read()
            return TransportResponse(r.status, body)

    async def post_plist(
        self,
        url: str,
        payload: dict[str, Any],
        headers: Optional[dict[str, str]] = None,
        params: Optional[dict[str, Any]] = None,
        content_type: str = PLIST_CONTENT_TYPE,
    ) -> dict[str, Any]:
        """
        Posts an XML property list and decodes the property-list reply.

        Raises:
            StorefrontError: If the reply is not a property-list dictionary.
        """
        request_headers = {"Content-Type": content_type, **(headers or {})}
        response = await self.request(
            "POST",
            url,
            headers=request_headers,
            params=params,
            data=plist_codec.encode_xml(payload),
        )

        try:
            decoded = plist_codec.decode(response.body)
        except PayloadFormatError as e:
            raise StorefrontError(
                f"Unexpected reply from {url} (HTTP {response.status})."
            ) from e

        if not isinstance(decoded, dict):
            raise StorefrontError(f"Unexpected reply shape from {url}.")
        return decoded

    async def _catalog_call(self, endpoint: str, **params: Any) -> list[dict[str, Any]]:
        response = await self.request(
            "GET", self.CATALOG_URL + endpoint, params=params
        )
        if response.status >= 400:
            raise StorefrontError(
                f"Catalog request '{endpoint}' failed with HTTP {response.status}."
            )
        try:
            data = json.loads(response.body)
        except ValueError as e:
            raise StorefrontError(f"Catalog returned invalid JSON: {e}") from e
        return data.get("results", [])

    # Public catalog methods
    async def lookup(
        self, country: str, bundle_id: str, limit: int = 1
    ) -> list[dict[str, Any]]:
        """Looks up packages by bundle identifier in a country's catalog."""
        get_storefront_id(country)
        return await self._catalog_call(
            "lookup",
            entity="software,iPadSoftware",
            limit=str(limit),
            media="software",
            bundleId=bundle_id,
            country=country.upper(),
        )

    async def search(
        self, country: str, term: str, limit: int = 1
    ) -> list[dict[str, Any]]:
        """Searches a country's catalog by keyword."""
        get_storefront_id(country)
        return await self._catalog_call(
            "search",
            entity="software,iPadSoftware",
            limit=str(limit),
            media="software",
            term=term,
            country=country.upper(),
        )

    async def fetch_payload(
        self,
        url: str,
        progress: Optional[Progress] = None,
        task_id: Optional[TaskID] = None,
    ) -> bytes:
        """
        Downloads a raw package archive fully into memory.

        The archive format needs random access, so no streaming to the patcher
        is possible; package size is bounded by available memory.
        """
        http = await self._initialize_session()
        chunks: list[bytes] = []

        async with http.get(url) as response:
            response.raise_for_status()

            if progress is not None and task_id is not None:
                progress.update(task_id, total=response.content_length)

            async for chunk in response.content.iter_chunked(self.DOWNLOAD_CHUNK_SIZE):
                chunks.append(chunk)
                if progress is not None and task_id is not None:
                    progress.advance(task_id, len(chunk))

        return b"".join(chunks)
