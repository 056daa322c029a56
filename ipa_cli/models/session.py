"""
Per-account session state: machine identifier, cookie store and the
authenticated identity shared by all storefront requests.
"""

import logging
import random
from collections.abc import Callable
from dataclasses import dataclass
from http.cookies import Morsel
from typing import Any, Optional

import aiohttp
from yarl import URL

from ipa_cli.exceptions import SessionUnavailableError

log = logging.getLogger(__name__)

DEFAULT_GUID_SEED = 16384

# Morsel attributes kept when a session is written to disk
_COOKIE_ATTRIBUTES = ("domain", "path", "expires", "max-age", "secure", "httponly")


def create_guid(seed: int = DEFAULT_GUID_SEED, rng: Any = random) -> str:
    """
    Creates a machine identifier that emulates a device GUID.

    Each of the six groups is the first two hex digits of a number drawn from
    ``[16, seed + 16)``, so every group has at least two digits. The result is
    a device-emulation token only and is not suitable as a secret.

    Args:
        seed: Upper bound of the sampling range.
        rng: Object exposing ``random()``; injectable for deterministic tests.

    Returns:
        A 12-character uppercase hexadecimal string.
    """
    groups = [format(int(rng.random() * seed + 16), "x")[:2] for _ in range(6)]
    return "".join(groups).upper()


@dataclass(frozen=True)
class Identity:
    """The storefront identity obtained from a successful sign-in."""

    person_id: str
    token: str


class Session:
    """
    Owns the identity and cookie state of one storefront account.

    A session is single-owner: protocol calls sharing one instance must not
    run concurrently, since cookie and identity updates are not synchronised.
    """

    def __init__(
        self,
        machine_id: Optional[str] = None,
        identity: Optional[Identity] = None,
        cookies: Optional[list[dict[str, Any]]] = None,
        guid_factory: Callable[[], str] = create_guid,
    ):
        self._machine_id = machine_id
        self._guid_factory = guid_factory
        self.identity: Optional[Identity] = identity

        self._cookie_jar: Optional[aiohttp.CookieJar] = None
        self._pending_cookies: list[dict[str, Any]] = list(cookies or [])

    @property
    def machine_id(self) -> str:
        """The machine identifier, generated on first use and stable afterwards."""
        if self._machine_id is None:
            self._machine_id = self._guid_factory()
            log.debug("Generated a new machine identifier for the session.")
        return self._machine_id

    @property
    def cookie_jar(self) -> aiohttp.CookieJar:
        """
        The cookie jar bound to this session.

        Created lazily because aiohttp binds jars to the running event loop.
        """
        if self._cookie_jar is None:
            self._cookie_jar = aiohttp.CookieJar(unsafe=True)
            for cookie in self._pending_cookies:
                self._restore_cookie(self._cookie_jar, cookie)
            self._pending_cookies = []
        return self._cookie_jar

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None

    def require_identity(self) -> Identity:
        """
        Returns the authenticated identity.

        Raises:
            SessionUnavailableError: If the session has not been signed in.
        """
        if self.identity is None:
            raise SessionUnavailableError(
                "Session is not authenticated. Sign in before requesting a license."
            )
        return self.identity

    def sign_in(self, identity: Identity) -> None:
        self.identity = identity

    def invalidate(self) -> None:
        """Drops the identity after the server reported the token as expired."""
        if self.identity is not None:
            log.debug("Session identity invalidated.")
        self.identity = None

    def to_dict(self) -> dict[str, Any]:
        """Serializes the session into a JSON-safe dictionary."""
        if self._cookie_jar is None:
            cookies = [dict(c) for c in self._pending_cookies]
        else:
            cookies = [self._dump_cookie(m) for m in self._cookie_jar]

        return {
            "machine_id": self.machine_id,
            "identity": (
                {"person_id": self.identity.person_id, "token": self.identity.token}
                if self.identity
                else None
            ),
            "cookies": cookies,
        }

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        guid_factory: Callable[[], str] = create_guid,
    ) -> "Session":
        """Restores a session previously serialized with `to_dict`."""
        identity_data = data.get("identity")
        identity = (
            Identity(
                person_id=str(identity_data["person_id"]),
                token=str(identity_data["token"]),
            )
            if identity_data
            else None
        )
        return cls(
            machine_id=data.get("machine_id") or None,
            identity=identity,
            cookies=data.get("cookies") or [],
            guid_factory=guid_factory,
        )

    @staticmethod
    def _dump_cookie(morsel: "Morsel[str]") -> dict[str, Any]:
        dumped: dict[str, Any] = {
            "name": morsel.key,
            "value": morsel.value,
            "coded_value": morsel.coded_value,
        }
        for attribute in _COOKIE_ATTRIBUTES:
            if morsel[attribute]:
                dumped[attribute] = morsel[attribute]
        return dumped

    @staticmethod
    def _restore_cookie(jar: aiohttp.CookieJar, cookie: dict[str, Any]) -> None:
        domain = str(cookie.get("domain", "")).lstrip(".")
        if not domain:
            log.debug(f"Skipping stored cookie '{cookie.get('name')}' without domain.")
            return

        morsel: "Morsel[str]" = Morsel()
        morsel.set(
            cookie["name"], cookie["value"], cookie.get("coded_value", cookie["value"])
        )
        for attribute in _COOKIE_ATTRIBUTES:
            if attribute in cookie:
                morsel[attribute] = cookie[attribute]

        jar.update_cookies({morsel.key: morsel}, URL(f"https://{domain}/"))
