"""
Provides checks for the integrity of downloaded package archives.
"""

import hashlib
import logging

from ipa_cli.exceptions import PayloadIntegrityError

log = logging.getLogger(__name__)


def md5_hexdigest(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()  # noqa: S324


def verify_md5(data: bytes, expected: str) -> None:
    """
    Compares the MD5 digest of a downloaded archive with the license entry.

    An empty `expected` value skips the check, since not every entry carries
    a digest.

    Raises:
        PayloadIntegrityError: If the digests differ.
    """
    if not expected:
        log.debug("No MD5 digest in the download entry, skipping integrity check.")
        return

    actual = md5_hexdigest(data)
    if actual.lower() != expected.strip().lower():
        raise PayloadIntegrityError(
            f"Downloaded package failed its integrity check "
            f"(expected MD5 {expected}, got {actual})."
        )
