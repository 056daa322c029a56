"""
Property-list encoding and decoding for request bodies and archive metadata.
"""

import plistlib
from typing import Any

from ipa_cli.exceptions import PayloadFormatError


def encode_xml(value: Any) -> bytes:
    """Encodes a value tree as an XML property list (request bodies)."""
    return plistlib.dumps(value, fmt=plistlib.FMT_XML)


def encode_binary(value: Any) -> bytes:
    """
    Encodes a value tree as a binary property list (archive-embedded metadata).

    Keys are sorted, so identical value trees always produce identical bytes.
    """
    return plistlib.dumps(value, fmt=plistlib.FMT_BINARY, sort_keys=True)


def decode(data: bytes) -> Any:
    """
    Decodes an XML or binary property list.

    Raises:
        PayloadFormatError: If the data is not a valid property list.
    """
    try:
        return plistlib.loads(data)
    except (plistlib.InvalidFileException, ValueError, TypeError) as e:
        raise PayloadFormatError(f"Invalid property list: {e}") from e
