"""
Turns a raw downloaded package into an installable artifact by injecting the
per-purchase metadata and sinf records into the archive.
"""

import logging
import posixpath
from dataclasses import dataclass
from typing import Optional

from ipa_cli.exceptions import (
    PayloadBundleNameUnavailableError,
    PayloadFormatError,
    PayloadInfoUnavailableError,
    PayloadSinfUnavailableError,
)
from ipa_cli.models.license import DownloadEntry

from . import plist_codec
from .archive import ArchiveBuilder, read_archive

log = logging.getLogger(__name__)

METADATA_ENTRY_NAME = "iTunesMetadata.plist"
MANIFEST_SUFFIX = ".app/SC_Info/Manifest.plist"
DESCRIPTOR_SUFFIX = ".app/Info.plist"
COMPANION_MARKER = "/Watch/"


@dataclass
class PayloadScan:
    """What a single pass over the archive entries found."""

    manifest: Optional[bytes] = None
    bundle_name: Optional[str] = None
    # TODO: capture the top-level Info.plist here once the sinf layout of
    # packages without SC_Info/Manifest.plist is confirmed.
    descriptor: Optional[bytes] = None


def is_manifest(name: str) -> bool:
    return name.endswith(MANIFEST_SUFFIX)


def bundle_name_from_descriptor(name: str) -> Optional[str]:
    """
    Returns the bundle directory name if `name` is the top-level application
    descriptor, e.g. ``Payload/Foo.app/Info.plist`` -> ``Foo``.

    Descriptors inside a companion-device subtree are ignored.
    """
    if not name.endswith(DESCRIPTOR_SUFFIX) or COMPANION_MARKER in name:
        return None
    return posixpath.basename(name[: -len(DESCRIPTOR_SUFFIX)]) or None


def patch_payload(payload: bytes, entry: DownloadEntry) -> bytes:
    """
    Patches a raw package archive using the license metadata of `entry`.

    Every file entry of the input is kept verbatim and in order. The metadata
    property list is added at the archive root, then the sinf records are
    written to the paths listed by the bundle's sinf manifest.

    Args:
        payload: The raw archive bytes. Input and output are held in memory.
        entry: The download entry of the license grant.

    Returns:
        The patched archive bytes.

    Raises:
        PayloadFormatError: If the archive or manifest cannot be decoded.
        PayloadBundleNameUnavailableError: If no application descriptor exists.
        PayloadSinfUnavailableError: If a sinf id has no manifest path.
        PayloadInfoUnavailableError: If the archive has no manifest and the
            executable name is unknown.
    """
    builder = ArchiveBuilder()
    scan = PayloadScan()

    for archive_entry in read_archive(payload):
        if archive_entry.is_dir:
            continue

        builder.copy(archive_entry)

        if is_manifest(archive_entry.name):
            scan.manifest = archive_entry.data
            continue

        if bundle := bundle_name_from_descriptor(archive_entry.name):
            scan.bundle_name = bundle

    builder.add(METADATA_ENTRY_NAME, plist_codec.encode_binary(entry.metadata))

    if not scan.bundle_name:
        raise PayloadBundleNameUnavailableError(
            "Unable to find the application bundle name in the package."
        )

    log.debug(
        f"Patching bundle '{scan.bundle_name}' "
        f"({'manifest' if scan.manifest is not None else 'no manifest'}, "
        f"{len(entry.sinfs)} sinf records)."
    )

    if scan.manifest is not None:
        _write_manifest_sinfs(builder, scan.bundle_name, scan.manifest, entry)
    else:
        _write_executable_sinf(builder, scan.bundle_name, scan.descriptor, entry)

    return builder.build()


def _write_manifest_sinfs(
    builder: ArchiveBuilder, bundle: str, manifest: bytes, entry: DownloadEntry
) -> None:
    manifest_data = plist_codec.decode(manifest)
    if not isinstance(manifest_data, dict):
        raise PayloadFormatError("Sinf manifest is not a dictionary.")

    sinf_paths = manifest_data.get("SinfPaths") or []
    if not isinstance(sinf_paths, list) or not all(
        isinstance(path, str) for path in sinf_paths
    ):
        raise PayloadFormatError("Sinf manifest SinfPaths is not a list of paths.")

    for record in entry.sinfs:
        if not 0 <= record.id < len(sinf_paths) or not sinf_paths[record.id]:
            raise PayloadSinfUnavailableError(
                f"Sinf manifest has no path for sinf id {record.id}."
            )
        builder.add(f"Payload/{bundle}.app/{sinf_paths[record.id]}", record.sinf)


def _write_executable_sinf(
    builder: ArchiveBuilder,
    bundle: str,
    descriptor: Optional[bytes],
    entry: DownloadEntry,
) -> None:
    if descriptor is None:
        raise PayloadInfoUnavailableError(
            "Package has no sinf manifest and its executable name is unknown."
        )

    info = plist_codec.decode(descriptor)
    executable = info.get("CFBundleExecutable") if isinstance(info, dict) else None
    if not executable:
        raise PayloadInfoUnavailableError(
            "Application descriptor has no CFBundleExecutable."
        )
    if not entry.sinfs:
        raise PayloadSinfUnavailableError("License carries no sinf records.")

    builder.add(f"Payload/{bundle}/SC_Info/{executable}.sinf", entry.sinfs[0].sinf)
