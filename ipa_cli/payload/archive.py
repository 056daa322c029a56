"""
Reads package archives and builds new ones with entries replaced or added.
"""

import io
import logging
import zipfile
import zlib
from dataclasses import dataclass
from typing import Optional

from ipa_cli.exceptions import PayloadFormatError

log = logging.getLogger(__name__)


@dataclass
class ArchiveEntry:
    """A single archive member with its content loaded in memory."""

    name: str
    data: bytes
    is_dir: bool = False
    info: Optional[zipfile.ZipInfo] = None


def read_archive(data: bytes) -> list[ArchiveEntry]:
    """
    Opens an in-memory archive and returns its entries in archive order.

    Directory entries are returned with empty content. Every member is
    decompressed here, so an unreadable member fails before patching starts.

    Raises:
        PayloadFormatError: If the bytes are not a readable zip archive.
    """
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as reader:
            entries = []
            for info in reader.infolist():
                if info.is_dir():
                    entries.append(ArchiveEntry(info.filename, b"", True, info))
                else:
                    entries.append(
                        ArchiveEntry(info.filename, reader.read(info), False, info)
                    )
            return entries
    except (
        zipfile.BadZipFile,
        zipfile.LargeZipFile,
        zlib.error,
        EOFError,
        NotImplementedError,
        RuntimeError,
    ) as e:
        raise PayloadFormatError(f"Unable to read package archive: {e}") from e


class ArchiveBuilder:
    """
    Collects entries for a new archive.

    Names are unique: adding an existing name replaces its content in place,
    otherwise the entry is appended, so the output keeps the insertion order.
    """

    def __init__(self, compression: int = zipfile.ZIP_DEFLATED):
        self.compression = compression
        self._entries: dict[str, ArchiveEntry] = {}

    def copy(self, entry: ArchiveEntry) -> None:
        """Copies a file entry unchanged. Directory entries are skipped."""
        if entry.is_dir:
            return
        self._entries[entry.name] = ArchiveEntry(entry.name, entry.data, False, entry.info)

    def add(self, name: str, data: bytes) -> None:
        if name in self._entries:
            log.debug(f"Replacing archive entry '{name}'.")
        self._entries[name] = ArchiveEntry(name, bytes(data))

    def build(self) -> bytes:
        """Serializes the collected entries into zip bytes."""
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=self.compression) as writer:
            for entry in self._entries.values():
                if entry.info is not None:
                    info = zipfile.ZipInfo(entry.name, date_time=entry.info.date_time)
                    info.external_attr = entry.info.external_attr
                    info.create_system = entry.info.create_system
                else:
                    info = zipfile.ZipInfo(entry.name)
                    info.external_attr = 0o644 << 16
                info.compress_type = self.compression
                writer.writestr(info, entry.data)
        return buffer.getvalue()
