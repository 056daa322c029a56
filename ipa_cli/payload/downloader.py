"""
Downloads a licensed package, patches it and writes the installable artifact.
"""

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import aiofiles
from pathvalidate import sanitize_filename
from rich.progress import Progress, TaskID

from ipa_cli.models.license import DownloadEntry

from .integrity import verify_md5
from .patcher import patch_payload

if TYPE_CHECKING:
    from ipa_cli.api.client import StorefrontClient

log = logging.getLogger(__name__)


def artifact_name(entry: DownloadEntry, package_id: int) -> str:
    """Builds a file-system safe name such as ``com.foo.bar_123_1.2.ipa``."""
    parts = [entry.bundle_id or "package", str(package_id)]
    if entry.version:
        parts.append(entry.version)
    return sanitize_filename("_".join(parts) + ".ipa")


class PackageDownloader:
    """Fetches the raw archive of a download entry and produces the artifact."""

    def __init__(self, client: "StorefrontClient", verify: bool = True):
        self.client = client
        self.verify = verify

    async def download(
        self,
        entry: DownloadEntry,
        destination: Path,
        progress: Optional[Progress] = None,
        task_id: Optional[TaskID] = None,
    ) -> Path:
        """
        Downloads, verifies and patches the package, then writes it to
        `destination`.

        Returns:
            The path of the written artifact.
        """
        raw = await self.client.fetch_payload(entry.url, progress, task_id)
        log.debug(f"Fetched {len(raw)} bytes for '{entry.bundle_id}'.")

        if self.verify:
            verify_md5(raw, entry.md5)

        patched = await asyncio.to_thread(patch_payload, raw, entry)

        destination.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(destination, "wb") as f:
            await f.write(patched)

        log.debug(f"Wrote patched package to '{destination}'.")
        return destination
