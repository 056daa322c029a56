"""
Payload Processing Layer.

This package turns the raw archives served by the storefront into installable
artifacts: archive rewriting, property-list coding, patching and integrity
checks.
"""

from .downloader import PackageDownloader, artifact_name
from .patcher import patch_payload

__all__ = ["PackageDownloader", "artifact_name", "patch_payload"]
