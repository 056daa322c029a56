import hashlib
import plistlib

import pytest

from conftest import (
    PERMIT,
    FakeStorefrontClient,
    make_archive,
    permit_success,
    read_archive_files,
    song_entry,
)

from ipa_cli.exceptions import PayloadIntegrityError
from ipa_cli.models.license import DownloadEntry, LicenseRequest
from ipa_cli.payload.downloader import PackageDownloader, artifact_name
from ipa_cli.payload.integrity import md5_hexdigest, verify_md5

PACKAGE_URL = "https://iosapps.itunes.apple.com/itunes-assets/foo.signed.dpkg.ipa"

RAW_PACKAGE = make_archive(
    {
        "Payload/Foo.app/Info.plist": plistlib.dumps({"CFBundleExecutable": "Foo"}),
        "Payload/Foo.app/Foo": b"binary",
        "Payload/Foo.app/SC_Info/Manifest.plist": plistlib.dumps(
            {"SinfPaths": ["SC_Info/Foo.sinf"]}
        ),
    }
)


def test_artifact_name():
    entry = DownloadEntry.model_validate(song_entry())

    assert artifact_name(entry, 123456789) == "com.example.foo_123456789_1.2.3.ipa"


def test_artifact_name_without_metadata():
    entry = DownloadEntry(url=PACKAGE_URL)

    assert artifact_name(entry, 42) == "package_42.ipa"


def test_artifact_name_is_sanitized():
    entry = DownloadEntry.model_validate(
        song_entry(
            metadata={
                "softwareVersionBundleId": "com.example/foo",
                "bundleShortVersionString": "1:2",
            }
        )
    )

    name = artifact_name(entry, 7)
    assert "/" not in name
    assert ":" not in name


def test_verify_md5():
    digest = hashlib.md5(b"payload").hexdigest()

    assert md5_hexdigest(b"payload") == digest
    verify_md5(b"payload", digest.upper())
    verify_md5(b"payload", "")
    with pytest.raises(PayloadIntegrityError):
        verify_md5(b"tampered", digest)


@pytest.mark.asyncio
async def test_download_writes_patched_package(
    client: FakeStorefrontClient, tmp_path
) -> None:
    client.reply(PERMIT, permit_success(song_entry(md5=md5_hexdigest(RAW_PACKAGE))))
    client.payloads[PACKAGE_URL] = RAW_PACKAGE

    grant = await client.licenses.acquire_license(LicenseRequest(package_id=123456789))
    entry = grant.primary_entry
    destination = tmp_path / "out" / artifact_name(entry, 123456789)

    path = await PackageDownloader(client).download(entry, destination)

    assert path == destination
    files = read_archive_files(path.read_bytes())
    assert files["Payload/Foo.app/SC_Info/Foo.sinf"] == b"\x00sinf-bytes\x01"
    assert "iTunesMetadata.plist" in files


@pytest.mark.asyncio
async def test_download_rejects_corrupted_package(
    client: FakeStorefrontClient, tmp_path
) -> None:
    entry = DownloadEntry.model_validate(song_entry(md5="0" * 32))
    client.payloads[PACKAGE_URL] = RAW_PACKAGE
    destination = tmp_path / "foo.ipa"

    with pytest.raises(PayloadIntegrityError):
        await PackageDownloader(client).download(entry, destination)

    assert not destination.exists()


@pytest.mark.asyncio
async def test_download_without_verification(
    client: FakeStorefrontClient, tmp_path
) -> None:
    entry = DownloadEntry.model_validate(song_entry(md5="0" * 32))
    client.payloads[PACKAGE_URL] = RAW_PACKAGE

    path = await PackageDownloader(client, verify=False).download(
        entry, tmp_path / "foo.ipa"
    )

    assert path.exists()
